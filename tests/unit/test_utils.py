"""Unit tests for output sinks and stream forwarding"""

import io
import logging

import pytest

from redis_embedded.utils import StreamForwarder, make_line_writer


@pytest.mark.unit
def test_none_sink_discards():
    assert make_line_writer(None) is None


@pytest.mark.unit
def test_stream_sink_appends_newline():
    out = io.StringIO()
    make_line_writer(out)('hello')
    assert out.getvalue() == 'hello\n'


@pytest.mark.unit
def test_callable_sink():
    lines = []
    make_line_writer(lines.append)('hello')
    assert lines == ['hello']


@pytest.mark.unit
def test_logger_sink(caplog):
    logger = logging.getLogger('tests.sink')
    with caplog.at_level(logging.INFO, logger='tests.sink'):
        make_line_writer(logger, prefix='[redis:6379] ')('hello')
    assert [record.getMessage() for record in caplog.records] == ['[redis:6379] hello']


@pytest.mark.unit
def test_unsupported_sink():
    with pytest.raises(TypeError):
        make_line_writer(42)


@pytest.mark.unit
def test_forwarder_copies_lines_and_closes_stream():
    stream = io.StringIO('one\ntwo\r\nthree')
    lines = []
    forwarder = StreamForwarder(stream, lines.append, name='test-forwarder').start()

    assert forwarder.future.result(timeout=5) == 3
    forwarder.join(timeout=5)
    assert lines == ['one', 'two', 'three']
    assert stream.closed


@pytest.mark.unit
def test_forwarder_without_writer_still_drains():
    stream = io.StringIO('a\nb\n')
    forwarder = StreamForwarder(stream, None, name='test-forwarder').start()
    assert forwarder.future.result(timeout=5) == 0
    assert stream.closed


@pytest.mark.unit
def test_forwarder_reports_sink_failure():
    def broken(line):
        raise RuntimeError('sink is gone')

    stream = io.StringIO('a\nb\nc\n')
    forwarder = StreamForwarder(stream, broken, name='test-forwarder').start()
    with pytest.raises(RuntimeError, match='sink is gone'):
        forwarder.future.result(timeout=5)
    assert stream.closed


@pytest.mark.unit
def test_forwarder_on_closed_stream():
    stream = io.StringIO('a\n')
    stream.close()
    forwarder = StreamForwarder(stream, print, name='test-forwarder').start()
    assert forwarder.future.result(timeout=5) == 0
