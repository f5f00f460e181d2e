import logging
import signal
import sys
import threading
from concurrent.futures import Future
from logging import getLogger

logger = getLogger(__name__)


class GracefulKiller:
    kill_now = False

    def __init__(self):
        signal.signal(signal.SIGINT, self.exit_gracefully)
        signal.signal(signal.SIGTERM, self.exit_gracefully)

    def exit_gracefully(self, signum, frame):
        self.kill_now = True


def make_line_writer(sink, prefix=''):
    """Turn an output sink into a callable accepting one line (without newline).

    Accepted sinks:
        None: lines are discarded (returns None)
        logging.Logger: lines are logged at INFO, with ``prefix`` in front
        anything with ``write()``: the line and a newline are written
        any other callable: called with the line
    """
    if sink is None:
        return None

    if isinstance(sink, logging.Logger):
        def write_log(line):
            sink.info(f'{prefix}{line}')
        return write_log

    if hasattr(sink, 'write'):
        def write_stream(line):
            sink.write(line + '\n')
            if hasattr(sink, 'flush'):
                sink.flush()
        return write_stream

    if callable(sink):
        return sink

    raise TypeError(f'unsupported output sink {sink!r}')


def stderr_writer(line):
    # resolved on every call so a replaced sys.stderr (pytest capture) is honoured
    sys.stderr.write(line + '\n')
    sys.stderr.flush()


class StreamForwarder:
    """Drain a child's text stream line by line on a daemon thread.

    The thread owns the stream from ``start()`` on and closes it once the
    stream ends. Completion or failure is published on ``future``.
    """

    def __init__(self, stream, writer, name):
        self.stream = stream
        self.writer = writer
        self.name = name
        self.future = Future()
        self.should_stop_forwarding = False
        self.thread = None

    def start(self):
        self.thread = threading.Thread(target=self._forward, daemon=True, name=self.name)
        self.thread.start()
        return self

    def stop(self):
        # keep reading after stop so the child never blocks on a full pipe,
        # but stop handing lines to the sink
        self.should_stop_forwarding = True

    def join(self, timeout=None):
        if self.thread is not None:
            self.thread.join(timeout)

    def _forward(self):
        lines = 0
        sink_error = None
        try:
            for line in iter(self.stream.readline, ''):
                if self.should_stop_forwarding or self.writer is None or sink_error is not None:
                    continue
                try:
                    self.writer(line.rstrip('\r\n'))
                    lines += 1
                except Exception as e:
                    logger.warning(f'{self.name}: output sink failed, discarding further lines: {e}')
                    sink_error = e
        except (OSError, ValueError) as e:
            # ValueError: the stream was closed under us
            if not self.should_stop_forwarding:
                logger.debug(f'{self.name}: stream closed while reading: {e}')
        finally:
            try:
                self.stream.close()
            except OSError:
                pass

        if sink_error is not None:
            self.future.set_exception(sink_error)
        else:
            self.future.set_result(lines)
