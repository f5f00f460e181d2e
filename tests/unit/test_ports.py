"""Unit tests for port providers"""

import itertools
import socket

import pytest

from redis_embedded.exceptions import ExhaustedPorts, PortAllocationError
from redis_embedded.ports import EphemeralPortProvider, PredefinedPortProvider, SequencePortProvider


@pytest.mark.unit
def test_sequence_provider_counts_up_from_start():
    provider = SequencePortProvider(6379)
    assert [provider.next() for _ in range(4)] == [6379, 6380, 6381, 6382]


@pytest.mark.unit
def test_sequence_provider_is_iterable():
    assert list(itertools.islice(SequencePortProvider(100), 3)) == [100, 101, 102]


@pytest.mark.unit
def test_predefined_provider_replays_ports_in_order():
    provider = PredefinedPortProvider([7002, 7000, 7001])
    assert provider.next() == 7002
    assert provider.next() == 7000
    assert provider.next() == 7001


@pytest.mark.unit
def test_predefined_provider_exhausted():
    provider = PredefinedPortProvider([7000])
    provider.next()
    with pytest.raises(ExhaustedPorts):
        provider.next()
    # still exhausted on later calls
    with pytest.raises(PortAllocationError):
        provider.next()


@pytest.mark.unit
def test_predefined_provider_iteration_stops_at_end():
    assert list(PredefinedPortProvider([1, 2, 3])) == [1, 2, 3]


@pytest.mark.unit
def test_predefined_provider_copies_input():
    ports = [5000, 5001]
    provider = PredefinedPortProvider(ports)
    ports.append(5002)
    provider.next()
    provider.next()
    with pytest.raises(ExhaustedPorts):
        provider.next()


@pytest.mark.unit
def test_ephemeral_provider_returns_bindable_port():
    port = EphemeralPortProvider().next()
    assert 0 < port < 65536
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        s.bind(('127.0.0.1', port))


@pytest.mark.unit
def test_ephemeral_provider_bind_failure(monkeypatch):
    class BrokenSocket:
        def __init__(self, *args, **kwargs):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *args):
            return False

        def bind(self, address):
            raise OSError(99, 'Cannot assign requested address')

    monkeypatch.setattr('redis_embedded.ports.socket.socket', BrokenSocket)
    with pytest.raises(PortAllocationError) as exc_info:
        EphemeralPortProvider().next()
    assert isinstance(exc_info.value.__cause__, OSError)
