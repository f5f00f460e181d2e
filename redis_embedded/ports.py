import socket
from logging import getLogger

from .exceptions import ExhaustedPorts, PortAllocationError


logger = getLogger(__name__)


class PortProvider:
    """Supplies the next TCP port a process should listen on."""

    def next(self) -> int:
        raise NotImplementedError

    def __iter__(self):
        return self

    def __next__(self) -> int:
        return self.next()


class SequencePortProvider(PortProvider):
    def __init__(self, start: int = 26379):
        self.current = start

    def next(self) -> int:
        port = self.current
        self.current += 1
        return port


class PredefinedPortProvider(PortProvider):
    def __init__(self, ports):
        self.ports = list(ports)
        self.position = 0

    def next(self) -> int:
        if self.position >= len(self.ports):
            raise ExhaustedPorts(
                f'run out of predefined ports: all {len(self.ports)} already used'
            )
        port = self.ports[self.position]
        self.position += 1
        return port

    def __next__(self) -> int:
        # iteration stops cleanly once the list is used up
        try:
            return self.next()
        except ExhaustedPorts:
            raise StopIteration


class EphemeralPortProvider(PortProvider):
    def __init__(self, host: str = '127.0.0.1'):
        self.host = host

    def next(self) -> int:
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
                s.bind((self.host, 0))
                port = s.getsockname()[1]
        except OSError as e:
            raise PortAllocationError(f'could not find a free port on {self.host}: {e}') from e
        logger.debug(f'ephemeral port {port} on {self.host}')
        return port
