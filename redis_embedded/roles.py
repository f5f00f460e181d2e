"""
Role variants for embedded Redis processes and the functions that turn them
into command lines.

A data node is either ``Standalone`` (a master, or a server outside any
replication group) or ``ReplicaOf`` a master. A sentinel is a ``Monitor``
watching zero or more ``MonitoredGroup`` entries.

Nothing here touches the filesystem or spawns anything; the config objects in
``redis_embedded.server`` do that with the values produced here.
"""

from dataclasses import dataclass, field


SERVER_READY_PATTERN = r'.*Ready to accept connections.*'
SENTINEL_READY_PATTERN = r'.*Sentinel (runid|ID) is.*'

DEFAULT_DOWN_AFTER_MILLISECONDS = 60000
DEFAULT_FAILOVER_TIMEOUT = 180000
DEFAULT_PARALLEL_SYNCS = 1


@dataclass(frozen=True)
class Standalone:
    pass


@dataclass(frozen=True)
class ReplicaOf:
    host: str
    port: int


@dataclass(frozen=True)
class MonitoredGroup:
    name: str
    master_port: int
    quorum: int
    master_host: str = '127.0.0.1'
    down_after_milliseconds: int = DEFAULT_DOWN_AFTER_MILLISECONDS
    failover_timeout: int = DEFAULT_FAILOVER_TIMEOUT
    parallel_syncs: int = DEFAULT_PARALLEL_SYNCS


@dataclass(frozen=True)
class Monitor:
    groups: tuple = field(default_factory=tuple)


def build_server_args(executable, port, role=Standalone(), bind=None, extra_args=()):
    args = [executable, '--port', str(port)]
    if bind:
        args += ['--bind', bind]
    if isinstance(role, ReplicaOf):
        args += ['--replicaof', role.host, str(role.port)]
    elif not isinstance(role, Standalone):
        raise TypeError(f'unsupported server role {role!r}')
    args += [str(arg) for arg in extra_args]
    return args


def render_sentinel_config(port, monitor: Monitor, bind=None) -> str:
    lines = [f'port {port}']
    if bind:
        lines.append(f'bind {bind}')
    for group in monitor.groups:
        lines.append(
            f'sentinel monitor {group.name} {group.master_host} {group.master_port} {group.quorum}'
        )
        lines.append(f'sentinel down-after-milliseconds {group.name} {group.down_after_milliseconds}')
        lines.append(f'sentinel failover-timeout {group.name} {group.failover_timeout}')
        lines.append(f'sentinel parallel-syncs {group.name} {group.parallel_syncs}')
    return '\n'.join(lines) + '\n'


def build_sentinel_args(executable, config_path):
    return [executable, config_path, '--sentinel']
