import os
import tempfile
import uuid

from .instance import ProcessInstance, ProcessSpec
from .roles import (
    DEFAULT_DOWN_AFTER_MILLISECONDS,
    DEFAULT_FAILOVER_TIMEOUT,
    DEFAULT_PARALLEL_SYNCS,
    SENTINEL_READY_PATTERN,
    SERVER_READY_PATTERN,
    Monitor,
    MonitoredGroup,
    ReplicaOf,
    Standalone,
    build_sentinel_args,
    build_server_args,
    render_sentinel_config,
)

DEFAULT_EXECUTABLE = 'redis-server'
DEFAULT_SERVER_PORT = 6379
DEFAULT_SENTINEL_PORT = 26379
DEFAULT_MASTER_NAME = 'mymaster'


class ServerConfig:
    """Configuration of one redis-server data node.

    Example:
        spec = ServerConfig().port(6380).replica_of('localhost', 6379).build()
    """

    def __init__(self, executable=None, bind=None, extra_args=None):
        self.executable = executable or DEFAULT_EXECUTABLE
        self.server_port = DEFAULT_SERVER_PORT
        self.role = Standalone()
        self.bind_address = bind
        self.extra_args = list(extra_args or [])

    def port(self, port: int):
        self.server_port = port
        return self

    def replica_of(self, host: str, port: int):
        self.role = ReplicaOf(host, port)
        return self

    def bind(self, host: str):
        self.bind_address = host
        return self

    def setting(self, *args):
        self.extra_args.extend(args)
        return self

    def build(self) -> ProcessSpec:
        args = build_server_args(
            self.executable,
            self.server_port,
            role=self.role,
            bind=self.bind_address,
            extra_args=self.extra_args,
        )
        return ProcessSpec(args=args, port=self.server_port, ready_pattern=SERVER_READY_PATTERN)

    def instance(self, **kwargs) -> ProcessInstance:
        return ProcessInstance(self.build(), **kwargs)


class SentinelConfig:
    """Configuration of one Redis Sentinel.

    Groups are added one at a time: set ``master_name``, ``master_port`` and
    ``quorum_size``, then call ``add_default_replication_group()``.
    Sentinel rewrites its own config file, so every ``build()`` picks a fresh
    path in ``config_dir`` (the system temp dir by default). The file is
    written when the instance starts and removed when it stops.
    """

    def __init__(
        self,
        executable=None,
        bind=None,
        config_dir=None,
        down_after_milliseconds=DEFAULT_DOWN_AFTER_MILLISECONDS,
        failover_timeout=DEFAULT_FAILOVER_TIMEOUT,
        parallel_syncs=DEFAULT_PARALLEL_SYNCS,
    ):
        self.executable = executable or DEFAULT_EXECUTABLE
        self.bind_address = bind
        self.config_dir = config_dir
        self.sentinel_port = DEFAULT_SENTINEL_PORT
        self.current_master_name = DEFAULT_MASTER_NAME
        self.current_master_port = DEFAULT_SERVER_PORT
        self.current_quorum = 1
        self.down_after = down_after_milliseconds
        self.failover = failover_timeout
        self.syncs = parallel_syncs
        self.groups = []

    def port(self, port: int):
        self.sentinel_port = port
        return self

    def bind(self, host: str):
        self.bind_address = host
        return self

    def master_name(self, name: str):
        self.current_master_name = name
        return self

    def master_port(self, port: int):
        self.current_master_port = port
        return self

    def quorum_size(self, quorum: int):
        self.current_quorum = quorum
        return self

    def down_after_milliseconds(self, milliseconds: int):
        self.down_after = milliseconds
        return self

    def failover_timeout(self, milliseconds: int):
        self.failover = milliseconds
        return self

    def parallel_syncs(self, syncs: int):
        self.syncs = syncs
        return self

    def add_default_replication_group(self):
        self.groups.append(MonitoredGroup(
            name=self.current_master_name,
            master_port=self.current_master_port,
            quorum=self.current_quorum,
            down_after_milliseconds=self.down_after,
            failover_timeout=self.failover,
            parallel_syncs=self.syncs,
        ))
        return self

    def monitor(self) -> Monitor:
        return Monitor(groups=tuple(self.groups))

    def render(self) -> str:
        return render_sentinel_config(self.sentinel_port, self.monitor(), bind=self.bind_address)

    def config_path(self) -> str:
        directory = self.config_dir or tempfile.gettempdir()
        name = f'sentinel-{self.sentinel_port}-{uuid.uuid4().hex[:12]}.conf'
        # the process runs from its executable's directory
        return os.path.abspath(os.path.join(directory, name))

    def build(self) -> ProcessSpec:
        path = self.config_path()
        return ProcessSpec(
            args=build_sentinel_args(self.executable, path),
            port=self.sentinel_port,
            ready_pattern=SENTINEL_READY_PATTERN,
            config_file=path,
            config_text=self.render(),
        )

    def instance(self, **kwargs) -> ProcessInstance:
        return ProcessInstance(self.build(), **kwargs)
