import copy
from dataclasses import dataclass
from logging import getLogger

from .exceptions import ShutdownFailure
from .instance import ProcessInstance
from .ports import EphemeralPortProvider, PortProvider, PredefinedPortProvider, SequencePortProvider
from .server import DEFAULT_SENTINEL_PORT, DEFAULT_SERVER_PORT, SentinelConfig, ServerConfig

logger = getLogger(__name__)


class ClusterStopError(ShutdownFailure):
    def __init__(self, errors):
        self.errors = list(errors)
        details = '; '.join(str(e) for e in self.errors)
        super().__init__(f'{len(self.errors)} instance(s) failed to stop: {details}')


@dataclass(frozen=True)
class ReplicationGroup:
    name: str
    master_port: int
    replica_ports: tuple

    @classmethod
    def allocate(cls, name: str, replica_count: int, port_provider: PortProvider) -> 'ReplicationGroup':
        if replica_count < 0:
            raise ValueError(f'replica count should be non-negative and not {replica_count}')
        master_port = port_provider.next()
        replica_ports = tuple(port_provider.next() for _ in range(replica_count))
        return cls(name=name, master_port=master_port, replica_ports=replica_ports)


def _as_factory(config):
    if callable(config):
        return config
    # a shared config object would be mutated by every process built from it
    return lambda: copy.deepcopy(config)


class RedisClusterBuilder:
    """Declarative description of a master/replica + sentinel topology.

    Example:
        cluster = (
            RedisClusterBuilder()
            .ephemeral()
            .sentinel_count(3)
            .quorum_size(2)
            .replication_group('master1', 1)
            .replication_group('master2', 2)
            .build()
        )
        with cluster:
            ...

    Ports of a replication group are drawn as soon as the group is added, so
    switch port providers before adding groups.
    """

    def __init__(self):
        self.sentinel_config_factory = SentinelConfig
        self.server_config_factory = ServerConfig
        self.sentinels_to_build = 1
        self.quorum = 1
        self.sentinel_port_provider = SequencePortProvider(DEFAULT_SENTINEL_PORT)
        self.server_port_provider = SequencePortProvider(DEFAULT_SERVER_PORT)
        self.instance_stop_timeout = None
        self.groups = ()

    def with_sentinel_config(self, config):
        self.sentinel_config_factory = _as_factory(config)
        return self

    def with_server_config(self, config):
        self.server_config_factory = _as_factory(config)
        return self

    def sentinel_ports(self, ports):
        ports = list(ports)
        self.sentinel_port_provider = PredefinedPortProvider(ports)
        self.sentinels_to_build = len(ports)
        return self

    def server_ports(self, ports):
        self.server_port_provider = PredefinedPortProvider(ports)
        return self

    def sentinel_starting_port(self, port: int):
        self.sentinel_port_provider = SequencePortProvider(port)
        return self

    def server_starting_port(self, port: int):
        self.server_port_provider = SequencePortProvider(port)
        return self

    def ephemeral_sentinels(self):
        self.sentinel_port_provider = EphemeralPortProvider()
        return self

    def ephemeral_servers(self):
        self.server_port_provider = EphemeralPortProvider()
        return self

    def ephemeral(self):
        self.ephemeral_sentinels()
        self.ephemeral_servers()
        return self

    def sentinel_count(self, count: int):
        self.sentinels_to_build = count
        return self

    def quorum_size(self, quorum: int):
        self.quorum = quorum
        return self

    def stop_timeout(self, seconds):
        self.instance_stop_timeout = seconds
        return self

    def replication_group(self, master_name: str, replica_count: int):
        group = ReplicationGroup.allocate(master_name, replica_count, self.server_port_provider)
        self.groups = self.groups + (group,)
        return self

    def build(self) -> 'RedisCluster':
        sentinels = self._build_sentinels()
        servers = self._build_servers()
        return RedisCluster(sentinels=sentinels, servers=servers)

    def _instance(self, spec):
        return ProcessInstance(spec, stop_timeout=self.instance_stop_timeout)

    def _build_servers(self):
        servers = []
        for group in self.groups:
            master = self.server_config_factory().port(group.master_port)
            servers.append(self._instance(master.build()))
            for replica_port in group.replica_ports:
                replica = (
                    self.server_config_factory()
                    .port(replica_port)
                    .replica_of('localhost', group.master_port)
                )
                servers.append(self._instance(replica.build()))
        return servers

    def _build_sentinels(self):
        return [self._build_sentinel() for _ in range(self.sentinels_to_build)]

    def _build_sentinel(self):
        config = self.sentinel_config_factory().port(self.sentinel_port_provider.next())
        for group in self.groups:
            config.master_name(group.name)
            config.master_port(group.master_port)
            config.quorum_size(self.quorum)
            config.add_default_replication_group()
        return self._instance(config.build())

    @classmethod
    def from_settings(cls, settings) -> 'RedisClusterBuilder':
        server = settings.server
        sentinel = settings.sentinel
        server_executable = server.resolve_executable()
        sentinel_executable = sentinel.resolve_executable()

        builder = cls()
        builder.with_server_config(lambda: ServerConfig(
            executable=server_executable,
            bind=server.bind,
            extra_args=server.extra_args,
        ))
        builder.with_sentinel_config(lambda: SentinelConfig(
            executable=sentinel_executable,
            bind=sentinel.bind,
            config_dir=sentinel.config_dir,
            down_after_milliseconds=sentinel.down_after_milliseconds,
            failover_timeout=sentinel.failover_timeout,
            parallel_syncs=sentinel.parallel_syncs,
        ))
        builder.quorum_size(settings.quorum_size)
        builder.sentinel_count(settings.sentinel_count)
        builder.stop_timeout(settings.stop_timeout)

        if settings.ephemeral:
            builder.ephemeral()
        else:
            builder.sentinel_starting_port(settings.sentinel_starting_port)
            builder.server_starting_port(settings.server_starting_port)
        if settings.sentinel_ports:
            builder.sentinel_ports(settings.sentinel_ports)
        if settings.server_ports:
            builder.server_ports(settings.server_ports)

        for group in settings.replication_groups:
            builder.replication_group(group.name, group.replicas)
        return builder


class RedisCluster:
    """Starts and stops every process of a topology as one unit.

    Servers start before sentinels. A failed ``start()`` is not rolled back:
    call ``stop()`` to clean up whatever did start.
    """

    def __init__(self, sentinels, servers):
        self._sentinels = list(sentinels)
        self._servers = list(servers)

    def sentinels(self) -> list[ProcessInstance]:
        return list(self._sentinels)

    def servers(self) -> list[ProcessInstance]:
        return list(self._servers)

    def is_active(self) -> bool:
        return all(instance.is_active() for instance in self._sentinels + self._servers)

    def start(self):
        logger.info(f'starting cluster: {len(self._servers)} servers, {len(self._sentinels)} sentinels')
        for server in self._servers:
            server.start()
        for sentinel in self._sentinels:
            sentinel.start()
        logger.info(f'cluster started, ports: {self.ports()}')

    def stop(self):
        errors = []
        for instance in self._sentinels + self._servers:
            try:
                instance.stop()
            except Exception as e:
                logger.warning(f'failed to stop {instance.name}: {e}')
                errors.append(e)
        if errors:
            raise ClusterStopError(errors)
        logger.info('cluster stopped')

    def ports(self) -> list[int]:
        return self.sentinel_ports() + self.server_ports()

    def sentinel_ports(self) -> list[int]:
        return [port for sentinel in self._sentinels for port in sentinel.ports()]

    def server_ports(self) -> list[int]:
        return [port for server in self._servers for port in server.ports()]

    def __enter__(self):
        try:
            self.start()
        except BaseException:
            # __exit__ is not called when __enter__ fails
            self.stop_after_failed_start()
            raise
        return self

    def stop_after_failed_start(self):
        """Stop whatever did start, keeping the start failure as the error to raise."""
        try:
            self.stop()
        except ClusterStopError as e:
            logger.error(f'cleanup after failed start: {e}')

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
