import importlib.metadata

from .cluster import ClusterStopError, RedisCluster, RedisClusterBuilder, ReplicationGroup
from .exceptions import (
    AlreadyRunning,
    ConfigError,
    EmbeddedRedisError,
    ExhaustedPorts,
    LaunchFailure,
    PortAllocationError,
    ShutdownFailure,
)
from .instance import ProcessInstance, ProcessSpec
from .ports import EphemeralPortProvider, PortProvider, PredefinedPortProvider, SequencePortProvider
from .server import SentinelConfig, ServerConfig

try:
    __version__ = importlib.metadata.version("redis-embedded")
except importlib.metadata.PackageNotFoundError:
    __version__ = "unknown"  # fallback version
