"""
Embedded Redis cluster configuration

Loads a cluster topology from YAML so a test environment (or the
``python -m redis_embedded run`` command) can be described in one file.

Classes:
    ServerSettings: redis-server binary and flags shared by every data node
    SentinelSettings: sentinel binary and the per-group monitoring defaults
    GroupSettings: one master/replica replication group
    Settings: main configuration class

Binary paths can be overridden with the ``REDIS_EMBEDDED_SERVER_BINARY`` and
``REDIS_EMBEDDED_SENTINEL_BINARY`` environment variables; without either, the
first ``redis-server`` on PATH is used.
"""

import os
import shutil
from dataclasses import dataclass, field

import yaml

from .exceptions import ConfigError
from .roles import DEFAULT_DOWN_AFTER_MILLISECONDS, DEFAULT_FAILOVER_TIMEOUT, DEFAULT_PARALLEL_SYNCS
from .server import DEFAULT_EXECUTABLE, DEFAULT_SENTINEL_PORT, DEFAULT_SERVER_PORT

SERVER_BINARY_ENV = 'REDIS_EMBEDDED_SERVER_BINARY'
SENTINEL_BINARY_ENV = 'REDIS_EMBEDDED_SENTINEL_BINARY'


def stype(obj):
    """Get the simple type name of an object.

    Example:
        >>> stype([1, 2, 3])
        'list'
    """
    return type(obj).__name__


def resolve_binary(configured, env_var):
    """Pick the binary to run: environment variable, then config, then PATH."""
    from_env = os.environ.get(env_var)
    if from_env:
        return from_env
    if configured:
        return configured
    return shutil.which(DEFAULT_EXECUTABLE) or DEFAULT_EXECUTABLE


def validate_port(value, what):
    if not isinstance(value, int) or isinstance(value, bool):
        raise ConfigError(f'{what} should be int and not {stype(value)}')
    if not 0 < value < 65536:
        raise ConfigError(f'{what} should be between 1 and 65535, got {value}')


@dataclass
class ServerSettings:
    executable: str = None
    bind: str = None
    extra_args: list = field(default_factory=list)

    def resolve_executable(self):
        return resolve_binary(self.executable, SERVER_BINARY_ENV)

    def validate(self):
        if self.executable is not None and not isinstance(self.executable, str):
            raise ConfigError(f'server executable should be string and not {stype(self.executable)}')
        if self.bind is not None and not isinstance(self.bind, str):
            raise ConfigError(f'server bind should be string and not {stype(self.bind)}')
        if not isinstance(self.extra_args, list):
            raise ConfigError(f'server extra_args should be list and not {stype(self.extra_args)}')


@dataclass
class SentinelSettings:
    executable: str = None
    bind: str = None
    config_dir: str = None
    down_after_milliseconds: int = DEFAULT_DOWN_AFTER_MILLISECONDS
    failover_timeout: int = DEFAULT_FAILOVER_TIMEOUT
    parallel_syncs: int = DEFAULT_PARALLEL_SYNCS

    def resolve_executable(self):
        return resolve_binary(self.executable, SENTINEL_BINARY_ENV)

    def validate(self):
        for name in ('executable', 'bind', 'config_dir'):
            value = getattr(self, name)
            if value is not None and not isinstance(value, str):
                raise ConfigError(f'sentinel {name} should be string and not {stype(value)}')
        for name in ('down_after_milliseconds', 'failover_timeout', 'parallel_syncs'):
            value = getattr(self, name)
            if not isinstance(value, int) or value <= 0:
                raise ConfigError(f'sentinel {name} should be positive int, got {value!r}')


@dataclass
class GroupSettings:
    name: str
    replicas: int = 0

    def validate(self):
        if not isinstance(self.name, str) or not self.name:
            raise ConfigError(f'replication group name should be non-empty string, got {self.name!r}')
        if not isinstance(self.replicas, int) or self.replicas < 0:
            raise ConfigError(
                f'replication group {self.name} replicas should be non-negative int, got {self.replicas!r}'
            )


class Settings:
    DEFAULT_LOG_LEVEL = 'info'

    def __init__(self):
        self.server = ServerSettings()
        self.sentinel = SentinelSettings()
        self.replication_groups: list[GroupSettings] = []
        self.settings_file = ''
        self.log_level = Settings.DEFAULT_LOG_LEVEL
        self.sentinel_count = 1
        self.quorum_size = 1
        self.sentinel_starting_port = DEFAULT_SENTINEL_PORT
        self.server_starting_port = DEFAULT_SERVER_PORT
        self.sentinel_ports: list[int] = []
        self.server_ports: list[int] = []
        self.ephemeral = False
        self.stop_timeout = None
        self.http_host = ''
        self.http_port = 0

    def load(self, settings_file):
        with open(settings_file, 'r') as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigError(f'{settings_file}: top level should be a mapping')

        self.settings_file = settings_file
        self.server = ServerSettings(**(data.pop('server', None) or {}))
        self.sentinel = SentinelSettings(**(data.pop('sentinel', None) or {}))
        self.log_level = data.pop('log_level', Settings.DEFAULT_LOG_LEVEL)
        self.sentinel_count = data.pop('sentinel_count', 1)
        self.quorum_size = data.pop('quorum_size', 1)
        self.sentinel_starting_port = data.pop('sentinel_starting_port', DEFAULT_SENTINEL_PORT)
        self.server_starting_port = data.pop('server_starting_port', DEFAULT_SERVER_PORT)
        self.sentinel_ports = data.pop('sentinel_ports', None) or []
        self.server_ports = data.pop('server_ports', None) or []
        self.ephemeral = data.pop('ephemeral', False)
        self.stop_timeout = data.pop('stop_timeout', None)
        self.http_host = data.pop('http_host', '')
        self.http_port = data.pop('http_port', 0)

        self.replication_groups = []
        for group in data.pop('replication_groups', None) or []:
            self.replication_groups.append(GroupSettings(**group))

        if data:
            raise ConfigError(f'Unsupported config options: {list(data.keys())}')
        self.validate()
        return self

    def validate_log_level(self):
        if self.log_level not in ['critical', 'error', 'warning', 'info', 'debug']:
            raise ConfigError(f'wrong log level {self.log_level}')

    def validate(self):
        self.server.validate()
        self.sentinel.validate()
        for group in self.replication_groups:
            group.validate()
        self.validate_log_level()

        for name in ('sentinel_count', 'quorum_size'):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 0:
                raise ConfigError(f'{name} should be non-negative int, got {value!r}')
        validate_port(self.sentinel_starting_port, 'sentinel_starting_port')
        validate_port(self.server_starting_port, 'server_starting_port')
        for port in self.sentinel_ports:
            validate_port(port, 'sentinel port')
        for port in self.server_ports:
            validate_port(port, 'server port')

        required = sum(1 + group.replicas for group in self.replication_groups)
        if self.server_ports and len(self.server_ports) < required:
            raise ConfigError(
                f'{len(self.server_ports)} server ports given but replication groups need {required}'
            )

        if not isinstance(self.ephemeral, bool):
            raise ConfigError(f'ephemeral should be bool and not {stype(self.ephemeral)}')
        if self.stop_timeout is not None and (
            not isinstance(self.stop_timeout, (int, float)) or self.stop_timeout <= 0
        ):
            raise ConfigError(f'stop_timeout should be positive number, got {self.stop_timeout!r}')
        if not isinstance(self.http_host, str):
            raise ConfigError(f'http_host should be string and not {stype(self.http_host)}')
        if not isinstance(self.http_port, int):
            raise ConfigError(f'http_port should be int and not {stype(self.http_port)}')
