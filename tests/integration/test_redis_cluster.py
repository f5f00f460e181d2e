"""Launches real redis-server processes; skipped when redis-server is not on PATH"""

import os
import socket

import pytest

from redis_embedded.cluster import RedisClusterBuilder
from redis_embedded.ports import EphemeralPortProvider
from redis_embedded.server import SentinelConfig, ServerConfig
from tests.common import REDIS_SERVER, requires_redis

pytestmark = [pytest.mark.integration, requires_redis]


def ping(port):
    with socket.create_connection(('127.0.0.1', port), timeout=5) as s:
        s.sendall(b'PING\r\n')
        return s.recv(64)


def is_listening(port):
    try:
        with socket.create_connection(('127.0.0.1', port), timeout=1):
            return True
    except OSError:
        return False


def test_standalone_server(tmp_path):
    port = EphemeralPortProvider().next()
    config = ServerConfig(executable=REDIS_SERVER).port(port).setting('--save', '', '--dir', str(tmp_path))
    with config.instance() as server:
        assert server.is_active()
        assert ping(port) == b'+PONG\r\n'
    assert not is_listening(port)


def test_master_replica_and_sentinels(tmp_path, sentinel_dir):
    cluster = (
        RedisClusterBuilder()
        .with_server_config(lambda: ServerConfig(executable=REDIS_SERVER).setting('--save', '', '--dir', str(tmp_path)))
        .with_sentinel_config(lambda: SentinelConfig(executable=REDIS_SERVER, config_dir=sentinel_dir))
        .ephemeral()
        .sentinel_count(2)
        .quorum_size(2)
        .replication_group('master1', 1)
        .build()
    )

    with cluster:
        assert cluster.is_active()
        for port in cluster.ports():
            assert ping(port) == b'+PONG\r\n'

    assert not cluster.is_active()
    for port in cluster.ports():
        assert not is_listening(port)
    assert os.listdir(sentinel_dir) == []
