"""Helpers shared by the redis-embedded tests"""

import os
import shutil
import sys
import time

import pytest

from redis_embedded.exceptions import LaunchFailure, ShutdownFailure
from redis_embedded.instance import ProcessSpec
from redis_embedded.roles import SERVER_READY_PATTERN

FAKE_REDIS = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'utils', 'fake_redis.py')
REDIS_SERVER = os.environ.get('REDIS_EMBEDDED_SERVER_BINARY') or shutil.which('redis-server')
CONFIGS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'configs')


def fake_spec(port=6379, *flags, ready_pattern=SERVER_READY_PATTERN):
    """ProcessSpec that runs the fake redis script with extra flags."""
    args = [sys.executable, FAKE_REDIS, '--port', str(port)] + [str(flag) for flag in flags]
    return ProcessSpec(args=args, port=port, ready_pattern=ready_pattern)


def is_alive(pid):
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    return True


def assert_wait(condition, max_wait_time=10.0, retry_interval=0.05):
    """Wait for a condition to be true with timeout"""
    max_time = time.time() + max_wait_time
    while time.time() < max_time:
        if condition():
            return
        time.sleep(retry_interval)
    assert condition()


requires_redis = pytest.mark.skipif(REDIS_SERVER is None, reason='redis-server is not installed')


class RecordingInstance:
    """Stands in for a ProcessInstance and records start/stop calls."""

    def __init__(self, name, port, calls, fail_start=False, fail_stop=False):
        self.name = name
        self.port = port
        self.calls = calls
        self.fail_start = fail_start
        self.fail_stop = fail_stop
        self.active = False

    def start(self):
        self.calls.append(('start', self.name))
        if self.fail_start:
            raise LaunchFailure(f'{self.name} failed')
        self.active = True

    def stop(self):
        self.calls.append(('stop', self.name))
        if self.fail_stop:
            raise ShutdownFailure(f'{self.name} would not stop')
        self.active = False

    def is_active(self):
        return self.active

    def ports(self):
        return [self.port]
