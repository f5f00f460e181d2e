# conftest.py
import os

import pytest

SERVER_BINARY_ENV = 'REDIS_EMBEDDED_SERVER_BINARY'


def pytest_addoption(parser):
    parser.addoption(
        "--redis-server",
        action="store",
        default=None,
        help="redis-server binary for integration tests (default: $REDIS_EMBEDDED_SERVER_BINARY or PATH)",
    )
    parser.addoption(
        "--skip-integration",
        action="store_true",
        default=False,
        help="Skip tests that launch a real redis-server",
    )


def pytest_configure(config):
    binary = config.getoption("--redis-server")
    if binary:
        os.environ[SERVER_BINARY_ENV] = binary


def pytest_collection_modifyitems(config, items):
    if not config.getoption("--skip-integration"):
        return
    skip_marker = pytest.mark.skip(reason="integration tests disabled with --skip-integration")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_marker)
