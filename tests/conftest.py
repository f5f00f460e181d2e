"""Shared test fixtures for redis-embedded tests"""

import pytest

from redis_embedded.instance import ProcessInstance


@pytest.fixture
def instances():
    """Creates ProcessInstances and stops whatever is still active afterwards."""
    created = []

    def make(spec, **kwargs):
        instance = ProcessInstance(spec, **kwargs)
        created.append(instance)
        return instance

    yield make

    for instance in created:
        if instance.is_active():
            instance.stop()


@pytest.fixture
def sentinel_dir(tmp_path):
    path = tmp_path / 'sentinel'
    path.mkdir()
    return str(path)
