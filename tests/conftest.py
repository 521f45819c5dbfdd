"""
Shared fixtures for the agent core tests
"""

import pytest

from opennova.supervisor import ActuationSupervisor

from mocks import FakeWorld, make_config


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def world():
    return FakeWorld()


@pytest.fixture
def supervisor():
    return ActuationSupervisor()
