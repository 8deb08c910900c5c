"""
Pytest configuration and shared fixtures.
"""

import os
import sys
import pytest

sys.path.append(os.path.join(os.getcwd(), "src"))

from packstore.access_control import Actor, ActorRoster, Role
from packstore.events import BroadcastHub, InMemoryBroadcastChannel
from packstore.platform.config import Settings
from packstore.services import DataStorage, RemoteProxyChannel
from packstore.storage.sql_adapter import SqlAdapter
from packstore.storage.sql_engine import SqlDocumentEngine


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment() -> None:
    """Set up test environment variables."""
    os.environ.setdefault("APP_ENV", "test")
    os.environ.setdefault("LOG_LEVEL", "debug")


@pytest.fixture
def test_settings() -> Settings:
    """Settings with a short proxy timeout so timeout tests stay fast."""
    return Settings(_env_file=None, PROXY_TIMEOUT_SECONDS=0.2)


@pytest.fixture
def sql_adapter():
    adapter = SqlAdapter("sqlite://")
    adapter.connect()
    yield adapter
    adapter.close()


@pytest.fixture
async def engine(sql_adapter):
    engine = SqlDocumentEngine(sql_adapter)
    yield engine
    await engine.drain()


@pytest.fixture
def owner() -> Actor:
    return Actor(id="owner-1", name="Owner", role=Role.OWNER)


@pytest.fixture
def assistant() -> Actor:
    return Actor(id="assistant-1", name="Assistant", role=Role.ASSISTANT)


@pytest.fixture
def member() -> Actor:
    return Actor(id="member-1", name="Member", role=Role.MEMBER)


@pytest.fixture
async def storage(engine, owner, test_settings):
    """DataStorage acting for a privileged actor."""
    service = DataStorage(engine, owner, settings=test_settings)
    yield service
    await engine.drain()
    await service.close()


@pytest.fixture
async def other_storage(engine, assistant, test_settings):
    """A second privileged actor sharing the same document store."""
    service = DataStorage(engine, assistant, settings=test_settings)
    yield service
    await engine.drain()
    await service.close()


@pytest.fixture
def hub() -> BroadcastHub:
    return BroadcastHub()


@pytest.fixture
def roster(owner, assistant, member) -> ActorRoster:
    return ActorRoster([owner, assistant, member])


@pytest.fixture
async def member_storage(engine, member, hub, test_settings):
    """DataStorage for an unprivileged actor whose writes go through the proxy."""
    channel = InMemoryBroadcastChannel(hub)
    await channel.connect()
    proxy = RemoteProxyChannel(channel, member, settings=test_settings)
    await proxy.start()

    service = DataStorage(engine, member, proxy=proxy, settings=test_settings)
    yield service
    await engine.drain()
    await service.close()
    await channel.disconnect()
