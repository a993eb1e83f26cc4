import pytest

from pump_signals.cache import MarketCache
from pump_signals.snapshot_store import SnapshotStore
from pump_signals.tests.fakes import FakeRedis, FakeRepository, Recorder


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def market_cache(fake_redis):
    return MarketCache(fake_redis)


@pytest.fixture
def repository():
    return FakeRepository()


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def snapshot_store():
    return SnapshotStore()
