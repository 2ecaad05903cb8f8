import random

import pytest

from helpers import FakeClock
from tilecraft.engine import GameEngine
from tilecraft.store import WorldStore
from world import provider


@pytest.fixture(autouse=True)
def _cold_layout_cache():
    provider.invalidate()
    yield
    provider.invalidate()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(tmp_path):
    s = WorldStore(str(tmp_path / 'database.json'), rng=random.Random(7))
    s.set_seed(1337)
    return s


@pytest.fixture
def engine(store, clock):
    return GameEngine(store, clock=clock, cooldown_seconds=0.95)
