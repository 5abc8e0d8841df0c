from __future__ import annotations

import pytest
from fakes import FakeBackend, make_pool

from stormswarm.llm.backend import BackendPool
from stormswarm.swarm.profiles import BackendId


@pytest.fixture
def fake_backends() -> dict[BackendId, FakeBackend]:
    return {b: FakeBackend(b) for b in BackendId}


@pytest.fixture
def backend_pool(fake_backends: dict[BackendId, FakeBackend]) -> BackendPool:
    return make_pool(*fake_backends.values())
