from __future__ import annotations

import pytest
from fakes import FakeRuntime


@pytest.fixture
def fake_runtime() -> FakeRuntime:
    return FakeRuntime()
