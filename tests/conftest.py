from __future__ import annotations

import pytest
from _helpers import MemorySavingsStore
from django.core.cache import cache


@pytest.fixture(autouse=True)
def _clear_cache() -> None:
    cache.clear()


@pytest.fixture
def savings_store() -> MemorySavingsStore:
    return MemorySavingsStore()
