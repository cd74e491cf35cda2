from __future__ import annotations

import pytest

from opstate import LoadingManager


@pytest.fixture()
def manager():
    """A fresh manager per test; pending retry timers are disarmed afterwards."""
    m = LoadingManager()
    yield m
    m.clear()
