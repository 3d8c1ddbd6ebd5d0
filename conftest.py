"""Global test configuration and shared fixtures."""

from __future__ import annotations

import typing as t

import pytest

from spawn_mox.controller import SpawnMox


@pytest.fixture(autouse=True)
def reset_active_controller() -> t.Generator[None, None, None]:
    """Ensure no ``SpawnMox`` hooks leak between tests."""
    SpawnMox.reset_active()
    yield
    SpawnMox.reset_active()
