"""Test doubles for asyncio subprocess spawning.

Register interceptors describing the processes a test expects to start; while
a :class:`SpawnMox` controller is active, matching spawn requests receive a
:class:`FakeProcess` whose exit status and output come from the interceptor
instead of a real child process.
"""

from __future__ import annotations

from .controller import SpawnMox
from .errors import (
    LifecycleError,
    SpawnMoxError,
    UnexpectedSpawnError,
    UnfulfilledInterceptorError,
)
from .interceptor import Call, Interceptor
from .matcher import match
from .matchers import Anything, ExactArgs, Literal, PartialMap, Pattern, Predicate
from .normalize import SpawnRequest
from .process import FakeProcess, InertWriter
from .pytest_plugin import spawn_mox as spawn_mox_fixture
from .resolver import MockResponse, ResolvedResponse

__all__ = [
    "Anything",
    "Call",
    "ExactArgs",
    "FakeProcess",
    "InertWriter",
    "Interceptor",
    "LifecycleError",
    "Literal",
    "MockResponse",
    "PartialMap",
    "Pattern",
    "Predicate",
    "ResolvedResponse",
    "SpawnMox",
    "SpawnMoxError",
    "SpawnRequest",
    "UnexpectedSpawnError",
    "UnfulfilledInterceptorError",
    "match",
    "spawn_mox_fixture",
]
