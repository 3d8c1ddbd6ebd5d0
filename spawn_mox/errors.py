"""Exception hierarchy for spawn-mox."""

from __future__ import annotations


class SpawnMoxError(Exception):
    """Base class for all spawn-mox errors."""


class LifecycleError(SpawnMoxError):
    """Raised when the controller is entered or exited out of sequence."""


class UnexpectedSpawnError(SpawnMoxError):
    """Raised when a spawn request matches no registered interceptor."""


class UnfulfilledInterceptorError(SpawnMoxError):
    """Raised when registered interceptors were never called."""


__all__ = [
    "LifecycleError",
    "SpawnMoxError",
    "UnexpectedSpawnError",
    "UnfulfilledInterceptorError",
]
