"""Resolution of mocked responses into a finished fake process."""

from __future__ import annotations

import asyncio
import dataclasses as dc
import inspect
import logging
import typing as t

if t.TYPE_CHECKING:  # pragma: no cover - used only for typing
    from .process import FakeProcess

logger = logging.getLogger(__name__)

Output = str | bytes | None


@dc.dataclass(slots=True)
class MockResponse:
    """Configured result of an interceptor.

    Each field holds either a literal or a deferred computation evaluated
    when the fake process completes.
    """

    exit_code: int | None | t.Callable[..., t.Any] = 0
    signal: object | None = None
    stdout: Output | t.Callable[..., t.Any] = None
    stderr: Output | t.Callable[..., t.Any] = None


@dc.dataclass(slots=True, frozen=True)
class ResolvedResponse:
    """Concrete values applied to a fake process."""

    exit_code: int | None
    signal: object | None
    stdout: Output
    stderr: Output


def call_deferred(func: t.Callable[..., t.Any], context: object) -> t.Any:
    """Invoke *func* with *context* when it accepts an argument.

    Zero-argument callables are invoked without arguments.
    """
    try:
        signature = inspect.signature(func)
        signature.bind(context)
    except (TypeError, ValueError):
        accepts_context = False
    else:
        accepts_context = True
    return func(context) if accepts_context else func()


async def resolve_value(value: object, context: object) -> t.Any:
    """Return the concrete value for a literal or deferred mock *value*."""
    if callable(value):
        value = call_deferred(value, context)
    if inspect.isawaitable(value):
        value = await value
    return value


async def resolve_response(response: MockResponse, context: object) -> ResolvedResponse:
    """Resolve every field of *response* concurrently."""
    exit_code, signal, stdout, stderr = await asyncio.gather(
        resolve_value(response.exit_code, context),
        resolve_value(response.signal, context),
        resolve_value(response.stdout, context),
        resolve_value(response.stderr, context),
    )
    return ResolvedResponse(
        exit_code=exit_code, signal=signal, stdout=stdout, stderr=stderr
    )


async def finish(
    process: FakeProcess, response: MockResponse, context: object
) -> ResolvedResponse:
    """Resolve *response* and complete *process* with it.

    Failures from deferred computations propagate after the output streams
    are closed.
    """
    try:
        resolved = await resolve_response(response, context)
    except BaseException:
        logger.debug("Resolving response for fake process %s failed", process.pid)
        process.abort()
        raise
    process.complete(resolved)
    return resolved


__all__ = [
    "MockResponse",
    "ResolvedResponse",
    "call_deferred",
    "finish",
    "resolve_response",
    "resolve_value",
]
