"""Selection of the interceptor that handles a spawn request."""

from __future__ import annotations

import typing as t

if t.TYPE_CHECKING:  # pragma: no cover - used only for typing
    from .interceptor import Interceptor


def match(
    interceptors: t.Iterable[Interceptor],
    command: str,
    args: t.Sequence[str] = (),
    options: t.Mapping[str, t.Any] | None = None,
) -> Interceptor | None:
    """Return the first interceptor in *interceptors* accepting the request.

    Interceptors are tried in iteration order, which is registration order for
    :class:`~spawn_mox.controller.SpawnMox`. Nothing is mutated; the caller
    decides what to do with the winner or with ``None``.
    """
    options = {} if options is None else options
    return next(
        (each for each in interceptors if each.match(command, args, options)),
        None,
    )


__all__ = ["match"]
