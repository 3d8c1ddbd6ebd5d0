"""Reduce asyncio subprocess call shapes to a canonical spawn request."""

from __future__ import annotations

import dataclasses as dc
import os
import typing as t

SHELL_OPTION: t.Final[str] = "shell"


@dc.dataclass(slots=True, frozen=True)
class SpawnRequest:
    """The ``(command, args, options)`` triple every interceptor matches on."""

    command: str
    args: tuple[str, ...] = ()
    options: t.Mapping[str, t.Any] = dc.field(default_factory=dict)

    def __iter__(self) -> t.Iterator[t.Any]:
        """Unpack as ``command, args, options``."""
        return iter((self.command, self.args, self.options))


def _as_text(value: str | bytes | os.PathLike[str] | os.PathLike[bytes]) -> str:
    text = os.fspath(value)
    if isinstance(text, bytes):
        return os.fsdecode(text)
    return text


def build_request(
    command: str | bytes | os.PathLike[str] | os.PathLike[bytes],
    args: t.Iterable[str | bytes | os.PathLike[str] | os.PathLike[bytes]] | None = None,
    options: t.Mapping[str, t.Any] | None = None,
) -> SpawnRequest:
    """Return a :class:`SpawnRequest`, defaulting missing args and options."""
    return SpawnRequest(
        command=_as_text(command),
        args=tuple(_as_text(arg) for arg in args or ()),
        options=dict(options or {}),
    )


def from_exec(
    program: str | bytes | os.PathLike[str] | os.PathLike[bytes],
    *args: str | bytes | os.PathLike[str] | os.PathLike[bytes],
    **kwds: t.Any,
) -> SpawnRequest:
    """Normalize an ``asyncio.create_subprocess_exec`` call."""
    return build_request(program, args, kwds)


def from_shell(cmd: str | bytes, **kwds: t.Any) -> SpawnRequest:
    """Normalize an ``asyncio.create_subprocess_shell`` call.

    The whole command line becomes the command; ``shell`` is set in the options.
    """
    return build_request(cmd, (), {**kwds, SHELL_OPTION: True})


__all__ = ["SpawnRequest", "build_request", "from_exec", "from_shell"]
