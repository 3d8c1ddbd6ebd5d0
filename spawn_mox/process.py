"""Synthetic process handle returned in place of a spawned subprocess."""

from __future__ import annotations

import asyncio
import collections
import contextlib
import itertools
import logging
import signal as signal_module
import typing as t

if t.TYPE_CHECKING:  # pragma: no cover - used only for typing
    from .resolver import ResolvedResponse

logger = logging.getLogger(__name__)

Listener = t.Callable[..., object]

SPAWN: t.Final[str] = "spawn"
EXIT: t.Final[str] = "exit"
CLOSE: t.Final[str] = "close"

_FIRST_FAKE_PID: t.Final[int] = 40000
_pids = itertools.count(_FIRST_FAKE_PID)


class EventFeed:
    """Minimal synchronous event emitter recording everything it emits."""

    def __init__(self) -> None:
        self._listeners: collections.defaultdict[str, list[Listener]] = (
            collections.defaultdict(list)
        )
        self.events: list[tuple[str, tuple[t.Any, ...]]] = []

    def on(self, event: str, listener: Listener) -> t.Self:
        """Call *listener* every time *event* is emitted."""
        self._listeners[event].append(listener)
        return self

    def once(self, event: str, listener: Listener) -> t.Self:
        """Call *listener* the next time *event* is emitted only."""

        def _once(*args: t.Any) -> object:
            self.off(event, _once)
            return listener(*args)

        return self.on(event, _once)

    def off(self, event: str, listener: Listener) -> t.Self:
        """Remove *listener*; unknown listeners are ignored."""
        with contextlib.suppress(ValueError):
            self._listeners[event].remove(listener)
        return self

    def emit(self, event: str, *args: t.Any) -> bool:
        """Record *event* and call its listeners in registration order.

        Returns ``True`` when at least one listener was called.
        """
        self.events.append((event, args))
        listeners = list(self._listeners.get(event, ()))
        for listener in listeners:
            listener(*args)
        return bool(listeners)

    @property
    def event_names(self) -> list[str]:
        """Return the names of the events emitted so far, in order."""
        return [name for name, _ in self.events]


class InertWriter:
    """Writable standard input that only records what was written."""

    def __init__(self) -> None:
        self.written = bytearray()
        self._closing = False

    def write(self, data: bytes | bytearray | memoryview) -> None:
        """Record *data*."""
        if self._closing:
            msg = "write to closed stdin"
            raise RuntimeError(msg)
        self.written.extend(data)

    def writelines(self, data: t.Iterable[bytes]) -> None:
        """Record each chunk in *data*."""
        for chunk in data:
            self.write(chunk)

    async def drain(self) -> None:
        """Return immediately; nothing consumes the data."""

    def can_write_eof(self) -> bool:
        """Return ``True``; EOF simply closes the writer."""
        return True

    def write_eof(self) -> None:
        """Close the writer."""
        self.close()

    def close(self) -> None:
        """Mark the writer closed."""
        self._closing = True

    def is_closing(self) -> bool:
        """Return ``True`` once :meth:`close` has been called."""
        return self._closing

    async def wait_closed(self) -> None:
        """Return immediately."""


def _encode(data: str | bytes | bytearray) -> bytes:
    if isinstance(data, str):
        return data.encode()
    return bytes(data)


def signal_returncode(sig: object) -> int | None:
    """Return the negative return code asyncio reports for *sig*, if known."""
    if sig is None:
        return None
    try:
        if isinstance(sig, str):
            return -int(signal_module.Signals[sig])
        return -int(signal_module.Signals(sig))
    except (KeyError, ValueError, TypeError):
        return None


class FakeProcess(EventFeed):
    """Process handle mimicking :class:`asyncio.subprocess.Process`.

    The handle emits ``spawn`` when created, then ``exit(code, signal)`` and
    ``close(code, signal)`` once :meth:`complete` runs. Output is only
    available after completion; both output streams are then closed.
    """

    def __init__(
        self,
        spawnargs: t.Sequence[str],
        *,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        super().__init__()
        self._loop = loop if loop is not None else asyncio.get_running_loop()
        self.pid = next(_pids)
        self.stdin = InertWriter()
        self.stdout = asyncio.StreamReader(loop=self._loop)
        self.stderr = asyncio.StreamReader(loop=self._loop)
        self.stdio = (self.stdin, self.stdout, self.stderr)
        self.spawnargs = list(spawnargs)
        self.exit_code: int | None = None
        self.signal_code: object | None = None
        self.returncode: int | None = None
        self.connected = True
        self._completion: asyncio.Future[t.Any] | None = None

    def __repr__(self) -> str:
        """Return a debug representation."""
        return f"<FakeProcess {self.pid} returncode={self.returncode!r}>"

    def start(self, resolution: t.Coroutine[t.Any, t.Any, t.Any]) -> None:
        """Emit ``spawn`` and schedule *resolution* on the event loop.

        The coroutine first runs on a later loop iteration, so ``exit`` and
        ``close`` are never emitted in the same turn as ``spawn``.
        """
        self.emit(SPAWN)
        self._completion = self._loop.create_task(resolution)

    def complete(self, response: ResolvedResponse) -> None:
        """Apply *response*, close the output streams and emit completion."""
        self.exit_code = response.exit_code
        self.signal_code = response.signal
        if response.exit_code is not None:
            self.returncode = response.exit_code
        else:
            self.returncode = signal_returncode(response.signal)
        self.connected = False
        if response.stdout:
            self.stdout.feed_data(_encode(response.stdout))
        self.stdout.feed_eof()
        if response.stderr:
            self.stderr.feed_data(_encode(response.stderr))
        self.stderr.feed_eof()
        logger.debug(
            "Fake process %s finished: exit_code=%r signal=%r",
            self.pid,
            response.exit_code,
            response.signal,
        )
        self.emit(EXIT, response.exit_code, response.signal)
        self.emit(CLOSE, response.exit_code, response.signal)

    def abort(self) -> None:
        """Close the output streams after a failed resolution."""
        self.connected = False
        self.stdout.feed_eof()
        self.stderr.feed_eof()

    @property
    def failure(self) -> BaseException | None:
        """Return the error that ended resolution, if it has failed."""
        task = self._completion
        if task is None or not task.done() or task.cancelled():
            return None
        return task.exception()

    async def wait(self) -> int | None:
        """Wait for completion and return :attr:`returncode`.

        Errors raised while resolving the mocked response are re-raised here.
        """
        if self._completion is None:
            msg = "fake process was never started"
            raise RuntimeError(msg)
        await asyncio.shield(self._completion)
        return self.returncode

    async def communicate(
        self,
        input: bytes | None = None,  # noqa: A002 - mirrors asyncio's signature
    ) -> tuple[bytes, bytes]:
        """Record *input*, wait for completion and return the output."""
        if input is not None:
            self.stdin.write(input)
        self.stdin.close()
        await self.wait()
        stdout, stderr = await asyncio.gather(self.stdout.read(), self.stderr.read())
        return stdout, stderr


__all__ = [
    "CLOSE",
    "EXIT",
    "SPAWN",
    "EventFeed",
    "FakeProcess",
    "InertWriter",
    "signal_returncode",
]
