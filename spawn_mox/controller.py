"""SpawnMox controller: the interceptor pool and the asyncio spawn hooks."""

from __future__ import annotations

import asyncio
import asyncio.subprocess
import logging
import types  # noqa: TC003
import typing as t
from collections import deque
from textwrap import indent

from . import matcher
from .errors import LifecycleError, UnexpectedSpawnError, UnfulfilledInterceptorError
from .interceptor import ArgsSpec, Call, CommandSpec, Interceptor, OptionsSpec
from .normalize import SpawnRequest, build_request, from_exec, from_shell

if t.TYPE_CHECKING:  # pragma: no cover - used only for typing
    from .process import FakeProcess

logger = logging.getLogger(__name__)

_HOOKED_MODULES: t.Final[tuple[types.ModuleType, ...]] = (asyncio, asyncio.subprocess)
_HOOK_NAMES: t.Final[tuple[str, ...]] = (
    "create_subprocess_exec",
    "create_subprocess_shell",
)


def _format_requests(requests: t.Iterable[SpawnRequest]) -> str:
    lines = [
        f"{req.command!r}, args: {list(req.args)!r}, options: {dict(req.options)!r}"
        for req in requests
    ]
    return indent("\n".join(lines), "  ")


def _format_interceptors(interceptors: t.Iterable[Interceptor]) -> str:
    lines = [str(each) for each in interceptors] or ["(none registered)"]
    return indent("\n".join(lines), "  ")


class SpawnMox:
    """Pool of interceptors standing in for asyncio subprocess creation.

    Register interceptors with :meth:`spawn`. While the controller is entered
    as a context manager, ``asyncio.create_subprocess_exec`` and
    ``asyncio.create_subprocess_shell`` are routed to :meth:`dispatch`
    instead of starting real processes.
    """

    _active: t.ClassVar[SpawnMox | None] = None

    def __init__(
        self,
        *,
        verify_on_exit: bool = True,
        max_journal_entries: int | None = None,
    ) -> None:
        """Create a new controller.

        Parameters
        ----------
        verify_on_exit:
            When ``True`` (the default), leaving the context without an
            exception calls :meth:`done`, so uncalled interceptors fail the
            test.
        max_journal_entries:
            Maximum number of spawn requests retained in :attr:`journal`.
            When ``None``, the journal is unbounded.
        """
        if max_journal_entries is not None and max_journal_entries <= 0:
            msg = "max_journal_entries must be positive"
            raise ValueError(msg)

        self._verify_on_exit = verify_on_exit
        self._interceptors: list[Interceptor] = []
        self._saved_hooks: dict[tuple[types.ModuleType, str], t.Any] = {}
        self._entered = False
        self.journal: deque[SpawnRequest] = deque(maxlen=max_journal_entries)
        self.unexpected: list[SpawnRequest] = []
        self._processes: list[FakeProcess] = []

    # ------------------------------------------------------------------
    # Pool inspection
    # ------------------------------------------------------------------
    @property
    def interceptors(self) -> tuple[Call, ...]:
        """Return every registered interceptor, in registration order."""
        return tuple(each.api for each in self._interceptors)

    @property
    def uncalled(self) -> tuple[Call, ...]:
        """Return interceptors that have not handled a spawn yet."""
        return tuple(each.api for each in self._interceptors if not each.called)

    @property
    def entered(self) -> bool:
        """Return ``True`` while the spawn hooks are installed."""
        return self._entered

    @classmethod
    def active(cls) -> SpawnMox | None:
        """Return the controller whose hooks are currently installed."""
        return cls._active

    @classmethod
    def reset_active(cls) -> None:
        """Forget the active controller, restoring any hooks it installed."""
        current = cls._active
        if current is not None:
            current._uninstall_hooks()
            current._entered = False
        cls._active = None

    # ------------------------------------------------------------------
    # Context manager protocol
    # ------------------------------------------------------------------
    def __enter__(self) -> SpawnMox:
        """Install the spawn hooks."""
        if self._entered:
            msg = "SpawnMox context already entered"
            raise LifecycleError(msg)
        if SpawnMox._active is not None:
            msg = "another SpawnMox controller is already active"
            raise LifecycleError(msg)
        self._install_hooks()
        SpawnMox._active = self
        self._entered = True
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: types.TracebackType | None,
    ) -> None:
        """Restore the spawn hooks and optionally verify the pool."""
        if not self._entered:
            msg = "SpawnMox context exited without being entered"
            raise LifecycleError(msg)
        self._uninstall_hooks()
        if SpawnMox._active is self:
            SpawnMox._active = None
        self._entered = False
        if self._verify_on_exit and exc_type is None:
            self.done()

    def _install_hooks(self) -> None:
        for module in _HOOKED_MODULES:
            for name in _HOOK_NAMES:
                self._saved_hooks[(module, name)] = getattr(module, name)
                setattr(module, name, getattr(self, name))
        logger.debug("Installed asyncio subprocess hooks")

    def _uninstall_hooks(self) -> None:
        for (module, name), original in self._saved_hooks.items():
            setattr(module, name, original)
        if self._saved_hooks:
            logger.debug("Restored asyncio subprocess hooks")
        self._saved_hooks.clear()

    # ------------------------------------------------------------------
    # Registration and matching
    # ------------------------------------------------------------------
    def spawn(
        self,
        command: CommandSpec,
        args: ArgsSpec = None,
        options: OptionsSpec = None,
    ) -> Call:
        """Register an interceptor and return its :class:`Call` facade."""
        interceptor = Interceptor(command, args, options)
        self._interceptors.append(interceptor)
        logger.debug("Registered %s", interceptor)
        return interceptor.api

    def resolve(
        self,
        command: str,
        args: t.Sequence[str] = (),
        options: t.Mapping[str, t.Any] | None = None,
    ) -> Interceptor | None:
        """Return the first unused interceptor accepting the request."""
        return matcher.match(self._interceptors, command, args, options)

    def dispatch(self, request: SpawnRequest) -> FakeProcess:
        """Run the interceptor matching *request* and return its process.

        Raises
        ------
        UnexpectedSpawnError
            If no interceptor accepts *request*.
        """
        self.journal.append(request)
        command, args, options = request
        interceptor = self.resolve(command, args, options)
        if interceptor is None:
            self.unexpected.append(request)
            logger.warning("Unexpected spawn request: %r", request)
            msg = (
                "No interceptor matched spawn request:\n"
                f"{_format_requests([request])}\n"
                "Registered interceptors:\n"
                f"{_format_interceptors(self._interceptors)}"
            )
            raise UnexpectedSpawnError(msg)
        logger.debug("Spawn request %r matched %s", request, interceptor)
        process = interceptor.run(command, args, options)
        self._processes.append(process)
        return process

    def run(
        self,
        command: str,
        args: t.Iterable[str] | None = None,
        options: t.Mapping[str, t.Any] | None = None,
    ) -> FakeProcess:
        """Normalize a ``(command, args, options)`` triple and dispatch it."""
        return self.dispatch(build_request(command, args, options))

    async def create_subprocess_exec(
        self, program: str, *args: str, **kwds: t.Any
    ) -> FakeProcess:
        """Stand-in for :func:`asyncio.create_subprocess_exec`."""
        return self.dispatch(from_exec(program, *args, **kwds))

    async def create_subprocess_shell(self, cmd: str, **kwds: t.Any) -> FakeProcess:
        """Stand-in for :func:`asyncio.create_subprocess_shell`."""
        return self.dispatch(from_shell(cmd, **kwds))

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------
    def done(self) -> bool:
        """Return ``True`` when every interceptor ran and nothing was unexpected.

        Raises
        ------
        Exception
            The first error raised while resolving a dispatched process.
        UnexpectedSpawnError
            If any spawn request was left unmatched.
        UnfulfilledInterceptorError
            If any registered interceptor was never called.
        """
        for process in self._processes:
            failure = process.failure
            if failure is not None:
                raise failure
        if self.unexpected:
            msg = f"Unexpected spawn requests:\n{_format_requests(self.unexpected)}"
            raise UnexpectedSpawnError(msg)
        pending = [each for each in self._interceptors if not each.called]
        if pending:
            msg = f"Uncalled interceptors:\n{_format_interceptors(pending)}"
            raise UnfulfilledInterceptorError(msg)
        return True

    def clean(self) -> None:
        """Drop every interceptor and forget recorded requests."""
        self._interceptors.clear()
        self.journal.clear()
        self.unexpected.clear()
        self._processes.clear()


__all__ = ["SpawnMox"]
