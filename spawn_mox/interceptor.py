"""Interceptors: registered expectations for spawn requests."""

from __future__ import annotations

import asyncio
import logging
import re
import typing as t

from .matchers import args_matcher, command_matcher, options_matcher
from .normalize import SpawnRequest
from .process import FakeProcess
from .resolver import MockResponse, finish

logger = logging.getLogger(__name__)

CommandSpec: t.TypeAlias = str | re.Pattern[str] | t.Callable[..., object]
ArgsSpec: t.TypeAlias = t.Sequence[str] | t.Callable[..., object] | None
OptionsSpec: t.TypeAlias = t.Mapping[str, t.Any] | t.Callable[..., object] | None


class Call:
    """Public view of an :class:`Interceptor`.

    Registration returns this object. The setters configure the mocked
    result and return ``self`` so they can be chained; the properties let
    tests inspect how the interceptor was used. Deferred values passed to
    the setters receive this object when they accept an argument.
    """

    __slots__ = ("_interceptor",)

    def __init__(self, interceptor: Interceptor) -> None:
        self._interceptor = interceptor

    @property
    def command(self) -> CommandSpec:
        """Return the registered command spec."""
        return self._interceptor.command

    @property
    def args(self) -> ArgsSpec:
        """Return the registered args spec, if any."""
        return self._interceptor.args

    @property
    def options(self) -> OptionsSpec:
        """Return the registered options spec, if any."""
        return self._interceptor.options

    @property
    def called(self) -> bool:
        """Return ``True`` once the interceptor has handled a spawn."""
        return self._interceptor.called

    @property
    def called_with(self) -> SpawnRequest | None:
        """Return the request that was intercepted, or ``None`` if uncalled."""
        if self.called:
            return self._interceptor.called_with
        return None

    @property
    def process(self) -> FakeProcess | None:
        """Return the fake process created when the interceptor was called."""
        return self._interceptor.process

    @property
    def description(self) -> str:
        """Return a human readable summary of the interceptor."""
        prefix = "called" if self.called else "uncalled"
        description = f"{prefix} spawn interceptor for command: {self.command!r}"
        if self.args is not None:
            description = f"{description}, args: {self.args!r}"
        if self.options is not None:
            description = f"{description}, options: {self.options!r}"
        return description

    def __str__(self) -> str:
        """Return :attr:`description`."""
        return self.description

    def __repr__(self) -> str:
        """Return a debug representation."""
        return f"<Call {self.description}>"

    def exit(self, code: int | None | t.Callable[..., t.Any]) -> Call:
        """Set the exit code reported by the fake process."""
        self._interceptor.response.exit_code = code
        return self

    def signal(self, sig: object) -> Call:
        """Set the signal reported by the fake process."""
        self._interceptor.response.signal = sig
        return self

    def stdout(self, data: str | bytes | t.Callable[..., t.Any] | None) -> Call:
        """Set the data written to standard output."""
        self._interceptor.response.stdout = data
        return self

    def stderr(self, data: str | bytes | t.Callable[..., t.Any] | None) -> Call:
        """Set the data written to standard error."""
        self._interceptor.response.stderr = data
        return self


class Interceptor:
    """Single-use expectation for one spawn request."""

    def __init__(
        self,
        command: CommandSpec,
        args: ArgsSpec = None,
        options: OptionsSpec = None,
    ) -> None:
        self.command = command
        self.args = args
        self.options = options
        self._match_command = command_matcher(command)
        self._match_args = args_matcher(args)
        self._match_options = options_matcher(options)
        self.response = MockResponse()
        self.called = False
        self.called_with: SpawnRequest | None = None
        self.process: FakeProcess | None = None
        self.api = Call(self)

    def __str__(self) -> str:
        """Return the facade description."""
        return self.api.description

    def match(
        self,
        command: str,
        args: t.Sequence[str] = (),
        options: t.Mapping[str, t.Any] | None = None,
    ) -> bool:
        """Return ``True`` if this interceptor accepts the request.

        Called interceptors never match. Matching does not consume the
        interceptor; :meth:`run` does.
        """
        if self.called:
            return False
        options = {} if options is None else options
        return (
            self._match_command(command, args, options)
            and self._match_args(args)
            and self._match_options(options)
        )

    def run(
        self,
        command: str,
        args: t.Sequence[str] = (),
        options: t.Mapping[str, t.Any] | None = None,
    ) -> FakeProcess:
        """Consume the interceptor and return a fake process for the request.

        The interceptor is marked called before anything is scheduled. The
        returned process has already emitted ``spawn``; ``exit`` and
        ``close`` follow once the mocked response has been resolved on the
        running event loop.
        """
        loop = asyncio.get_running_loop()
        request = SpawnRequest(
            command=command,
            args=tuple(args),
            options={} if options is None else options,
        )
        self.called = True
        self.called_with = request
        logger.debug("Interceptor consumed: %s", self)

        process = FakeProcess(request.args, loop=loop)
        self.process = process
        process.start(finish(process, self.response, self.api))
        return process


__all__ = ["ArgsSpec", "Call", "CommandSpec", "Interceptor", "OptionsSpec"]
