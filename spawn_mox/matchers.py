"""Matcher variants used to compare spawn requests against interceptor specs.

Each matcher is a callable receiving the positional values its field is
checked with: ``(command, args, options)`` for the command field, ``(args,)``
for the argument field and ``(options,)`` for the options field. Value
matchers only look at the first value; predicates receive all of them.
"""

from __future__ import annotations

import collections.abc as cabc
import re
import typing as t

ENV_OPTION: t.Final[str] = "env"

_MISSING: t.Final = object()


class FieldMatcher(t.Protocol):
    """Callable returning ``True`` when a spawn request field matches."""

    def __call__(self, *values: t.Any) -> bool:
        """Return ``True`` if *values* satisfy the matcher."""
        ...


class Anything:
    """Match any value; used for omitted specs."""

    def __call__(self, *values: t.Any) -> bool:
        """Return ``True`` for any input."""
        return True

    def __repr__(self) -> str:
        """Return a debug representation."""
        return "Anything()"


class Literal:
    """Match when the value equals ``expected``."""

    def __init__(self, expected: object) -> None:
        self.expected = expected

    def __call__(self, value: object, *_context: t.Any) -> bool:
        """Return ``True`` if *value* equals the expected literal."""
        return value == self.expected

    def __repr__(self) -> str:
        """Return a debug representation."""
        return f"Literal({self.expected!r})"


class Pattern:
    """Match if the regular expression is found anywhere in *value*."""

    def __init__(self, pattern: str | re.Pattern[str]) -> None:
        self._pattern = re.compile(pattern)

    @property
    def pattern(self) -> re.Pattern[str]:
        """Return the compiled expression."""
        return self._pattern

    def __call__(self, value: str, *_context: t.Any) -> bool:
        """Return ``True`` if the regex matches *value*."""
        return self._pattern.search(value) is not None

    def __repr__(self) -> str:
        """Return a debug representation."""
        return f"Pattern({self._pattern.pattern!r})"


class Predicate:
    """Use a custom ``func`` to determine a match."""

    def __init__(self, func: t.Callable[..., object]) -> None:
        self.func = func

    def __call__(self, *values: t.Any) -> bool:
        """Return ``True`` if ``func(*values)`` is truthy."""
        return bool(self.func(*values))

    def __repr__(self) -> str:
        """Return a debug representation."""
        return f"Predicate({self.func!r})"


class ExactArgs:
    """Match an argument list with the same values in the same order.

    Both sides are compared by their string forms, so ``[1]`` accepts an
    incoming ``("1",)``.
    """

    def __init__(self, expected: t.Iterable[object]) -> None:
        self.expected = list(expected)

    def __call__(self, args: t.Iterable[object]) -> bool:
        """Return ``True`` when *args* matches the expected list element-wise."""
        return [str(arg) for arg in args] == [str(arg) for arg in self.expected]

    def __repr__(self) -> str:
        """Return a debug representation."""
        return f"ExactArgs({self.expected!r})"


class PartialMap:
    """Match options containing every key of ``expected`` with equal values.

    The ``env`` key is compared entry by entry: the incoming environment may
    hold additional variables. A ``None`` value in the expected environment
    requires the variable to be unset.
    """

    def __init__(self, expected: t.Mapping[str, t.Any]) -> None:
        self.expected = dict(expected)

    def __call__(self, options: t.Mapping[str, t.Any]) -> bool:
        """Return ``True`` if *options* is a superset of the expected mapping."""
        for key, value in self.expected.items():
            if key == ENV_OPTION:
                continue
            if options.get(key, _MISSING) != value:
                return False
        if ENV_OPTION in self.expected:
            return _env_matches(self.expected[ENV_OPTION], options)
        return True

    def __repr__(self) -> str:
        """Return a debug representation."""
        return f"PartialMap({self.expected!r})"


def _env_matches(
    expected: t.Mapping[str, str | None] | None, options: t.Mapping[str, t.Any]
) -> bool:
    env = options.get(ENV_OPTION)
    if env is None:
        return False
    return all(env.get(key) == value for key, value in (expected or {}).items())


def command_matcher(spec: object) -> FieldMatcher:
    """Return the matcher for a command *spec*."""
    if callable(spec):
        return Predicate(spec)
    if isinstance(spec, re.Pattern):
        return Pattern(spec)
    return Literal(spec)


def args_matcher(spec: object) -> FieldMatcher:
    """Return the matcher for an argument *spec*; ``None`` accepts any args."""
    if spec is None:
        return Anything()
    if callable(spec):
        return Predicate(spec)
    if isinstance(spec, (str, bytes)):
        msg = f"args spec must be a sequence of strings, got {spec!r}"
        raise TypeError(msg)
    return ExactArgs(t.cast("t.Iterable[str]", spec))


def options_matcher(spec: object) -> FieldMatcher:
    """Return the matcher for an options *spec*; ``None`` accepts any options."""
    if spec is None:
        return Anything()
    if callable(spec):
        return Predicate(spec)
    if isinstance(spec, cabc.Mapping):
        return PartialMap(spec)
    msg = f"options spec must be a mapping or a callable, got {spec!r}"
    raise TypeError(msg)


__all__ = [
    "Anything",
    "ExactArgs",
    "FieldMatcher",
    "Literal",
    "PartialMap",
    "Pattern",
    "Predicate",
    "args_matcher",
    "command_matcher",
    "options_matcher",
]
