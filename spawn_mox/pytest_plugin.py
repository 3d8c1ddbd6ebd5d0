"""Pytest plugin providing the ``spawn_mox`` fixture."""

from __future__ import annotations

import logging
import typing as t

import pytest

from .controller import SpawnMox

logger = logging.getLogger(__name__)


def pytest_addoption(parser: pytest.Parser) -> None:
    """Register command-line and ini options for the plugin."""
    group = parser.getgroup("spawn_mox")
    group.addoption(
        "--spawn-mox-verify",
        action="store_true",
        dest="spawn_mox_verify_on_exit",
        default=None,
        help=(
            "Fail tests whose spawn_mox interceptors were never called. "
            "Overrides the pytest.ini setting."
        ),
    )
    group.addoption(
        "--no-spawn-mox-verify",
        action="store_false",
        dest="spawn_mox_verify_on_exit",
        default=None,
        help=(
            "Skip verification of spawn_mox interceptors during teardown. "
            "Overrides the pytest.ini setting."
        ),
    )
    parser.addini(
        "spawn_mox_verify_on_exit",
        "Verify that every spawn_mox interceptor was called during teardown.",
        type="bool",
        default=True,
    )


def pytest_configure(config: pytest.Config) -> None:
    """Register plugin-specific markers."""
    config.addinivalue_line(
        "markers",
        (
            "spawn_mox(verify_on_exit: bool = True): override interceptor "
            "verification during teardown for a single test."
        ),
    )


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(
    item: pytest.Item, call: pytest.CallInfo[t.Any]
) -> t.Generator[None, None, None]:
    """Attach each phase report to the item so teardown can inspect it."""
    del call
    outcome = yield
    rep = outcome.get_result()
    setattr(item, f"rep_{rep.when}", rep)


def _verify_enabled(request: pytest.FixtureRequest) -> bool:
    """Return whether the fixture should verify the pool during teardown."""
    # Priority order: marker > CLI option > INI setting
    marker = request.node.get_closest_marker("spawn_mox")
    if marker is not None and "verify_on_exit" in marker.kwargs:
        return bool(marker.kwargs["verify_on_exit"])

    config = request.config
    cli_value = config.getoption("spawn_mox_verify_on_exit")
    if cli_value is not None:
        return bool(cli_value)

    return bool(config.getini("spawn_mox_verify_on_exit"))


def _call_stage_failed(item: pytest.Item) -> bool:
    """Return ``True`` when the test body has already failed."""
    rep_call = getattr(item, "rep_call", None)
    return bool(rep_call and rep_call.failed)


@pytest.fixture
def spawn_mox(request: pytest.FixtureRequest) -> t.Generator[SpawnMox, None, None]:
    """Provide a :class:`SpawnMox` with the asyncio spawn hooks installed."""
    mox = SpawnMox(verify_on_exit=False)
    should_verify = _verify_enabled(request)
    mox.__enter__()
    try:
        yield mox
    finally:
        mox.__exit__(None, None, None)
    if should_verify and not _call_stage_failed(request.node):
        try:
            mox.done()
        except Exception as err:
            logger.exception("Error during spawn_mox verification")
            pytest.fail(f"{type(err).__name__}: {err}")


__all__ = ["spawn_mox"]
