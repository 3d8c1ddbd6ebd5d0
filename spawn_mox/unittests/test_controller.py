"""Unit tests for the SpawnMox controller."""

from __future__ import annotations

import asyncio
import asyncio.subprocess

import pytest

from spawn_mox import (
    LifecycleError,
    SpawnMox,
    UnexpectedSpawnError,
    UnfulfilledInterceptorError,
)
from spawn_mox.normalize import SpawnRequest

ORIGINAL_EXEC = asyncio.create_subprocess_exec
ORIGINAL_SHELL = asyncio.create_subprocess_shell


def test_spawn_returns_facade_in_registration_order() -> None:
    """Registered interceptors are kept in order and exposed as facades."""
    mox = SpawnMox()
    first = mox.spawn("ls")
    second = mox.spawn("git", ["status"])
    assert mox.interceptors == (first, second)
    assert mox.uncalled == (first, second)


def test_resolve_does_not_consume() -> None:
    """resolve() only looks for a match."""
    mox = SpawnMox()
    mox.spawn("ls")
    interceptor = mox.resolve("ls")
    assert interceptor is not None
    assert not interceptor.called
    assert mox.resolve("ls") is interceptor
    assert mox.resolve("cat") is None


def test_invalid_journal_size() -> None:
    """The journal limit must be positive."""
    with pytest.raises(ValueError, match="positive"):
        SpawnMox(max_journal_entries=0)


@pytest.mark.asyncio
async def test_exec_hook_dispatches_to_interceptor() -> None:
    """create_subprocess_exec returns the fake process while entered."""
    with SpawnMox() as mox:
        call = mox.spawn("ls", ["-l"]).stdout("total 0\n")
        process = await asyncio.create_subprocess_exec(
            "ls", "-l", stdout=asyncio.subprocess.PIPE
        )
        stdout, _ = await process.communicate()

    assert stdout == b"total 0\n"
    assert call.called
    assert call.process is process
    assert call.called_with == SpawnRequest(
        "ls", ("-l",), {"stdout": asyncio.subprocess.PIPE}
    )
    assert list(mox.journal) == [call.called_with]


@pytest.mark.asyncio
async def test_shell_hook_marks_shell_option() -> None:
    """Shell spawns match on the full command line and ``shell=True``."""
    with SpawnMox() as mox:
        call = mox.spawn("echo hi | wc -c", None, {"shell": True}).stdout("3\n")
        process = await asyncio.subprocess.create_subprocess_shell("echo hi | wc -c")
        assert await process.stdout.read() == b"3\n"
    assert call.called


@pytest.mark.asyncio
async def test_unexpected_spawn_raises_and_is_recorded() -> None:
    """Requests without a matching interceptor fail loudly."""
    mox = SpawnMox(verify_on_exit=False)
    mox.spawn("ls", ["-a"])
    with mox:
        with pytest.raises(UnexpectedSpawnError) as excinfo:
            await asyncio.create_subprocess_exec("ls", "-l")

    message = str(excinfo.value)
    assert "'ls', args: ['-l']" in message
    assert "uncalled spawn interceptor for command: 'ls', args: ['-a']" in message
    assert mox.unexpected == [SpawnRequest("ls", ("-l",), {})]
    with pytest.raises(UnexpectedSpawnError, match="Unexpected spawn requests"):
        mox.done()


def test_done_reports_uncalled_interceptors() -> None:
    """done() lists every interceptor that never ran."""
    mox = SpawnMox()
    mox.spawn("git", ["push"])
    with pytest.raises(UnfulfilledInterceptorError) as excinfo:
        mox.done()
    assert "uncalled spawn interceptor for command: 'git'" in str(excinfo.value)


@pytest.mark.asyncio
async def test_done_passes_when_all_called() -> None:
    """A fully consumed pool verifies cleanly."""
    mox = SpawnMox()
    mox.spawn("ls")
    await mox.run("ls").wait()
    assert mox.done() is True


def test_exit_verifies_by_default() -> None:
    """Leaving the context checks for uncalled interceptors."""
    mox = SpawnMox()
    mox.spawn("never")
    mox.__enter__()
    with pytest.raises(UnfulfilledInterceptorError):
        mox.__exit__(None, None, None)
    assert asyncio.create_subprocess_exec is ORIGINAL_EXEC


def test_exit_skips_verification_on_error() -> None:
    """An exception inside the block is not masked by verification."""
    mox = SpawnMox()
    mox.spawn("never")
    with pytest.raises(KeyError), mox:
        raise KeyError("boom")


def test_hooks_restored_after_exit() -> None:
    """The original asyncio functions come back after the block."""
    with SpawnMox(verify_on_exit=False) as mox:
        assert asyncio.create_subprocess_exec == mox.create_subprocess_exec
        assert asyncio.subprocess.create_subprocess_shell == (
            mox.create_subprocess_shell
        )
        assert SpawnMox.active() is mox
    assert asyncio.create_subprocess_exec is ORIGINAL_EXEC
    assert asyncio.create_subprocess_shell is ORIGINAL_SHELL
    assert asyncio.subprocess.create_subprocess_exec is ORIGINAL_EXEC
    assert SpawnMox.active() is None


def test_lifecycle_errors() -> None:
    """Double entry, nested controllers and stray exits are rejected."""
    mox = SpawnMox(verify_on_exit=False)
    with pytest.raises(LifecycleError):
        mox.__exit__(None, None, None)
    with mox:
        with pytest.raises(LifecycleError):
            mox.__enter__()
        with pytest.raises(LifecycleError):
            SpawnMox().__enter__()
    assert not mox.entered


def test_reset_active_restores_hooks() -> None:
    """reset_active() undoes a controller that was never exited."""
    mox = SpawnMox()
    mox.__enter__()
    SpawnMox.reset_active()
    assert asyncio.create_subprocess_exec is ORIGINAL_EXEC
    assert SpawnMox.active() is None
    assert not mox.entered
    with pytest.raises(LifecycleError):
        mox.__exit__(None, None, None)


@pytest.mark.asyncio
async def test_clean_drops_interceptors_and_history() -> None:
    """clean() empties the pool, the journal and the unexpected list."""
    mox = SpawnMox(max_journal_entries=1)
    mox.spawn("a")
    mox.spawn("b")
    await mox.run("a").wait()
    await mox.run("b").wait()
    assert [req.command for req in mox.journal] == ["b"]
    with pytest.raises(UnexpectedSpawnError):
        mox.run("c")

    mox.clean()
    assert mox.interceptors == ()
    assert not mox.journal
    assert mox.unexpected == []
    assert mox.done()


@pytest.mark.asyncio
async def test_same_request_needs_one_interceptor_per_call() -> None:
    """Each interceptor handles a single spawn."""
    mox = SpawnMox()
    mox.spawn("ls").exit(0)
    mox.spawn("ls").exit(1)

    assert await mox.run("ls").wait() == 0
    assert await mox.run("ls").wait() == 1
    with pytest.raises(UnexpectedSpawnError):
        mox.run("ls")


def _explode() -> str:
    msg = "mock computation failed"
    raise ValueError(msg)


@pytest.mark.asyncio
async def test_done_reraises_failed_resolution() -> None:
    """A failing mock value surfaces at verification even if nobody waited."""
    mox = SpawnMox()
    mox.spawn("ls").stdout(_explode)
    process = mox.run("ls")
    assert await process.stdout.read() == b""

    with pytest.raises(ValueError, match="mock computation failed"):
        mox.done()
    mox.clean()
    assert mox.done()


@pytest.mark.asyncio
async def test_exit_reports_failed_resolution() -> None:
    """Leaving the context verifies resolution failures before the pool."""
    mox = SpawnMox()
    mox.spawn("ls").stdout(_explode)
    mox.spawn("never")
    with pytest.raises(ValueError, match="mock computation failed"), mox:
        process = await asyncio.create_subprocess_exec("ls")
        await process.stdout.read()
