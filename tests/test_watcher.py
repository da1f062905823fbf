"""Tests for sitebuild.watcher."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import List

import pytest
from watchdog.events import (
    DirModifiedEvent,
    FileClosedEvent,
    FileCreatedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from sitebuild.builder import BuildError, BuildOutcome
from sitebuild.cancellation import CancellationToken
from sitebuild.ledger import LedgerEntry
from sitebuild.watcher import EXIT_SELF_CHANGED, ChangeHandler, WatchCoordinator
from tests._fixtures.site_builder import SiteBuilder


def test_new_rebuild_cancels_in_flight_one_before_taking_the_gate(site: SiteBuilder) -> None:
    async def scenario() -> None:
        started = asyncio.Event()
        release = asyncio.Event()
        tokens: List[CancellationToken] = []
        running = 0

        async def fake_build(config, token, *, within_watch):
            nonlocal running
            assert within_watch is True
            running += 1
            assert running == 1
            tokens.append(token)
            try:
                if len(tokens) == 1:
                    started.set()
                    await release.wait()
                    return BuildOutcome.CANCELLED if token.cancelled else BuildOutcome.SUCCEEDED
                return BuildOutcome.SUCCEEDED
            finally:
                running -= 1

        coordinator = WatchCoordinator(site.config(), build_fn=fake_build, tool_source_dir=None)
        first = asyncio.create_task(coordinator.rebuild())
        await started.wait()

        second = asyncio.create_task(coordinator.rebuild())
        await asyncio.sleep(0)

        # The second request has tripped the first token but is still waiting on the gate.
        assert len(tokens) == 1
        assert tokens[0].cancelled
        assert coordinator.current_token is not tokens[0]

        release.set()
        assert await first is BuildOutcome.CANCELLED
        assert await second is BuildOutcome.SUCCEEDED
        assert len(tokens) == 2
        assert not tokens[1].cancelled

    asyncio.run(scenario())


def test_superseded_real_build_leaves_newest_output(site: SiteBuilder) -> None:
    site.write({"pages/a.md": "old a\n", "pages/b.md": "old b\n"})

    async def scenario():
        coordinator = WatchCoordinator(site.config(), tool_source_dir=None)
        first = asyncio.create_task(coordinator.rebuild())
        await asyncio.sleep(0)
        site.write({"pages/a.md": "new a\n"})
        second = asyncio.create_task(coordinator.rebuild())
        return await asyncio.gather(first, second)

    first, second = asyncio.run(scenario())

    assert first is BuildOutcome.CANCELLED
    assert second is BuildOutcome.SUCCEEDED
    assert "new a" in site.output("a/index.html").read_text(encoding="utf-8")
    assert site.output("b/index.html").exists()
    assert site.output("_watch-date.txt").read_text(encoding="utf-8").isdigit()


def test_build_errors_do_not_escape_rebuild(site: SiteBuilder) -> None:
    async def failing(config, token, *, within_watch):
        raise BuildError([LedgerEntry("page: x.md", ValueError("bad"))])

    coordinator = WatchCoordinator(site.config(), build_fn=failing, tool_source_dir=None)

    assert asyncio.run(coordinator.rebuild()) is BuildOutcome.FAILED


def test_structural_errors_are_logged_and_swallowed(site: SiteBuilder) -> None:
    async def broken(config, token, *, within_watch):
        raise FileNotFoundError("main.css")

    coordinator = WatchCoordinator(site.config(), build_fn=broken, tool_source_dir=None)

    assert asyncio.run(coordinator.rebuild()) is None


def test_gate_is_released_after_failure(site: SiteBuilder) -> None:
    calls: List[int] = []

    async def flaky(config, token, *, within_watch):
        calls.append(1)
        if len(calls) == 1:
            raise OSError("disk full")
        return BuildOutcome.SUCCEEDED

    coordinator = WatchCoordinator(site.config(), build_fn=flaky, tool_source_dir=None)

    async def scenario():
        await coordinator.rebuild()
        return await asyncio.wait_for(coordinator.rebuild(), timeout=5)

    assert asyncio.run(scenario()) is BuildOutcome.SUCCEEDED


def test_run_returns_status_after_shutdown(site: SiteBuilder) -> None:
    outcomes: List[BuildOutcome] = []

    async def fake_build(config, token, *, within_watch):
        outcomes.append(BuildOutcome.SUCCEEDED)
        return BuildOutcome.SUCCEEDED

    coordinator = WatchCoordinator(site.config(), build_fn=fake_build, tool_source_dir=None)

    async def scenario() -> int:
        task = asyncio.create_task(coordinator.run())
        while not outcomes:
            await asyncio.sleep(0.01)
        coordinator.shutdown(EXIT_SELF_CHANGED)
        return await asyncio.wait_for(task, timeout=10)

    assert asyncio.run(scenario()) == EXIT_SELF_CHANGED
    assert outcomes == [BuildOutcome.SUCCEEDED]


def test_tool_source_change_ends_watch_with_restart_status(site: SiteBuilder, tmp_path: Path) -> None:
    tool_dir = tmp_path / "tool"
    tool_dir.mkdir()
    builds: List[CancellationToken] = []

    async def fake_build(config, token, *, within_watch):
        builds.append(token)
        return BuildOutcome.SUCCEEDED

    coordinator = WatchCoordinator(site.config(), build_fn=fake_build, tool_source_dir=tool_dir)

    async def scenario() -> int:
        task = asyncio.create_task(coordinator.run())
        # A page edit that rebuilds proves the observer is live.
        for attempt in range(200):
            if len(builds) > 1:
                break
            site.write({"pages/index.md": f"# Edit {attempt}\n"})
            await asyncio.sleep(0.05)
        assert len(builds) > 1

        (tool_dir / "builder.cpython-312.pyc").write_bytes(b"\x00")
        await asyncio.sleep(0.5)
        assert not task.done()

        for attempt in range(200):
            if task.done():
                break
            (tool_dir / "builder.py").write_text(f"# {attempt}\n", encoding="utf-8")
            await asyncio.sleep(0.05)
        return await asyncio.wait_for(task, timeout=10)

    assert asyncio.run(scenario()) == EXIT_SELF_CHANGED


def test_source_change_before_run_is_an_error(site: SiteBuilder) -> None:
    coordinator = WatchCoordinator(site.config(), tool_source_dir=None)

    with pytest.raises(RuntimeError):
        coordinator._on_tool_source_changed()


def test_trigger_schedules_rebuild_on_the_loop(site: SiteBuilder) -> None:
    seen: List[CancellationToken] = []
    done = None

    async def fake_build(config, token, *, within_watch):
        seen.append(token)
        if len(seen) == 2:
            done.set()
        return BuildOutcome.SUCCEEDED

    coordinator = WatchCoordinator(site.config(), build_fn=fake_build, tool_source_dir=None)

    async def scenario() -> int:
        nonlocal done
        done = asyncio.Event()
        task = asyncio.create_task(coordinator.run())
        while not seen:
            await asyncio.sleep(0.01)
        await asyncio.to_thread(coordinator.trigger)
        await asyncio.wait_for(done.wait(), timeout=10)
        coordinator.shutdown()
        return await asyncio.wait_for(task, timeout=10)

    assert asyncio.run(scenario()) == 0
    assert len(seen) == 2
    assert seen[0].cancelled


def _collect() -> tuple[List[int], ChangeHandler]:
    calls: List[int] = []
    return calls, ChangeHandler(lambda: calls.append(1))


def test_change_handler_reacts_to_file_changes(tmp_path: Path) -> None:
    calls, handler = _collect()

    handler.dispatch(FileModifiedEvent(str(tmp_path / "a.md")))
    handler.dispatch(FileCreatedEvent(str(tmp_path / "b.md")))

    assert len(calls) == 2


def test_change_handler_ignores_directories_and_reads(tmp_path: Path) -> None:
    calls, handler = _collect()

    handler.dispatch(DirModifiedEvent(str(tmp_path)))
    handler.dispatch(FileClosedEvent(str(tmp_path / "a.md")))

    assert calls == []


def test_change_handler_filters_to_watched_files(tmp_path: Path) -> None:
    calls: List[int] = []
    handler = ChangeHandler(lambda: calls.append(1), files={tmp_path / "main.css"})

    handler.dispatch(FileModifiedEvent(str(tmp_path / "other.css")))
    handler.dispatch(FileModifiedEvent(str(tmp_path / "main.css")))
    handler.dispatch(FileMovedEvent(str(tmp_path / "main.css.swp"), str(tmp_path / "main.css")))

    assert len(calls) == 2


def test_change_handler_filters_by_suffix(tmp_path: Path) -> None:
    calls: List[int] = []
    handler = ChangeHandler(lambda: calls.append(1), suffixes={".py"})

    handler.dispatch(FileModifiedEvent(str(tmp_path / "notes.txt")))
    handler.dispatch(FileModifiedEvent(str(tmp_path / "builder.py")))

    assert len(calls) == 1
