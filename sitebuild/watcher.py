"""Watch mode: rebuild on change, one pass at a time, stale passes cancelled."""

from __future__ import annotations

import asyncio
import os
from collections import defaultdict
from pathlib import Path
from typing import Awaitable, Callable, Dict, Iterable, Optional, Set

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from .builder import BuildError, BuildOutcome, build
from .cancellation import CancellationToken
from .config import SiteConfig
from .logging import get_logger

logger = get_logger("watch")

EXIT_SELF_CHANGED = 5
TOOL_SOURCE_DIR = Path(__file__).resolve().parent

# Open/close events fire on every read, including the build's own.
_RELEVANT_EVENTS = {EVENT_TYPE_CREATED, EVENT_TYPE_DELETED, EVENT_TYPE_MODIFIED, EVENT_TYPE_MOVED}

BuildFn = Callable[..., Awaitable[BuildOutcome]]


class ChangeHandler(FileSystemEventHandler):
    """Calls ``callback`` for file changes, optionally limited to some files or suffixes."""

    def __init__(
        self,
        callback: Callable[[], None],
        *,
        files: Optional[Set[Path]] = None,
        suffixes: Optional[Set[str]] = None,
    ) -> None:
        self.callback = callback
        self.files = files
        self.suffixes = suffixes

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in _RELEVANT_EVENTS:
            return
        paths = {Path(os.fsdecode(event.src_path))}
        dest_path = getattr(event, "dest_path", "")
        if dest_path:
            paths.add(Path(os.fsdecode(dest_path)))
        if self.files is not None and not paths & self.files:
            return
        if self.suffixes is not None and not any(p.suffix in self.suffixes for p in paths):
            return
        logger.debug("Change detected: %s %s", event.event_type, event.src_path)
        self.callback()


class WatchCoordinator:
    """Serializes rebuilds behind one gate and cancels superseded ones.

    Each rebuild trips the previous pass's token before waiting on the gate,
    so a pass that has gone stale stops at its next checkpoint while the
    newest one always runs to completion after it.
    """

    def __init__(
        self,
        config: SiteConfig,
        *,
        build_fn: BuildFn = build,
        tool_source_dir: Optional[Path] = TOOL_SOURCE_DIR,
    ) -> None:
        self.config = config
        self.build_fn = build_fn
        self.tool_source_dir = tool_source_dir
        self.exit_status = 0
        self._gate = asyncio.Lock()
        self._lifetime: Optional[CancellationToken] = None
        self._stop = asyncio.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._pending: Set[asyncio.Task] = set()

    @property
    def current_token(self) -> Optional[CancellationToken]:
        return self._lifetime

    async def rebuild(self) -> Optional[BuildOutcome]:
        """Run one pass in watch mode; returns None if it aborted on a structural error."""
        if self._lifetime is not None:
            self._lifetime.cancel()
        token = CancellationToken()
        self._lifetime = token

        async with self._gate:
            logger.info("Building...")
            try:
                return await self.build_fn(self.config, token, within_watch=True)
            except BuildError:
                # Already reported by the pass and surfaced on the diagnostics page.
                return BuildOutcome.FAILED
            except Exception:
                logger.exception("Build aborted")
                return None
            finally:
                logger.info("Done building")

    def trigger(self) -> None:
        """Request a rebuild; safe to call from watchdog's observer thread."""
        if self._loop is None:
            raise RuntimeError("WatchCoordinator.trigger() called before run()")
        self._loop.call_soon_threadsafe(self._spawn_rebuild)

    def _spawn_rebuild(self) -> None:
        if self._stop.is_set():
            return
        task = asyncio.get_running_loop().create_task(self.rebuild())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def shutdown(self, status: int = 0) -> None:
        """Stop watching; ``run()`` returns ``status``. Call from the event loop."""
        if not self._stop.is_set():
            self.exit_status = status
            self._stop.set()

    def _on_tool_source_changed(self) -> None:
        if self._loop is None:
            raise RuntimeError("WatchCoordinator received a source change before run()")
        logger.warning("Build tool source changed; exiting with status %d", EXIT_SELF_CHANGED)
        self._loop.call_soon_threadsafe(self.shutdown, EXIT_SELF_CHANGED)

    def watched_directories(self) -> Iterable[Path]:
        return (self.config.components_dir, self.config.pages_dir)

    def watched_files(self) -> Iterable[Path]:
        return (self.config.css_entry, self.config.watch_client, self.config.config_file)

    def _schedule(self, observer: Observer) -> None:
        handler = ChangeHandler(self.trigger)
        for directory in self.watched_directories():
            if directory.is_dir():
                observer.schedule(handler, str(directory), recursive=True)
                logger.info("Watching: %s", directory)
            else:
                logger.warning("Not watching missing directory %s", directory)

        by_parent: Dict[Path, Set[Path]] = defaultdict(set)
        for path in self.watched_files():
            by_parent[path.parent].add(path)
        for parent, files in by_parent.items():
            if parent.is_dir():
                observer.schedule(ChangeHandler(self.trigger, files=files), str(parent), recursive=False)

        if self.tool_source_dir is not None and self.tool_source_dir.is_dir():
            observer.schedule(
                ChangeHandler(self._on_tool_source_changed, suffixes={".py"}),
                str(self.tool_source_dir),
                recursive=True,
            )

    async def run(self) -> int:
        """Build, then rebuild on every change until shut down; returns the exit status."""
        self._loop = asyncio.get_running_loop()
        await self.rebuild()
        if self._stop.is_set():
            return self.exit_status

        observer = Observer()
        self._schedule(observer)
        observer.start()
        try:
            await self._stop.wait()
        finally:
            observer.stop()
            observer.join()
            if self._lifetime is not None:
                self._lifetime.cancel()
            if self._pending:
                await asyncio.gather(*self._pending, return_exceptions=True)
        return self.exit_status


__all__ = ["ChangeHandler", "EXIT_SELF_CHANGED", "WatchCoordinator"]
