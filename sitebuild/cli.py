"""CLI entrypoints for sitebuild operations."""

from __future__ import annotations

import argparse
import asyncio
import os
import signal
from pathlib import Path
from typing import List, Optional, Sequence

from .builder import BuildError, build
from .config import ConfigError, SiteConfig, load_config
from .logging import configure_logging, get_logger
from .watcher import WatchCoordinator

logger = get_logger("cli")

OPERATIONS = ("build", "watch")
EXIT_UNKNOWN_OPERATION = 2
TERMINATION_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sitebuild",
        description="Build the static site, or rebuild it continuously while watching for changes.",
    )
    parser.add_argument(
        "op",
        nargs="?",
        default=None,
        help="Operation to run: build or watch (defaults to $OP, then build).",
    )
    parser.add_argument(
        "--root",
        default=".",
        help="Site root containing site.yml, pages/ and components/ (defaults to current directory).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Increase log verbosity for troubleshooting.",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write logs to this file.",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    operation = args.op or os.environ.get("OP") or "build"
    configure_logging(verbose=args.verbose, watch=operation == "watch", log_file=args.log_file)
    logger.info("Starting with operation: %s", operation)
    if operation not in OPERATIONS:
        logger.error("Unknown operation: %s", operation)
        return EXIT_UNKNOWN_OPERATION

    try:
        config = load_config(Path(args.root))
    except ConfigError as exc:
        logger.error("%s", exc)
        return 1

    if operation == "watch":
        return run_watch(config)
    return run_build(config)


def run_build(config: SiteConfig) -> int:
    try:
        asyncio.run(build(config))
    except BuildError as exc:
        logger.error("Build failed with errors in %d item(s)", len({e.key for e in exc.entries}))
        return 1
    except (OSError, ConfigError):
        logger.exception("Build aborted")
        return 1
    return 0


def run_watch(config: SiteConfig) -> int:
    coordinator = WatchCoordinator(config)
    received: List[int] = []
    status = asyncio.run(_watch(coordinator, received))
    if received:
        _reraise(received[0])
    return status


async def _watch(coordinator: WatchCoordinator, received: List[int]) -> int:
    loop = asyncio.get_running_loop()

    def _on_signal(signum: int) -> None:
        logger.info("Exiting due to %s", signal.Signals(signum).name)
        received.append(signum)
        coordinator.shutdown()

    for signum in TERMINATION_SIGNALS:
        loop.add_signal_handler(signum, _on_signal, signum)
    try:
        return await coordinator.run()
    finally:
        for signum in TERMINATION_SIGNALS:
            loop.remove_signal_handler(signum)


def _reraise(signum: int) -> None:
    """Deliver ``signum`` to this process again with its default disposition."""
    signal.signal(signum, signal.SIG_DFL)
    os.kill(os.getpid(), signum)


__all__ = ["OPERATIONS", "main", "run_build", "run_watch"]
