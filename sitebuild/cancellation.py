"""Cooperative cancellation for build passes."""

from __future__ import annotations

from .logging import get_logger

logger = get_logger("cancellation")


class CancellationToken:
    """A one-way flag: once cancelled, always cancelled."""

    def __init__(self) -> None:
        self._cancelled = False
        self._reported = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def checkpoint(self, stage: str) -> bool:
        """Return True if work should stop before ``stage``."""
        if self._cancelled and not self._reported:
            self._reported = True
            logger.info("Cancelling build before %s", stage)
        return self._cancelled


__all__ = ["CancellationToken"]
