"""Per-build error aggregation and item results."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Generic, Iterable, List, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class ItemResult(Generic[T]):
    """Outcome of one item-processing step: a value or the error it raised."""

    value: Optional[T] = None
    error: Optional[BaseException] = None

    @classmethod
    def ok(cls, value: T) -> "ItemResult[T]":
        return cls(value=value)

    @classmethod
    def fail(cls, error: BaseException) -> "ItemResult[T]":
        return cls(error=error)

    @property
    def failed(self) -> bool:
        return self.error is not None


def capture(fn: Callable[..., T], *args, **kwargs) -> ItemResult[T]:
    """Run ``fn`` and fold any ``Exception`` it raises into an ``ItemResult``."""
    try:
        return ItemResult.ok(fn(*args, **kwargs))
    except Exception as exc:  # item isolation boundary
        return ItemResult.fail(exc)


@dataclass(frozen=True)
class LedgerEntry:
    key: str
    error: BaseException

    @property
    def message(self) -> str:
        return str(self.error) or type(self.error).__name__


class ErrorLedger:
    """Errors recorded during one build pass, grouped by item key."""

    def __init__(self) -> None:
        self._errors: Dict[str, List[BaseException]] = {}

    def record(self, key: str, error: BaseException) -> None:
        self._errors.setdefault(key, []).append(error)

    def record_result(self, key: str, result: ItemResult) -> bool:
        """Record ``result``'s error under ``key``; return True if it succeeded."""
        if result.error is not None:
            self.record(key, result.error)
            return False
        return True

    def keys(self) -> List[str]:
        return sorted(self._errors)

    def drain(self) -> List[LedgerEntry]:
        """Return all entries sorted by key, then insertion order, and empty the ledger."""
        entries = [
            LedgerEntry(key, error)
            for key in sorted(self._errors)
            for error in self._errors[key]
        ]
        self._errors.clear()
        return entries

    def __len__(self) -> int:
        return len(self._errors)

    def __bool__(self) -> bool:
        return bool(self._errors)


def format_entries(entries: Iterable[LedgerEntry]) -> str:
    return "\n".join(f"{entry.key}: {entry.message}" for entry in entries)


__all__ = ["ErrorLedger", "ItemResult", "LedgerEntry", "capture", "format_entries"]
