"""Shared data structures for the build pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePath


@dataclass(frozen=True)
class PageContext:
    """Identifies the page being built so failures can be attributed to it."""

    source_relative_path: str
    error_key: str

    @classmethod
    def for_page(cls, relative_path: PurePath | str) -> "PageContext":
        rel = PurePath(relative_path).as_posix()
        return cls(source_relative_path=rel, error_key=page_error_key(rel))


def page_error_key(relative_path: str) -> str:
    return f"page: {relative_path}"


def component_error_key(name: str) -> str:
    return f"component: {name}"


def css_error_key(entry_name: str) -> str:
    return f"css: {entry_name}"


__all__ = ["PageContext", "component_error_key", "css_error_key", "page_error_key"]
