"""Front matter extraction for content files and components."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import yaml

from .logging import get_logger

OPENING_MARKER = "<script frontmatter>"
CLOSING_MARKER = "</script>"

logger = get_logger("frontmatter")


class FrontMatterError(ValueError):
    """Raised when a front matter block cannot be loaded into a mapping."""


@dataclass
class FrontMatterResult:
    body: str
    data: Dict[str, Any] = field(default_factory=dict)


def parse_front_matter(
    text: str,
    *,
    seed: Optional[Mapping[str, Any]] = None,
    source: str = "<string>",
) -> FrontMatterResult:
    """Split a leading front matter block from ``text``.

    Text that does not start with the opening marker line is returned
    untouched with empty data. Otherwise the block is loaded as YAML on top of
    a copy of ``seed``.
    """
    if not text.startswith(OPENING_MARKER + "\n"):
        return FrontMatterResult(body=text)

    lines = text.split("\n")
    index = 1
    closed = False
    while index < len(lines):
        line = lines[index]
        index += 1
        if line == CLOSING_MARKER:
            closed = True
            break

    if not closed:
        # Unterminated: the body is empty and the final line is dropped from the block.
        logger.warning("Front matter in %s has no closing %s; body is empty", source, CLOSING_MARKER)
    block = lines[1 : index - 1]
    body = "\n".join(lines[index:])

    scope: Dict[str, Any] = dict(seed or {})
    scope.update(_load_block("\n".join(block), source))
    return FrontMatterResult(body=body, data=scope)


def _load_block(block: str, source: str) -> Dict[str, Any]:
    try:
        loaded = yaml.safe_load(block)
    except yaml.YAMLError as exc:
        raise FrontMatterError(f"Invalid front matter in {source}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise FrontMatterError(
            f"Front matter in {source} must be a mapping, got {type(loaded).__name__}"
        )
    return {str(key): value for key, value in loaded.items()}


__all__ = [
    "CLOSING_MARKER",
    "FrontMatterError",
    "FrontMatterResult",
    "OPENING_MARKER",
    "parse_front_matter",
]
