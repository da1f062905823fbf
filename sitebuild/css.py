"""Stylesheet compilation: a chain of text transforms over the CSS entry point."""

from __future__ import annotations

import re
from functools import partial
from pathlib import Path
from typing import Callable, Optional, Sequence, Set

import csscompressor

from .logging import get_logger

logger = get_logger("css")

CssTransform = Callable[[str], str]

_IMPORT_RE = re.compile(
    r"""@import\s+(?:url\(\s*)?["']?(?P<target>[^"')\s;]+)["']?\s*\)?\s*;""",
    re.IGNORECASE,
)


def inline_imports(css: str, *, base_dir: Path, _seen: Optional[Set[Path]] = None) -> str:
    """Replace local ``@import`` rules with the imported file's (inlined) text.

    Remote imports (any URL with a scheme or starting with ``//``) are kept.
    A file already inlined once is dropped on later imports.
    """
    seen = _seen if _seen is not None else set()

    def _replace(match: re.Match) -> str:
        target = match.group("target")
        if "://" in target or target.startswith("//"):
            return match.group(0)
        path = (base_dir / target).resolve()
        if path in seen:
            return ""
        seen.add(path)
        text = path.read_text(encoding="utf-8")
        return inline_imports(text, base_dir=path.parent, _seen=seen)

    return _IMPORT_RE.sub(_replace, css)


def minify(css: str) -> str:
    return csscompressor.compress(css)


class CssPipeline:
    """Ordered transforms applied to the entry point's text."""

    def __init__(self, transforms: Sequence[CssTransform]) -> None:
        self.transforms = list(transforms)

    @classmethod
    def default(cls, entry_point: Path) -> "CssPipeline":
        return cls([partial(inline_imports, base_dir=Path(entry_point).parent), minify])

    def run(self, source: str) -> str:
        css = source
        for transform in self.transforms:
            css = transform(css)
        logger.debug("Compiled stylesheet: %d -> %d bytes", len(source), len(css))
        return css


__all__ = ["CssPipeline", "CssTransform", "inline_imports", "minify"]
