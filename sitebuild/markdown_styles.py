"""Markdown rendering with context-dependent presentation classes.

A core rule walks the parsed token stream in document order, tracking the
current heading level, emphasis flags and list nesting, and attaches classes
from a ``MarkdownTheme`` to each token. A failure on one token is reported
and the walk carries on with the next one.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from markdown_it import MarkdownIt
from markdown_it.rules_core import StateCore
from markdown_it.token import Token

from .logging import get_logger
from .models import PageContext
from .theme import DEFAULT_THEME, MarkdownTheme

logger = get_logger("markdown")

ABSOLUTE_URI = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.\-]*:")

ErrorCallback = Callable[[PageContext, BaseException], None]


class ListKind(enum.Enum):
    BULLET = "bullet"
    ORDERED = "ordered"


@dataclass
class StyleContext:
    heading_level: Optional[int] = None
    strong: bool = False
    em: bool = False
    list_stack: List[ListKind] = field(default_factory=list)

    @property
    def list_depth(self) -> int:
        return len(self.list_stack)

    def reset(self) -> None:
        self.heading_level = None
        self.strong = False
        self.em = False
        self.list_stack.clear()


def clamped_variant(variants: Sequence[str], depth: int) -> str:
    """Pick the variant for nesting ``depth`` (1-based); deeper levels reuse the last one."""
    return variants[min(depth - 1, len(variants) - 1)]


def _join(*classes: str) -> str:
    return " ".join(c for c in classes if c)


def markdown_styles(theme: MarkdownTheme, ctx: StyleContext, token: Token) -> str:
    """Return the class string for ``token`` in the current context."""
    kind = token.type
    if kind == "heading_open":
        return clamped_variant(theme.headings, ctx.heading_level)
    if kind == "strong_open":
        return theme.heading_strong if ctx.heading_level else theme.strong
    if kind == "em_open":
        return theme.heading_em if ctx.heading_level else theme.em
    if kind == "link_open":
        return theme.heading_link if ctx.heading_level else theme.link
    if kind == "paragraph_open":
        return theme.paragraph
    if kind == "code_inline":
        if ctx.strong or ctx.em:
            return _join(theme.code_inline, theme.emphasized_code_inline)
        return theme.code_inline
    if kind in ("fence", "code_block"):
        return theme.code_block
    if kind == "blockquote_open":
        return theme.blockquote
    if kind == "hr":
        return theme.hr
    if kind == "table_open":
        return theme.table
    if kind in ("th_open", "td_open"):
        return theme.table_cell
    if kind == "image":
        return theme.image
    if kind == "bullet_list_open":
        return theme.bullet_list
    if kind == "ordered_list_open":
        return _join(theme.ordered_list, clamped_variant(theme.numbering_styles, ctx.list_depth))
    if kind == "list_item_open":
        variants = (
            theme.ordered_items if ctx.list_stack[-1] is ListKind.ORDERED else theme.bullet_items
        )
        return clamped_variant(variants, ctx.list_depth)
    return ""


class StyleContextWalker:
    """Core rule that annotates tokens; one instance is reused across renders."""

    def __init__(self, theme: MarkdownTheme = DEFAULT_THEME) -> None:
        self.theme = theme
        self.context = StyleContext()

    def __call__(self, state: StateCore) -> None:
        page_ctx: Optional[PageContext] = state.env.get("page_ctx")
        on_error: Optional[ErrorCallback] = state.env.get("on_error")
        self.context.reset()
        try:
            self._walk(state.tokens, page_ctx, on_error)
        finally:
            self.context.reset()

    def _walk(
        self,
        tokens: Sequence[Token],
        page_ctx: Optional[PageContext],
        on_error: Optional[ErrorCallback],
    ) -> None:
        for token in tokens:
            try:
                self._apply(token)
            except Exception as exc:  # one bad token must not abort the page
                if on_error is not None and page_ctx is not None:
                    on_error(page_ctx, exc)
                else:
                    logger.warning("Failed to style %s token: %s", token.type, exc)
            if token.children:
                self._walk(token.children, page_ctx, on_error)

    def _apply(self, token: Token) -> None:
        ctx = self.context
        kind = token.type
        if kind == "heading_open":
            ctx.heading_level = int(token.tag[1:])
        elif kind == "heading_close":
            ctx.heading_level = None
        elif kind == "strong_open":
            ctx.strong = True
        elif kind == "strong_close":
            ctx.strong = False
        elif kind == "em_open":
            ctx.em = True
        elif kind == "em_close":
            ctx.em = False
        elif kind == "bullet_list_open":
            ctx.list_stack.append(ListKind.BULLET)
        elif kind == "ordered_list_open":
            ctx.list_stack.append(ListKind.ORDERED)
        elif kind in ("bullet_list_close", "ordered_list_close"):
            ctx.list_stack.pop()

        if kind in ("bullet_list_open", "ordered_list_open") and token.attrGet("role") is None:
            token.attrSet("role", "list")
        if kind == "link_open":
            href = token.attrGet("href")
            if isinstance(href, str) and ABSOLUTE_URI.match(href):
                token.attrSet("rel", self.theme.external_rel)

        styles = markdown_styles(self.theme, ctx, token).strip()
        if styles:
            token.attrJoin("class", styles)


class MarkdownRenderer:
    """CommonMark renderer (raw HTML allowed) with the style walker installed."""

    def __init__(self, theme: MarkdownTheme = DEFAULT_THEME) -> None:
        self.walker = StyleContextWalker(theme)
        self.md = MarkdownIt("commonmark", {"html": True}).enable(["table", "strikethrough"])
        self.md.core.ruler.push("style_classes", self.walker)

    def render(
        self,
        source: str,
        page_ctx: Optional[PageContext] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> str:
        return self.md.render(source, {"page_ctx": page_ctx, "on_error": on_error})


__all__ = [
    "ListKind",
    "MarkdownRenderer",
    "StyleContext",
    "StyleContextWalker",
    "clamped_variant",
    "markdown_styles",
]
