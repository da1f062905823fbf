"""Presentation classes applied to rendered markdown.

Class strings are Tailwind utilities; the stylesheet that defines them is the
site's own ``main.css``.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Mapping, Tuple

from .config import ConfigError


@dataclass(frozen=True)
class MarkdownTheme:
    headings: Tuple[str, ...] = (
        "mt-10 mb-6 font-serif text-4xl font-bold",
        "mt-8 mb-4 font-serif text-3xl font-bold",
        "mt-6 mb-3 font-serif text-2xl font-semibold",
        "mt-4 mb-2 text-xl font-semibold",
        "mt-4 mb-2 text-lg font-semibold",
        "mt-4 mb-2 font-semibold uppercase tracking-wide",
    )
    strong: str = "font-bold"
    heading_strong: str = "text-coral-bright"
    em: str = "italic"
    heading_em: str = "font-normal text-gray-500"
    paragraph: str = "my-4 leading-relaxed"
    link: str = "text-blue-bright underline hover:text-blue-pale"
    heading_link: str = "no-underline hover:underline"
    code_inline: str = "rounded bg-gray-100 px-1 font-mono text-sm"
    emphasized_code_inline: str = "text-coral-bright"
    code_block: str = "my-4 overflow-x-auto rounded bg-gray-900 p-4 font-mono text-sm text-white"
    blockquote: str = "my-4 border-l-4 border-sky-bright pl-4 text-gray-600"
    hr: str = "my-8 border-gray-300"
    table: str = "my-4 w-full border-collapse"
    table_cell: str = "border border-gray-300 px-2 py-1"
    image: str = "mx-auto max-w-full"
    bullet_list: str = "my-2 pl-6"
    ordered_list: str = "my-2 pl-6"
    bullet_items: Tuple[str, ...] = (
        "marker:text-red-bright",
        "marker:text-green-bright",
        "marker:text-yellow-bright",
    )
    ordered_items: Tuple[str, ...] = (
        "marker:font-bold",
        "marker:text-gray-500",
    )
    numbering_styles: Tuple[str, ...] = (
        "list-decimal",
        "list-[lower-alpha]",
        "list-[lower-roman]",
        "list-upper-alpha",
        "list-upper-roman",
    )
    external_rel: str = "external noopener noreferrer"

    @classmethod
    def from_mapping(cls, overrides: Mapping[str, Any]) -> "MarkdownTheme":
        """Return the default theme with ``overrides`` (from ``site.yml``) applied."""
        known = {f.name: f for f in fields(cls)}
        changes = {}
        for key, value in overrides.items():
            if key not in known:
                raise ConfigError(f"Unknown theme key '{key}'")
            default = getattr(cls, key)
            if isinstance(default, tuple):
                if isinstance(value, str) or not isinstance(value, (list, tuple)) or not value:
                    raise ConfigError(f"Theme key '{key}' must be a non-empty list of strings")
                changes[key] = tuple(str(item) for item in value)
            else:
                if not isinstance(value, str):
                    raise ConfigError(f"Theme key '{key}' must be a string")
                changes[key] = value
        return replace(cls(), **changes)


DEFAULT_THEME = MarkdownTheme()

__all__ = ["DEFAULT_THEME", "MarkdownTheme"]
