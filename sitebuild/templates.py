"""Jinja2 partial registry and layout composition."""

from __future__ import annotations

from pathlib import PurePath
from typing import Any, Dict, Mapping, Optional

from jinja2 import ChoiceLoader, DictLoader, Environment, pass_context
from jinja2.runtime import Context
from markupsafe import Markup

from .frontmatter import parse_front_matter

DEFAULT_LAYOUT = "base"

_FALLBACK_TEMPLATES = {
    "layout-base": """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{{ title or site_title }}</title>
<link rel="stylesheet" href="/main.css">
</head>
<body>
{{ content }}
</body>
</html>
""",
}


def component_name(relative_path: PurePath | str) -> str:
    """``layout/base.html`` -> ``layout-base``."""
    name = "-".join(PurePath(relative_path).parts)
    return name[: -len(".html")] if name.endswith(".html") else name


def layout_template(name: str) -> str:
    return f"layout-{name}"


class TemplateComposer:
    """Registers component partials and renders pages through them."""

    def __init__(self, seed: Optional[Mapping[str, Any]] = None) -> None:
        self.seed: Dict[str, Any] = dict(seed or {})
        self._sources: Dict[str, str] = {}
        self._defaults: Dict[str, Dict[str, Any]] = {}
        self.env = Environment(
            loader=ChoiceLoader([DictLoader(self._sources), DictLoader(_FALLBACK_TEMPLATES)]),
            autoescape=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )

        @pass_context
        def partial(context: Context, name: str, **data: Any) -> Markup:
            return self.render_partial(name, {**context.get_all(), **data})

        self.env.globals["partial"] = partial

    @property
    def partials(self) -> list[str]:
        return sorted(self._sources)

    def register_partial(self, name: str, source: str, *, origin: str = "<string>") -> None:
        """Compile ``source`` as partial ``name``; syntax errors leave nothing registered."""
        parsed = parse_front_matter(source, seed=self.seed, source=origin)
        self._sources[name] = parsed.body
        try:
            self.env.get_template(name)
        except Exception:
            del self._sources[name]
            raise
        self._defaults[name] = parsed.data

    def render_partial(self, name: str, data: Mapping[str, Any]) -> Markup:
        """Render partial ``name``; ``data`` wins over the partial's own front matter."""
        template = self.env.get_template(name)
        merged = {**self.seed, **self._defaults.get(name, {}), **data}
        return Markup(template.render(merged))

    def render_page(self, source: str, data: Mapping[str, Any]) -> str:
        return self.env.from_string(source).render({**self.seed, **data})

    def wrap_in_layout(
        self, body: str, data: Mapping[str, Any], layout: Optional[str] = None
    ) -> str:
        name = layout or data.get("layout") or DEFAULT_LAYOUT
        return str(self.render_partial(layout_template(name), {**data, "content": Markup(body)}))


__all__ = [
    "DEFAULT_LAYOUT",
    "TemplateComposer",
    "component_name",
    "layout_template",
]
