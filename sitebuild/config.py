"""Site configuration loading (site.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

CONFIG_FILENAME = "site.yml"


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class SiteConfig:
    """Resolved settings for one site root."""

    root: Path
    site_title: str = "tbx.at"
    build_dir: Path = Path("build")
    components_dir: Path = Path("components")
    pages_dir: Path = Path("pages")
    css_entry: Path = Path("main.css")
    watch_client: Path = Path("watch-client.html")
    theme: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.root = Path(self.root).resolve()
        for name in ("build_dir", "components_dir", "pages_dir", "css_entry", "watch_client"):
            value = Path(getattr(self, name))
            setattr(self, name, value if value.is_absolute() else self.root / value)

    @property
    def config_file(self) -> Path:
        return self.root / CONFIG_FILENAME

    @property
    def css_output(self) -> Path:
        return self.build_dir / "main.css"

    @property
    def watch_signal_file(self) -> Path:
        return self.build_dir / "_watch-date.txt"

    @property
    def diagnostics_file(self) -> Path:
        return self.build_dir / "_errors.html"


def load_config(root: Path) -> SiteConfig:
    """Load ``site.yml`` from ``root``; a missing file yields the defaults."""
    root = Path(root).expanduser().resolve()
    config_file = root / CONFIG_FILENAME
    if not config_file.exists():
        return SiteConfig(root=root)

    try:
        data = yaml.safe_load(config_file.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {config_file}: {exc}") from exc

    if data is None:
        return SiteConfig(root=root)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    paths = _as_dict(data.get("paths"), "paths")
    kwargs: Dict[str, Any] = {}
    site_title = _as_str(data.get("site_title"), "site_title")
    if site_title is not None:
        kwargs["site_title"] = site_title
    for key in ("build_dir", "components_dir", "pages_dir", "css_entry", "watch_client"):
        value = _as_str(paths.get(key), f"paths.{key}")
        if value is not None:
            kwargs[key] = Path(value)
    kwargs["theme"] = _as_dict(data.get("theme"), "theme")

    return SiteConfig(root=root, **kwargs)


def _as_dict(value: Any, key: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{key}' must be a mapping")
    return value


def _as_str(value: Any, key: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(f"'{key}' must be a string")
    stripped = value.strip()
    return stripped or None


__all__ = ["CONFIG_FILENAME", "ConfigError", "SiteConfig", "load_config"]
