"""Static site build pipeline with an incremental watch mode."""

from .builder import BuildError, BuildOutcome, BuildPass, build
from .config import SiteConfig, load_config

__all__ = ["BuildError", "BuildOutcome", "BuildPass", "SiteConfig", "build", "load_config"]
