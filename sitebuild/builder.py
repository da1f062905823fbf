"""One build pass: components, then pages, then the stylesheet."""

from __future__ import annotations

import asyncio
import enum
import html
import time
from pathlib import Path, PurePath
from typing import Any, Dict, List, Optional

from .cancellation import CancellationToken
from .config import SiteConfig
from .css import CssPipeline
from .frontmatter import parse_front_matter
from .fs import copy_atomic, prepare_output_dir, walk_files, write_atomic
from .ledger import ErrorLedger, LedgerEntry, capture, format_entries
from .logging import get_logger
from .markdown_styles import MarkdownRenderer
from .models import PageContext, component_error_key, css_error_key
from .templates import TemplateComposer, component_name
from .theme import MarkdownTheme

logger = get_logger("builder")

PAGE_EXTENSIONS = (".md", ".html")
NOT_FOUND_STEM = "404"


class BuildError(RuntimeError):
    """Raised after reporting when one or more items failed to build."""

    def __init__(self, entries: List[LedgerEntry]) -> None:
        super().__init__("There were errors during the build")
        self.entries = list(entries)


class BuildState(enum.Enum):
    IDLE = "idle"
    CREATING_OUTPUT_DIR = "creating-output-dir"
    PROCESSING_COMPONENTS = "processing-components"
    PROCESSING_PAGES = "processing-pages"
    PROCESSING_STYLES = "processing-styles"
    REPORTING = "reporting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class BuildOutcome(enum.Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


def route_page(relative_path: PurePath | str) -> Optional[PurePath]:
    """Map a page source path to its output path, or None for copy-through files.

    ``about.md`` -> ``about/index.html``, ``blog/index.md`` -> ``blog/index.html``,
    ``404.md`` at the page root -> ``404.html``.
    """
    rel = PurePath(relative_path)
    if rel.suffix not in PAGE_EXTENSIONS:
        return None
    if rel.parent == PurePath(".") and rel.stem == NOT_FOUND_STEM:
        return PurePath(f"{NOT_FOUND_STEM}.html")
    if rel.stem == "index":
        return rel.parent / "index.html"
    return rel.with_suffix("") / "index.html"


def _timestamp_ms() -> str:
    return str(int(time.time() * 1000))


class BuildPass:
    """Builds the site once; per-item failures go to ``ledger`` instead of aborting."""

    def __init__(
        self,
        config: SiteConfig,
        token: Optional[CancellationToken] = None,
        *,
        within_watch: bool = False,
    ) -> None:
        self.config = config
        self.token = token or CancellationToken()
        self.within_watch = within_watch
        self.state = BuildState.IDLE
        self.ledger = ErrorLedger()
        self.errors: List[LedgerEntry] = []
        self.seed: Dict[str, Any] = {
            "site_title": config.site_title,
            "within_watch": within_watch,
        }
        self.composer = TemplateComposer(self.seed)
        self.markdown = MarkdownRenderer(MarkdownTheme.from_mapping(config.theme))
        self.watch_client = ""
        self.counts = {"components": 0, "pages": 0, "files": 0}

    async def run(self) -> BuildOutcome:
        if await self._cancelled("creating the output directory"):
            return self._finish_cancelled()

        self.state = BuildState.CREATING_OUTPUT_DIR
        prepare_output_dir(self.config.build_dir)
        # Only watch output embeds the client, so a plain build does not require it.
        if self.within_watch:
            self.watch_client =self.config.watch_client.read_text(encoding="utf-8")

        if await self._cancelled("components"):
            return self._finish_cancelled()
        self.state = BuildState.PROCESSING_COMPONENTS
        if self.config.components_dir.is_dir():
            for entry in walk_files(self.config.components_dir):
                if await self._cancelled("next component"):
                    return self._finish_cancelled()
                if not entry.is_directory:
                    self._build_component(entry.path)
        else:
            logger.debug("No components directory at %s", self.config.components_dir)

        if await self._cancelled("pages"):
            return self._finish_cancelled()
        self.state = BuildState.PROCESSING_PAGES
        for entry in walk_files(self.config.pages_dir):
            if await self._cancelled("next page"):
                return self._finish_cancelled()
            if not entry.is_directory:
                self._build_page(entry.path)

        if await self._cancelled("styles"):
            return self._finish_cancelled()
        self.state = BuildState.PROCESSING_STYLES
        self._build_styles()

        self.state = BuildState.REPORTING
        return self._report()

    async def _cancelled(self, stage: str) -> bool:
        # Let queued change events run so they can trip the token.
        await asyncio.sleep(0)
        return self.token.checkpoint(stage)

    def _finish_cancelled(self) -> BuildOutcome:
        self.state = BuildState.CANCELLED
        return BuildOutcome.CANCELLED

    def _build_component(self, path: Path) -> None:
        name = component_name(path.relative_to(self.config.components_dir))
        result = capture(self._register_component, name, path)
        if self.ledger.record_result(component_error_key(name), result):
            self.counts["components"] += 1

    def _register_component(self, name: str, path: Path) -> None:
        source = path.read_text(encoding="utf-8")
        self.composer.register_partial(name, source, origin=str(path))

    def _build_page(self, path: Path) -> None:
        rel = path.relative_to(self.config.pages_dir)
        ctx = PageContext.for_page(rel)
        output = route_page(rel)
        if output is None:
            result = capture(copy_atomic, path, self.config.build_dir / rel)
            counter = "files"
        else:
            result = capture(self._emit_page, ctx, path, self.config.build_dir / output)
            counter = "pages"
        if self.ledger.record_result(ctx.error_key, result):
            self.counts[counter] += 1

    def _emit_page(self, ctx: PageContext, path: Path, output_path: Path) -> None:
        # Render fully in memory first; nothing is written for a page that fails.
        page = self._render_page(ctx, path)
        write_atomic(output_path, page.encode("utf-8"))

    def _render_page(self, ctx: PageContext, path: Path) -> str:
        parsed = parse_front_matter(
            path.read_text(encoding="utf-8"),
            seed=self.seed,
            source=ctx.source_relative_path,
        )
        data = parsed.data
        body = self.composer.render_page(parsed.body, data)
        if path.suffix == ".md":
            body = self.markdown.render(body, ctx, self._record_page_error)
        if data.get("layout") is not False:
            body = self.composer.wrap_in_layout(body, data)
        return body + self.watch_client if self.within_watch else body

    def _record_page_error(self, ctx: PageContext, error: BaseException) -> None:
        self.ledger.record(ctx.error_key, error)

    def _build_styles(self) -> None:
        entry = self.config.css_entry
        source = entry.read_text(encoding="utf-8")
        result = capture(CssPipeline.default(entry).run, source)
        if self.ledger.record_result(css_error_key(entry.name), result):
            write_atomic(self.config.css_output, result.value.encode("utf-8"))

    def _report(self) -> BuildOutcome:
        self.errors = self.ledger.drain()
        for item in self.errors:
            logger.error("%s: %s", item.key, item.message)
            logger.debug("Traceback for %s", item.key, exc_info=item.error)

        if self.errors:
            if self.within_watch:
                diagnostics = f"<pre>{html.escape(format_entries(self.errors))}</pre>{self.watch_client}"
                write_atomic(self.config.diagnostics_file, diagnostics.encode("utf-8"))
                write_atomic(self.config.watch_signal_file, f"err {_timestamp_ms()}".encode("utf-8"))
            self.state = BuildState.FAILED
            return BuildOutcome.FAILED

        if self.within_watch:
            write_atomic(self.config.watch_signal_file, _timestamp_ms().encode("utf-8"))
        logger.info(
            "Built %d pages, %d components, %d copied files",
            self.counts["pages"],
            self.counts["components"],
            self.counts["files"],
        )
        self.state = BuildState.SUCCEEDED
        return BuildOutcome.SUCCEEDED


async def build(
    config: SiteConfig,
    token: Optional[CancellationToken] = None,
    *,
    within_watch: bool = False,
) -> BuildOutcome:
    """Run one pass; raise ``BuildError`` if any item failed."""
    build_pass = BuildPass(config, token, within_watch=within_watch)
    outcome = await build_pass.run()
    if outcome is BuildOutcome.FAILED:
        raise BuildError(build_pass.errors)
    return outcome


__all__ = [
    "BuildError",
    "BuildOutcome",
    "BuildPass",
    "BuildState",
    "build",
    "route_page",
]
