from __future__ import annotations

from pathlib import Path

import pytest

from tests._fixtures.site_builder import SiteBuilder


@pytest.fixture
def site(tmp_path: Path) -> SiteBuilder:
    """Provide a minimal buildable site rooted under the pytest tmp_path."""
    return SiteBuilder(tmp_path)
