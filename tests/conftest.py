from __future__ import annotations

from pathlib import Path

import pytest

from catalog_sync.config import Settings
from catalog_sync.pipeline.limiter import RateLimiter


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        source_catalog=tmp_path / "source.catalog",
        destination_catalog=tmp_path / "Photos.sqlite",
        scratch_root=tmp_path / "scratch",
        destination_root_folder="Catalog Sync",
        export_profile="Sync Export",
        batch_size=30,
        requests_per_minute=600_000,
        export_timeout_seconds=5,
        log_format="text",
    )


@pytest.fixture
def fast_limiter() -> RateLimiter:
    return RateLimiter(600_000)
