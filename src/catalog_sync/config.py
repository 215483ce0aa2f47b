from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SyncPolicy(BaseModel):
    """The externally tunable knobs of a run."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    batch_size: int = Field(default=30, ge=1)
    requests_per_minute: int = Field(default=60, ge=1)
    export_timeout_seconds: int = Field(default=900, ge=1)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="CATALOG_SYNC_", extra="ignore")

    APP_NAME: str = "catalog-sync"
    VERSION: str = "0.1.0"

    # Live catalogs are never opened directly; each run works on a copy.
    source_catalog: Path = Path("source.catalog")
    destination_catalog: Path = Path("Photos.sqlite")
    scratch_root: Path = Path(".catalog_sync") / "scratch"

    export_profile: str = "Sync Export"
    editor_app: str = "Capture One"
    library_app: str = "Photos"
    destination_root_folder: str = "Catalog Sync"

    batch_size: int = 30
    requests_per_minute: int = 60
    export_timeout_seconds: int = 900
    script_timeout_seconds: float = 120.0
    keep_degraded_scratch: bool = True

    sync_interval_minutes: int = 60

    log_level: str = "INFO"
    log_format: str = "json"
    log_file: str = ""

    def policy(self) -> SyncPolicy:
        return SyncPolicy(
            batch_size=self.batch_size,
            requests_per_minute=self.requests_per_minute,
            export_timeout_seconds=self.export_timeout_seconds,
        )


def get_settings() -> Settings:
    return Settings()
