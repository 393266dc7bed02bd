"""
Centralized settings for review-spine.

Manifesto:
    One validated, cached settings object.  Every interval, retry budget,
    table name and remote path the pipeline uses is read here, from
    ``REVIEW_SPINE_*`` environment variables or a ``.env`` file, and handed
    to components through their constructors.

Tags:
    review-spine, configuration, settings, pydantic, caching

Doc-Types:
    api-reference
"""

from __future__ import annotations

from enum import Enum

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreBackend(str, Enum):
    """Which collaborators the service manager wires in."""

    GRAPH = "graph"
    MEMORY = "memory"


class ReviewSpineSettings(BaseSettings):
    """review-spine configuration.

    All fields can be set via ``REVIEW_SPINE_*`` environment variables (e.g.
    ``REVIEW_SPINE_INTAKE_INTERVAL_SECONDS=60``) or a ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="REVIEW_SPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Scheduling ───────────────────────────────────────────────
    intake_interval_seconds: float = Field(default=120.0, gt=0)
    router_interval_seconds: float = Field(default=300.0, gt=0)
    run_on_start: bool = Field(default=True, description="Run one cycle immediately when a loop starts")
    stop_timeout_seconds: float | None = Field(
        default=None,
        description="Max wait for an in-flight cycle on stop (None = wait for it)",
    )

    # ── Conflict retry ───────────────────────────────────────────
    conflict_max_retries: int = Field(default=5, ge=0)
    conflict_base_delay: float = Field(default=1.0, ge=0)
    conflict_max_delay: float = Field(default=8.0, ge=0)
    conflict_jitter: float = Field(default=0.5, ge=0, le=1)

    # ── Archive ──────────────────────────────────────────────────
    archive_folder_prefix: str = Field(default="Sprint_")
    copy_settle_seconds: float = Field(default=5.0, ge=0)
    copy_poll_attempts: int = Field(default=10, ge=1)
    copy_poll_delay_seconds: float = Field(default=2.0, ge=0)

    # ── Tables ───────────────────────────────────────────────────
    intake_table: str = Field(default="Step1_Review")
    secondary_review_table: str = Field(default="MRL_Review")
    archive_table: str = Field(default="Content_Review_Archives")

    # ── Remote store (Microsoft Graph) ───────────────────────────
    store_backend: StoreBackend = Field(default=StoreBackend.GRAPH)
    graph_base_url: str = Field(default="https://graph.microsoft.com/v1.0")
    graph_site: str | None = Field(
        default=None,
        description="Hostname-qualified site path, e.g. contoso.sharepoint.com:/sites/Review",
    )
    graph_access_token: SecretStr | None = Field(default=None)
    graph_timeout_seconds: float = Field(default=30.0, gt=0)
    intake_folder_path: str = Field(default="Content Review/Intake")
    closed_folder_path: str = Field(default="Content Review/Closed")
    archive_root_path: str = Field(default="Content Review/Archive")
    intake_workbook_path: str = Field(default="Content Review/Step1_Review.xlsx")
    secondary_review_workbook_path: str = Field(default="Content Review/MRL_Review.xlsx")
    archive_workbook_path: str = Field(default="Content Review/Content_Review_Archives.xlsx")

    # ── Event log ────────────────────────────────────────────────
    event_log_path: str = Field(default="data/review_events.db")

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="auto", pattern="^(json|console|auto)$")

    # ── API ──────────────────────────────────────────────────────
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=12100)
    api_prefix: str = Field(default="/api/v1")

    @property
    def is_memory_backend(self) -> bool:
        return self.store_backend == StoreBackend.MEMORY


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, ReviewSpineSettings] = {}


def get_settings(*, _force_reload: bool = False) -> ReviewSpineSettings:
    """Load, validate, and cache a :class:`ReviewSpineSettings` instance."""
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]
    settings = ReviewSpineSettings()
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for tests)."""
    _settings_cache.clear()


__all__ = ["ReviewSpineSettings", "StoreBackend", "clear_settings_cache", "get_settings"]
