"""Loader settings from SCENELAYER_* environment variables, and the source factory."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from scenelayer.sources import ArchiveSource, ContentSource, RestSource


class Settings(BaseSettings):
    """Loader settings read from SCENELAYER_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SCENELAYER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Offline package (.slpk); takes precedence over base_url
    archive_path: Optional[Path] = None

    # Live SceneServer
    base_url: str = ""
    layer_id: int = Field(0, ge=0)
    request_timeout: float = Field(30.0, gt=0)

    # Concurrent node page fetches against a live service
    max_concurrent_pages: int = Field(8, gt=0)


def open_source(settings: Settings) -> ContentSource:
    """Build the content source described by ``settings``.

    Raises:
        ValueError: Neither an archive path nor a base URL is configured.
    """
    if settings.archive_path is not None:
        return ArchiveSource(settings.archive_path)
    if settings.base_url:
        return RestSource(
            settings.base_url,
            layer_id=settings.layer_id,
            timeout=settings.request_timeout,
        )
    raise ValueError("Configure either archive_path or base_url")
