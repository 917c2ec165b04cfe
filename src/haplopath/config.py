"""
Runtime settings.

Values come from ``HAPLOPATH_*`` environment variables (or a ``.env`` file);
command-line options override them.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # --- Caches ---
    cache_dir: Path = Path.home() / ".cache" / "haplopath"
    liftover_dir: Path | None = None  # defaults to <cache_dir>/liftover

    # --- Network ---
    fetch_timeout: float = 300.0

    # --- Defaults for classification ---
    default_source: str = "ftdna-y"
    default_build: str = "GRCh38"

    model_config = SettingsConfigDict(
        env_prefix="HAPLOPATH_", env_file=".env", env_file_encoding="utf-8"
    )

    @property
    def tree_cache_dir(self) -> Path:
        """Directory holding raw tree payloads."""
        return self.cache_dir / "trees"

    @property
    def chain_dir(self) -> Path:
        """Directory holding liftover chain files."""
        return self.liftover_dir or self.cache_dir / "liftover"


def get_settings() -> Settings:
    return Settings()
