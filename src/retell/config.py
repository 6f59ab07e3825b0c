"""
Configuration management for the RETELL feed sync service.

Provides centralized configuration using Pydantic for validation and
environment variable support. Supports retell.yaml for per-deployment defaults.
"""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Default data paths relative to project root
DB_PATH = PROJECT_ROOT / "data" / "db" / "retell.db"

ENV_PREFIX = "RETELL_"


def load_retell_yaml(search_dir: Optional[Path] = None) -> dict:
    """
    Load retell.yaml configuration file.

    Searches for retell.yaml starting from search_dir (or PROJECT_ROOT)
    and walking up to 3 parent directories.

    Args:
        search_dir: Directory to start searching from

    Returns:
        Dictionary with retell.yaml contents, or empty dict if not found
    """
    start = search_dir or PROJECT_ROOT
    for parent in [start] + list(start.parents)[:3]:
        candidate = parent / "retell.yaml"
        if candidate.exists():
            with open(candidate, "r", encoding="utf-8") as f:
                return yaml.safe_load(f) or {}
    return {}


class Config(BaseSettings):
    """
    Application configuration with environment variable support.

    Configuration can be provided via:
    1. Environment variables (prefixed with RETELL_)
    2. .env file
    3. retell.yaml (``settings:`` section)
    4. Default values

    Example:
        export RETELL_DB_PATH="/srv/retell/retell.db"
        export RETELL_SERVICE_TOKEN="change-me"
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Storage
    db_path: Path = Field(
        default=DB_PATH,
        description="Path to SQLite database file"
    )

    # Feed fetching
    request_timeout: int = Field(
        default=30,
        description="HTTP timeout in seconds for feed and image requests"
    )
    user_agent: str = Field(
        default="RETELL-RSS-Bot/1.0",
        description="User-Agent header sent with outbound requests"
    )
    preview_limit: int = Field(
        default=5,
        description="Number of episodes returned by a feed preview"
    )

    # Cover images
    max_image_bytes: int = Field(
        default=5 * 1024 * 1024,
        description="Largest cover image accepted for re-hosting"
    )
    media_dir: Optional[Path] = Field(
        default=None,
        description="Directory for re-hosted cover images (inline data URLs when unset)"
    )
    media_base_url: str = Field(
        default="/media",
        description="Public URL prefix under which media_dir is served"
    )

    # Service access
    service_token: Optional[str] = Field(
        default=None,
        description="Bearer token required by the platform-wide sync endpoint"
    )

    # Server settings
    host: str = Field(default="0.0.0.0", description="HTTP bind address")
    port: int = Field(default=8000, description="HTTP port")

    log_level: str = Field(default="INFO", description="Root logging level")

    def ensure_directories(self) -> None:
        """Create necessary directories if they don't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        if self.media_dir is not None:
            self.media_dir.mkdir(parents=True, exist_ok=True)


def _yaml_defaults(yaml_config: dict) -> dict:
    """Keep retell.yaml settings that are not overridden by the environment."""
    settings = yaml_config.get("settings", {}) or {}
    return {
        key: value
        for key, value in settings.items()
        if key in Config.model_fields and f"{ENV_PREFIX}{key.upper()}" not in os.environ
    }


def get_config(search_dir: Optional[Path] = None) -> Config:
    """
    Get the application configuration instance.

    Merges settings from environment variables, .env file,
    and retell.yaml (if present). Environment variables win over
    retell.yaml values.

    Returns:
        Config: Application configuration
    """
    config = Config(**_yaml_defaults(load_retell_yaml(search_dir)))
    config.ensure_directories()
    return config
