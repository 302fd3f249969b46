"""Centralized application configuration."""

import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field

DEFAULT_DATA_DIR = Path.home() / ".local" / "mbf-bridge"

# SHA-1 of the agent build this bridge ships against.
AGENT_SHA1 = "5D6F6E1B0B6C3A3C4E0F6B0C2C61C7A8E5E3B9A1"

# Keys accepted from config.toml, all optional
_TOML_KEYS = (
    "agent_path",
    "agent_url",
    "agent_hash",
    "core_mod_override_url",
    "upload_timeout",
    "max_download_attempts",
    "progress_interval",
    "adb_path",
    "serial",
    "uploads_dir",
)


class Config(BaseModel):
    """Application-wide configuration.

    Built once before the first session and passed explicitly to provisioning
    and the session driver. Frozen: it cannot change while a session runs.
    """

    model_config = ConfigDict(frozen=True)

    data_dir: Path = Field(description="Base directory for local application data")
    agent_path: str = Field(default="/data/local/tmp/mbf-agent", description="Install path of the agent on the device")
    agent_url: str = Field(default="https://mbf.bsquest.xyz/mbf-agent", description="Hosting endpoint of the agent binary")
    agent_hash: str = Field(default=AGENT_SHA1, min_length=1, description="Expected SHA-1 of the installed agent")
    core_mod_override_url: str | None = Field(default=None, description="Alternate core mod index URL sent with requests")
    upload_timeout: float = Field(default=30.0, gt=0, description="Seconds before an agent upload is treated as failed")
    max_download_attempts: int = Field(default=3, ge=1, description="Attempts made to download the agent")
    progress_interval: float = Field(default=1.0, ge=0, description="Minimum seconds between download progress updates")
    adb_path: str = Field(default="adb", description="adb executable")
    serial: str | None = Field(default=None, description="Device serial, required when several devices are attached")
    uploads_dir: str = Field(default="/data/local/tmp/mbf-uploads", description="Device directory for imported files")

    @computed_field(description="Optional TOML configuration file")
    @property
    def config_path(self) -> Path:
        """Optional TOML configuration file."""
        return self.data_dir / "config.toml"

    @computed_field(description="Local cache of downloaded agent binaries")
    @property
    def cache_dir(self) -> Path:
        """Local cache of downloaded agent binaries."""
        return self.data_dir / "cache"

    @computed_field(description="Log file")
    @property
    def log_path(self) -> Path:
        """Log file."""
        return self.data_dir / "mbf-bridge.log"

    @staticmethod
    def build(data_dir: Path | None = None, **overrides: Any) -> "Config":
        """Build a Config from defaults, optional config.toml, then explicit overrides.

        Overrides whose value is None are ignored so CLI options can be passed through as-is.
        """
        resolved_dir = data_dir if data_dir is not None else DEFAULT_DATA_DIR
        config_path = resolved_dir / "config.toml"

        kwargs: dict[str, Any] = {"data_dir": resolved_dir}
        if config_path.is_file():
            with config_path.open("rb") as f:
                toml_data = tomllib.load(f)
            kwargs.update({key: toml_data[key] for key in _TOML_KEYS if key in toml_data})
        kwargs.update({key: value for key, value in overrides.items() if value is not None})

        return Config(**kwargs)
