"""
Application configuration management.

Load order (each layer overrides the previous):
  1. ``config/default.toml``      — committed static defaults
  2. ``config/local.toml``        — optional local overrides (gitignored)
  3. ``.env``                     — local secrets and env overrides (gitignored)
  4. Environment variables        — ``TALENT_TRENDS_*`` prefix

Entry point: ``load_config(config_path=None) -> AppConfig``

Warcraft Logs credentials never live in TOML.  They are read from the
environment by ``load_credentials()``::

  WCL_CLIENT_ID=your_client_id
  WCL_CLIENT_SECRET=your_client_secret
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

# Hard upper bound on records per pipeline run.
MAX_RECORDS_LIMIT = 10

# ── Sub-config models ─────────────────────────────────────────────────────────


class WarcraftLogsConfig(BaseModel):
    """Warcraft Logs API endpoints and fixed query parameters."""

    model_config = ConfigDict(frozen=True)

    token_url: str = "https://www.warcraftlogs.com/oauth/token"
    graphql_url: str = "https://www.warcraftlogs.com/api/v2/client"
    report_base_url: str = "https://www.warcraftlogs.com"
    metric: str = "dps"
    difficulty: int = 5                   # 5 = Mythic
    timeout_seconds: float = 30.0
    token_refresh_skew_seconds: int = 60  # refetch this long before expiry

    @field_validator("report_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class StreamConfig(BaseModel):
    """Producer/consumer channel settings for the streaming pipeline."""

    model_config = ConfigDict(frozen=True)

    channel_capacity: int = 10
    max_records: int = MAX_RECORDS_LIMIT
    heartbeat_seconds: float = 15.0

    @field_validator("channel_capacity")
    @classmethod
    def validate_capacity(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"channel_capacity must be >= 1, got {v}.")
        return v

    @field_validator("max_records")
    @classmethod
    def validate_max_records(cls, v: int) -> int:
        if not 1 <= v <= MAX_RECORDS_LIMIT:
            raise ValueError(
                f"max_records must be in [1, {MAX_RECORDS_LIMIT}], got {v}."
            )
        return v

    @field_validator("heartbeat_seconds")
    @classmethod
    def validate_heartbeat(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"heartbeat_seconds must be > 0, got {v}.")
        return v


class ServerConfig(BaseModel):
    """HTTP listener settings."""

    model_config = ConfigDict(frozen=True)

    host: str = "0.0.0.0"
    port: int = 3000


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = ""
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()


class AppConfig(BaseModel):
    """Complete application configuration — the single source of truth.

    The server, the CLI and the pipeline all receive an ``AppConfig``
    instance.  It is constructed by ``load_config()`` which merges TOML + .env.
    """

    model_config = ConfigDict(frozen=True)

    warcraftlogs: WarcraftLogsConfig = WarcraftLogsConfig()
    stream: StreamConfig = StreamConfig()
    server: ServerConfig = ServerConfig()
    logging: LoggingConfig = LoggingConfig()
    debug: bool = False


class Credentials(BaseModel):
    """OAuth2 client credentials for the Warcraft Logs API."""

    model_config = ConfigDict(frozen=True)

    client_id: Optional[str] = None
    client_secret: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return bool(self.client_id) and bool(self.client_secret)


# ── Loader ────────────────────────────────────────────────────────────────────

_PROJECT_ROOT = Path(__file__).parent.parent


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (contains pyproject.toml)."""
    candidate = Path(__file__).parent
    for _ in range(5):
        if (candidate / "pyproject.toml").exists():
            return candidate
        candidate = candidate.parent
    return _PROJECT_ROOT


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load and merge application configuration.

    Args:
        config_path: Explicit path to a TOML config file. Defaults to
            ``<project_root>/config/default.toml``.

    Returns:
        Fully validated ``AppConfig`` instance.

    Raises:
        FileNotFoundError: If the specified ``config_path`` does not exist.
        pydantic.ValidationError: If merged config values fail validation.
    """
    root = _find_project_root()

    # 1. Load .env file (silently skip if missing)
    load_dotenv(dotenv_path=root / ".env", override=False)

    # 2. Load TOML config
    if config_path is None:
        config_path = root / "config" / "default.toml"

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "rb") as f:
        raw: dict[str, Any] = tomllib.load(f)

    # Also merge local.toml if present (gitignored local overrides)
    local_config_path = config_path.parent / "local.toml"
    if local_config_path.exists():
        with open(local_config_path, "rb") as f:
            local_raw: dict[str, Any] = tomllib.load(f)
        raw = _deep_merge(raw, local_raw)

    # 3. Apply TALENT_TRENDS_* environment variable overrides
    raw = _apply_env_overrides(raw)

    # 4. Build and validate AppConfig
    return _build_app_config(raw)


def load_credentials() -> Credentials:
    """Read ``WCL_CLIENT_ID`` / ``WCL_CLIENT_SECRET`` from the environment.

    Missing values are returned as ``None``; the token cache raises
    ``ConfigError`` when it first needs them.
    """
    load_dotenv(dotenv_path=_find_project_root() / ".env", override=False)
    return Credentials(
        client_id=os.environ.get("WCL_CLIENT_ID") or None,
        client_secret=os.environ.get("WCL_CLIENT_SECRET") or None,
    )


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into ``base``."""
    result = dict(base)
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """Apply TALENT_TRENDS_* env vars to the raw config dict.

    Supported overrides:
      TALENT_TRENDS_PORT       → raw["server"]["port"]
      TALENT_TRENDS_LOG_LEVEL  → raw["logging"]["level"]
      TALENT_TRENDS_DEBUG      → raw["debug"]
    """
    if port := os.environ.get("TALENT_TRENDS_PORT"):
        raw.setdefault("server", {})["port"] = int(port)

    if log_level := os.environ.get("TALENT_TRENDS_LOG_LEVEL"):
        raw.setdefault("logging", {})["level"] = log_level

    if debug := os.environ.get("TALENT_TRENDS_DEBUG"):
        raw["debug"] = debug.lower() in ("1", "true", "yes")

    return raw


def _build_app_config(raw: dict[str, Any]) -> AppConfig:
    """Map raw TOML dict to ``AppConfig`` model structure."""
    project = raw.pop("project", {})

    return AppConfig(
        warcraftlogs=WarcraftLogsConfig(**raw.get("warcraftlogs", {})),
        stream=StreamConfig(**raw.get("stream", {})),
        server=ServerConfig(**raw.get("server", {})),
        logging=LoggingConfig(**raw.get("logging", {})),
        debug=raw.get("debug", project.get("debug", False)),
    )
