"""Process configuration for qrledger.

Settings are resolved once at startup into an immutable ``AppConfig`` and
handed to every component that needs them.

Precedence (lowest to highest):
    built-in defaults -> TOML file (QRLEDGER_CONFIG or explicit path) -> environment
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError

from qrledger.runtime.logging import get_logger

logger = get_logger(__name__)

DEFAULT_DB_PORT = 3306
DEFAULT_SERVER_PORT = 4000
DEFAULT_WEBHOOK_TIMEOUT = 60.0

# Environment variable -> AppConfig field
_ENV_FIELDS: dict[str, str] = {
    "DB_HOST": "db_host",
    "DB_PORT": "db_port",
    "DB_USER": "db_user",
    "DB_PASSWORD": "db_password",
    "DB_DATABASE": "db_name",
    "DB_ISOLATION_LEVEL": "db_isolation_level",
    "DATABASE_URL": "explicit_database_url",
    "HOST": "server_host",
    "PORT": "server_port",
    "N8N_WEBHOOK_URL": "receipt_webhook_url",
    "N8N_RECEIPT_WEBHOOK_URL": "receipt_webhook_url",
    "N8N_ANALYTICS_WEBHOOK_URL": "analytics_webhook_url",
    "WEBHOOK_TIMEOUT": "webhook_timeout",
}

_INT_FIELDS = {"db_port", "server_port"}
_FLOAT_FIELDS = {"webhook_timeout"}


class ConfigError(ValueError):
    """Raised when a configuration value cannot be interpreted."""


@dataclass(frozen=True)
class AppConfig:
    """Immutable application settings."""

    db_host: str = "localhost"
    db_port: int = DEFAULT_DB_PORT
    db_user: str | None = None
    db_password: str | None = None
    db_name: str | None = None
    db_isolation_level: str | None = None
    explicit_database_url: str | None = None
    server_host: str = "0.0.0.0"
    server_port: int = DEFAULT_SERVER_PORT
    receipt_webhook_url: str | None = None
    analytics_webhook_url: str | None = None
    webhook_timeout: float = DEFAULT_WEBHOOK_TIMEOUT

    @property
    def database_url(self) -> str | URL:
        """SQLAlchemy URL for the relational store."""
        if self.explicit_database_url:
            return self.explicit_database_url
        return URL.create(
            "mysql+pymysql",
            username=self.db_user,
            password=self.db_password,
            host=self.db_host,
            port=self.db_port,
            database=self.db_name,
        )

    def masked(self) -> dict[str, Any]:
        """Settings as a dict with secrets hidden, for logging."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        if values["db_password"]:
            values["db_password"] = "******"
        if values["explicit_database_url"]:
            url = values["explicit_database_url"]
            try:
                values["explicit_database_url"] = make_url(url).render_as_string(hide_password=True)
            except ArgumentError:
                values["explicit_database_url"] = "<unparseable>"
        return values


def _coerce(field_name: str, raw: Any) -> Any:
    if raw is None:
        return None
    if field_name in _INT_FIELDS:
        try:
            return int(raw)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"{field_name} must be an integer, got {raw!r}") from exc
    if field_name in _FLOAT_FIELDS:
        try:
            return float(raw)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"{field_name} must be a number, got {raw!r}") from exc
    return str(raw)


def load_config_file(path: Path) -> dict[str, Any]:
    """Read AppConfig fields from a TOML file.

    Keys may be given flat or under a ``[qrledger]`` table. Unknown keys are
    ignored with a warning.
    """
    try:
        import tomllib
    except ImportError:
        import tomli as tomllib  # type: ignore[no-redef]

    with open(path, "rb") as f:
        data = tomllib.load(f)

    section = data.get("qrledger", data)
    known = {f.name for f in fields(AppConfig)}
    values: dict[str, Any] = {}
    for key, value in section.items():
        if key not in known:
            logger.warning("Ignoring unknown config key %r in %s", key, path)
            continue
        values[key] = _coerce(key, value)
    return values


def load_config(environ: Mapping[str, str] | None = None, config_path: str | Path | None = None) -> AppConfig:
    """Resolve settings from defaults, an optional TOML file and the environment."""
    env = os.environ if environ is None else environ

    values: dict[str, Any] = {}

    path = config_path if config_path is not None else env.get("QRLEDGER_CONFIG")
    if path:
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        values.update(load_config_file(path))

    # Later entries in _ENV_FIELDS win (N8N_RECEIPT_WEBHOOK_URL over N8N_WEBHOOK_URL)
    for env_name, field_name in _ENV_FIELDS.items():
        raw = env.get(env_name)
        if raw is None or raw == "":
            continue
        values[field_name] = _coerce(field_name, raw)

    config = AppConfig(**values)
    logger.info("Loaded config: %s", config.masked())
    return config
