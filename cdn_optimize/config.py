"""Configuration and secrets management for the CDN image optimizer.

Handles loading secrets.json, validating configuration, and building
the R2, origin and server configuration sections.
"""

import json
from pathlib import Path
from typing import Any, Optional

from .models import OriginConfig, R2Config, ServerConfig


class ConfigError(Exception):
    """Raised when configuration is invalid or missing."""
    pass


R2_FIELDS = ("account_id", "access_key_id", "secret_access_key", "bucket_name")

POSITIVE_FIELDS = [
    ("origin", "timeout"),
    ("server", "port"),
    ("server", "cache_max_age"),
    ("server", "max_image_pixels"),
]


def get_config_dir() -> Path:
    """Get the config directory.

    Returns:
        Path to config directory (~/.config/cdn-optimize/)
    """
    return Path.home() / ".config" / "cdn-optimize"


def load_secrets(secrets_path: Path | None = None) -> dict[str, Any]:
    """Load secrets.json.

    Searches for secrets.json in the following order:
    1. Explicit path if provided
    2. ~/.config/cdn-optimize/secrets.json (recommended)
    3. ./secrets.json (current directory)

    Args:
        secrets_path: Optional explicit path to secrets.json

    Returns:
        Dictionary containing all secrets

    Raises:
        ConfigError: If secrets.json is missing or invalid
    """
    if secrets_path is not None:
        if not secrets_path.exists():
            raise ConfigError(
                f"secrets.json not found at {secrets_path}. "
                "Copy from secrets.json.template and fill in your settings."
            )
        found_path = secrets_path
    else:
        config_path = get_config_dir() / "secrets.json"
        local_path = Path("secrets.json")

        if config_path.exists():
            found_path = config_path
        elif local_path.exists():
            found_path = local_path
        else:
            raise ConfigError(
                f"secrets.json not found at {config_path}. "
                "Copy from secrets.json.template and fill in your settings."
            )

    try:
        with open(found_path) as f:
            secrets = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {found_path}: {e}")

    if not isinstance(secrets, dict):
        raise ConfigError(f"Expected a JSON object in {found_path}")

    return secrets


def has_r2_credentials(secrets: dict[str, Any]) -> bool:
    r2 = secrets.get("r2") or {}
    return all(r2.get(field) for field in R2_FIELDS)


def validate_config(secrets: dict[str, Any]) -> None:
    """Validate that an origin is configured and numeric settings make sense.

    Either a complete r2 section or origin.public_url is required. A
    partially filled r2 section is an error; an all-blank one is ignored.

    Args:
        secrets: Dictionary loaded from secrets.json

    Raises:
        ConfigError: If the configuration is incomplete or invalid
    """
    r2 = secrets.get("r2") or {}
    if any(r2.get(field) for field in R2_FIELDS):
        for field in R2_FIELDS:
            if not r2.get(field):
                raise ConfigError(f"Missing required field: r2.{field}")
    elif not (secrets.get("origin") or {}).get("public_url"):
        raise ConfigError("Missing origin: configure the r2 section or origin.public_url")

    for section, field in POSITIVE_FIELDS:
        value = (secrets.get(section) or {}).get(field)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            raise ConfigError(f"{section}.{field} must be a positive number")


def get_r2_config(secrets: dict[str, Any]) -> Optional[R2Config]:
    """Extract R2 configuration from secrets.

    Args:
        secrets: Dictionary loaded from secrets.json

    Returns:
        R2Config with credentials, or None when R2 is not configured
    """
    if not has_r2_credentials(secrets):
        return None

    r2 = secrets["r2"]
    return R2Config(
        account_id=r2["account_id"],
        access_key_id=r2["access_key_id"],
        secret_access_key=r2["secret_access_key"],
        bucket_name=r2["bucket_name"],
    )


def get_origin_config(secrets: dict[str, Any]) -> OriginConfig:
    """Extract origin fetch settings from secrets."""
    origin = secrets.get("origin") or {}
    defaults = OriginConfig()
    return OriginConfig(
        public_url=origin.get("public_url", defaults.public_url),
        timeout=float(origin.get("timeout", defaults.timeout)),
    )


def get_server_config(secrets: dict[str, Any]) -> ServerConfig:
    """Extract server settings from secrets, filling in defaults."""
    server = secrets.get("server") or {}
    defaults = ServerConfig()
    return ServerConfig(
        host=server.get("host", defaults.host),
        port=int(server.get("port", defaults.port)),
        cache_max_age=int(server.get("cache_max_age", defaults.cache_max_age)),
        immutable=bool(server.get("immutable", defaults.immutable)),
        diagnostic_headers=bool(server.get("diagnostic_headers", defaults.diagnostic_headers)),
        max_image_pixels=int(server.get("max_image_pixels", defaults.max_image_pixels)),
        log_level=str(server.get("log_level", defaults.log_level)).upper(),
    )
