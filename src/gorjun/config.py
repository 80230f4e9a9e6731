"""
Client configuration.

Settings come from ~/.gorjun/config.yaml (or $GORJUN_HOME/config.yaml),
then environment variables override the file:

    GORJUN_HOST    repository host
    GORJUN_USER    repository username
    GORJUN_EMAIL   email bound to the signing key
    GNUPGHOME      GnuPG directory

Passphrases are never stored here.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel

from . import GORJUN_HOME
from .errors import ConfigError
from .models import Identity, default_gpg_dir
from .transport import DEFAULT_TIMEOUT

logger = logging.getLogger("gorjun.config")

CONFIG_FILENAME = "config.yaml"

_ENV_OVERRIDES = {
    "GORJUN_HOST": "hostname",
    "GORJUN_USER": "username",
    "GORJUN_EMAIL": "email",
    "GNUPGHOME": "gpg_dir",
}


class GorjunConfig(BaseModel):
    """Persistent client settings."""

    hostname: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    gpg_dir: Optional[Path] = None
    timeout: float = DEFAULT_TIMEOUT
    verify_tls: bool = True
    strict_challenge: bool = False

    def identity(self, passphrase: Optional[str] = None) -> Identity:
        """Build the Identity for the handshake.

        Raises:
            ConfigError: username or email is not configured.
        """
        missing = [name for name in ("username", "email") if not getattr(self, name)]
        if missing:
            raise ConfigError(f"Missing configuration: {', '.join(missing)}")
        return Identity(
            username=self.username,
            email=self.email,
            passphrase=passphrase or None,
            gpg_dir=Path(self.gpg_dir).expanduser() if self.gpg_dir else default_gpg_dir(),
        )

    def require_hostname(self) -> str:
        if not self.hostname:
            raise ConfigError("Missing configuration: hostname")
        return self.hostname


def load_config(home: Optional[str | Path] = None) -> GorjunConfig:
    """Load config.yaml from ``home`` and apply environment overrides.

    A missing file gives defaults; an unreadable one logs a warning and
    gives defaults.
    """
    base = Path(home or GORJUN_HOME).expanduser()
    config_file = base / CONFIG_FILENAME

    data: dict = {}
    if config_file.exists():
        try:
            loaded = yaml.safe_load(config_file.read_text()) or {}
            if not isinstance(loaded, dict):
                raise ValueError("top level must be a mapping")
            data = loaded
        except (yaml.YAMLError, ValueError) as exc:
            logger.warning("Failed to load config: %s, using defaults", exc)

    for env_name, field_name in _ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            data[field_name] = value

    try:
        return GorjunConfig(**data)
    except ValueError as exc:
        logger.warning("Invalid config in %s: %s, using defaults", config_file, exc)
        return GorjunConfig()


def save_config(config: GorjunConfig, home: Optional[str | Path] = None) -> Path:
    """Write ``config`` to config.yaml under ``home``."""
    base = Path(home or GORJUN_HOME).expanduser()
    base.mkdir(parents=True, exist_ok=True)
    path = base / CONFIG_FILENAME
    path.write_text(
        yaml.dump(config.model_dump(mode="json", exclude_none=True), default_flow_style=False)
    )
    logger.info("Config saved to %s", path)
    return path
