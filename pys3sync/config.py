"""Configuration management for pys3sync.

Credentials and connection defaults are read from environment variables
first and then from a JSON file in the user's config directory.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from .exceptions import S3SyncConfigError

logger = logging.getLogger(__name__)

CONFIG_KEYS = (
    "access_key_id",
    "secret_access_key",
    "session_token",
    "region",
    "bucket",
    "endpoint_url",
)

ENV_VARS: dict[str, tuple[str, ...]] = {
    "access_key_id": ("AWS_ACCESS_KEY_ID",),
    "secret_access_key": ("AWS_SECRET_ACCESS_KEY",),
    "session_token": ("AWS_SESSION_TOKEN",),
    "region": ("AWS_REGION", "AWS_DEFAULT_REGION"),
    "bucket": ("PYS3SYNC_BUCKET",),
    "endpoint_url": ("PYS3SYNC_ENDPOINT_URL",),
}


class Config:
    """Resolved user configuration."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_dir: Directory holding ``config.json``. Defaults to
                ~/.config/pys3sync/
        """
        if config_dir is None:
            config_dir = Path.home() / ".config" / "pys3sync"
        self.config_dir = config_dir
        self._file_values: Optional[dict[str, Any]] = None

    def get_config_path(self) -> Path:
        return self.config_dir / "config.json"

    def _load_file(self) -> dict[str, Any]:
        if self._file_values is not None:
            return self._file_values

        path = self.get_config_path()
        values: dict[str, Any] = {}
        if path.exists():
            try:
                with open(path, encoding="utf-8") as f:
                    data = json.load(f)
                if isinstance(data, dict):
                    values = data
                else:
                    logger.warning(f"Ignoring config file {path}: not a JSON object")
            except (OSError, json.JSONDecodeError) as e:
                raise S3SyncConfigError(f"Cannot read config file {path}: {e}") from e
        self._file_values = values
        return values

    def get(self, name: str) -> Optional[str]:
        """Return a config value, environment variables taking precedence."""
        for env_var in ENV_VARS.get(name, ()):
            value = os.environ.get(env_var)
            if value:
                return value
        return self._load_file().get(name)

    @property
    def access_key_id(self) -> Optional[str]:
        return self.get("access_key_id")

    @property
    def secret_access_key(self) -> Optional[str]:
        return self.get("secret_access_key")

    @property
    def session_token(self) -> Optional[str]:
        return self.get("session_token")

    @property
    def region(self) -> Optional[str]:
        return self.get("region")

    @property
    def bucket(self) -> Optional[str]:
        return self.get("bucket")

    @property
    def endpoint_url(self) -> Optional[str]:
        return self.get("endpoint_url")

    def is_configured(self) -> bool:
        """Whether a default bucket is known."""
        return bool(self.bucket)

    def save(self, **values: Optional[str]) -> Path:
        """Merge values into the config file.

        Args:
            **values: Config keys to store; None values are left unchanged

        Returns:
            Path of the written config file
        """
        unknown = set(values) - set(CONFIG_KEYS)
        if unknown:
            raise S3SyncConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")

        data = dict(self._load_file())
        data.update({k: v for k, v in values.items() if v is not None})

        self.config_dir.mkdir(parents=True, exist_ok=True)
        path = self.get_config_path()
        # Credentials live in this file
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            path.chmod(0o600)
            json.dump(data, f, indent=2)
        self._file_values = data
        logger.debug(f"Saved configuration to {path}")
        return path


config = Config()
