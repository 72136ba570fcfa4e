"""
Provider Configuration: prefix policy, provider settings and key material.

Environment settings for the local store:
    ENVMAP_LOCAL_PATH = <path of the encrypted store> (default ~/.envmap/secrets.db)
    ENVMAP_KEY_ENV    = <name of an env var holding key material>
    ENVMAP_KEY_FILE   = <path of a key file> (default ~/.envmap/key)

Security Note:
    Never log key material. Only log key sources (env var names, file paths).
"""
import os
import stat
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..exceptions import (
    ConfigurationError,
    InsecurePermissions,
    KeyTooShort,
    MissingKeySource,
)

logger = logging.getLogger("envmap.provider")

MIN_KEY_FILE_SIZE = 16

DEFAULT_HOME = "~/.envmap"


def default_key_path() -> Path:
    """Return the default location of the local-store key file."""
    return Path(DEFAULT_HOME, "key").expanduser()


def default_store_path() -> Path:
    """Return the default location of the local encrypted store."""
    return Path(DEFAULT_HOME, "secrets.db").expanduser()


def _ensure_trailing_slash(prefix: str) -> str:
    if prefix.endswith("/"):
        return prefix
    return prefix + "/"


class EnvConfig(BaseModel):
    """Environment entry of a project file: which provider, which prefix.

    ``path_prefix`` builds hierarchical names (``/app/dev/KEY``) and wins over
    the flat ``prefix`` (``APP_DEV_KEY``) when both are set.
    """

    provider: str = ""
    path_prefix: str = ""
    prefix: str = ""

    @property
    def resolved_prefix(self) -> str:
        """Configured prefix in its normalized form."""
        if self.path_prefix:
            return _ensure_trailing_slash(self.path_prefix)
        return self.prefix

    def apply_prefix(self, key: str) -> str:
        """Build the fully-qualified secret name for ``key``."""
        return self.resolved_prefix + key

    def trim_prefix(self, name: str) -> str:
        """Strip the configured prefix from ``name`` for presentation."""
        prefix = self.resolved_prefix
        if prefix and name.startswith(prefix):
            return name[len(prefix):]
        return name


class EncryptionConfig(BaseModel):
    """Encryption settings for local file storage."""

    type: str = Field(default="aes-gcm")
    key_file: str | None = None
    key_env: str | None = None

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        """Validate encryption type is supported."""
        if v not in ("aes-gcm", "aes-256-gcm"):
            raise ValueError(f"Unsupported encryption type: {v}")
        return v


class ProviderConfig(BaseModel):
    """Provider entry of the global configuration.

    Only ``type``, ``path`` and ``encryption`` matter to the local store;
    remote providers read their own settings out of the extra fields.
    """

    model_config = ConfigDict(extra="allow")

    type: str
    profile: str | None = None
    region: str | None = None
    path: str | None = None
    encryption: EncryptionConfig | None = None

    @model_validator(mode="after")
    def expand_path(self) -> "ProviderConfig":
        """Expand ``~`` in the store path."""
        if self.path:
            self.path = os.path.expanduser(self.path)
        return self

    def field_values(self) -> dict[str, Any]:
        """Return the set (non-empty) fields, extras included."""
        return {
            name: value
            for name, value in self.model_dump().items()
            if value not in (None, "", {})
        }

    @classmethod
    def from_env(cls, provider_type: str = "local-file") -> "ProviderConfig":
        """Create a local-store ProviderConfig from ENVMAP_* variables.

        Returns:
            Populated ProviderConfig instance.
        """
        path = os.environ.get("ENVMAP_LOCAL_PATH") or str(default_store_path())
        key_env = os.environ.get("ENVMAP_KEY_ENV") or None
        key_file = os.environ.get("ENVMAP_KEY_FILE") or None
        if key_env is None and key_file is None:
            key_file = str(default_key_path())
        return cls(
            type=provider_type,
            path=path,
            encryption=EncryptionConfig(key_env=key_env, key_file=key_file),
        )


def load_key_material(cfg: EncryptionConfig) -> bytes:
    """Read key material from the configured source.

    A named environment variable takes precedence over the key file.

    Args:
        cfg: Encryption settings of the provider.

    Returns:
        Raw key material bytes.

    Raises:
        MissingKeySource: If no source is configured or the env var is empty.
        InsecurePermissions: If the key file is group/other accessible.
        KeyTooShort: If the key file holds fewer than 16 bytes.
        ConfigurationError: If the key file cannot be read.
    """
    if cfg.key_env:
        # raw bytes: key material need not be valid UTF-8
        value = os.environb.get(os.fsencode(cfg.key_env))
        if not value:
            raise MissingKeySource(
                f"key env var {cfg.key_env} is empty or not set"
            )
        logger.debug("Using key material from env var %s", cfg.key_env)
        return value

    if not cfg.key_file:
        raise MissingKeySource(
            "no key source provided; set encryption.key_env or encryption.key_file"
        )
    path = os.path.expanduser(cfg.key_file)
    try:
        info = os.stat(path)
    except OSError as err:
        raise ConfigurationError(f"stat key file: {err}") from err
    mode = stat.S_IMODE(info.st_mode)
    if mode & 0o077:
        raise InsecurePermissions(path, mode)
    try:
        with open(path, "rb") as fh:
            data = fh.read()
    except OSError as err:
        raise ConfigurationError(f"read key file: {err}") from err
    if len(data) < MIN_KEY_FILE_SIZE:
        raise KeyTooShort(path, len(data), MIN_KEY_FILE_SIZE)
    logger.debug("Using key material from key file %s", path)
    return data
