"""
Vault Configuration — validated settings for the vault store.

Reads overrides from environment variables:
    VAULT_PATH = <path to the vault file>
    VAULT_LOCK_TIMEOUT = <seconds to wait for the advisory lock>
    VAULT_FSYNC = <1/0, flush files and directory to disk on write>

Key derivation and cipher parameters are not configurable: they are
bound to the on-disk format version (see ``crypto.KDF_PARAMETERS``).

Security Note:
    The master secret is never read from configuration or environment.
"""
import os
import logging
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger("passvault.vault")

DEFAULT_VAULT_PATH = "passwords.enc"

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


def _env_flag(name: str, default: bool) -> bool:
    """Parse a boolean environment variable.

    Raises:
        ValueError: If the value is not a recognized boolean.
    """
    raw = os.environ.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean flag, got {raw!r}")


class VaultConfig(BaseModel):
    """Validated vault configuration."""

    path: Path = Field(default=Path(DEFAULT_VAULT_PATH))
    lock_timeout: float = Field(default=10.0, ge=0)
    file_mode: int = Field(default=0o600)
    fsync: bool = Field(default=True)

    @field_validator("file_mode")
    @classmethod
    def validate_file_mode(cls, v: int) -> int:
        """Vault files must not be writable by group or others."""
        if v & ~0o777:
            raise ValueError(f"file_mode must be a permission mask, got {oct(v)}")
        if v & 0o022:
            raise ValueError(
                f"file_mode {oct(v)} lets group or others write the vault"
            )
        if v & 0o600 != 0o600:
            raise ValueError(
                f"file_mode {oct(v)} must allow the owner to read and write"
            )
        return v

    @property
    def lock_path(self) -> Path:
        """Sidecar file used for the advisory lock."""
        return self.path.with_name(self.path.name + ".lock")

    @classmethod
    def from_env(cls, **overrides) -> "VaultConfig":
        """Create VaultConfig by loading values from environment.

        Keyword arguments take precedence over the environment.

        Returns:
            Populated VaultConfig instance.
        """
        values = {
            "path": os.environ.get("VAULT_PATH", DEFAULT_VAULT_PATH),
            "lock_timeout": os.environ.get("VAULT_LOCK_TIMEOUT", 10.0),
            "fsync": _env_flag("VAULT_FSYNC", True),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        config = cls(**values)
        logger.debug(
            "Vault config: path=%s lock_timeout=%s fsync=%s",
            config.path, config.lock_timeout, config.fsync,
        )
        return config
