"""
Tests for VaultConfig.

Tests cover:
- Defaults
- Environment overrides and explicit overrides
- Validation of lock timeout and file mode
"""
from pathlib import Path

import pytest
from pydantic import ValidationError

from passvault.vault import VaultConfig


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("VAULT_PATH", "VAULT_LOCK_TIMEOUT", "VAULT_FSYNC"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestVaultConfig:
    """Tests for the validated configuration model."""

    def test_defaults(self):
        """Test default values."""
        config = VaultConfig()
        assert config.path == Path("passwords.enc")
        assert config.lock_timeout == 10.0
        assert config.file_mode == 0o600
        assert config.fsync is True

    def test_lock_path(self, tmp_path):
        """Test the sidecar lock path."""
        config = VaultConfig(path=tmp_path / "store.enc")
        assert config.lock_path == tmp_path / "store.enc.lock"

    def test_negative_timeout_rejected(self):
        """Test lock_timeout lower bound."""
        with pytest.raises(ValidationError):
            VaultConfig(lock_timeout=-1)

    @pytest.mark.parametrize("mode", [0o644, 0o666, 0o622, 0o400, 0o1600])
    def test_unsafe_file_mode_rejected(self, mode):
        """Test that group/other write and odd masks are refused."""
        with pytest.raises(ValidationError):
            VaultConfig(file_mode=mode)

    @pytest.mark.parametrize("mode", [0o600, 0o640, 0o700])
    def test_safe_file_mode(self, mode):
        """Test accepted permission masks."""
        assert VaultConfig(file_mode=mode).file_mode == mode


class TestFromEnv:
    """Tests for VaultConfig.from_env."""

    def test_from_env_defaults(self, clean_env):
        """Test from_env with an empty environment."""
        assert VaultConfig.from_env() == VaultConfig()

    def test_from_env_values(self, clean_env, tmp_path):
        """Test values read from the environment."""
        clean_env.setenv("VAULT_PATH", str(tmp_path / "env.enc"))
        clean_env.setenv("VAULT_LOCK_TIMEOUT", "2.5")
        clean_env.setenv("VAULT_FSYNC", "no")
        config = VaultConfig.from_env()
        assert config.path == tmp_path / "env.enc"
        assert config.lock_timeout == 2.5
        assert config.fsync is False

    def test_overrides_win(self, clean_env, tmp_path):
        """Test keyword overrides take precedence; None means unset."""
        clean_env.setenv("VAULT_PATH", str(tmp_path / "env.enc"))
        config = VaultConfig.from_env(path=str(tmp_path / "cli.enc"), lock_timeout=None)
        assert config.path == tmp_path / "cli.enc"
        assert config.lock_timeout == 10.0

    def test_bad_flag(self, clean_env):
        """Test an unparsable boolean."""
        clean_env.setenv("VAULT_FSYNC", "maybe")
        with pytest.raises(ValueError):
            VaultConfig.from_env()

    def test_bad_timeout(self, clean_env):
        """Test an invalid timeout from the environment."""
        clean_env.setenv("VAULT_LOCK_TIMEOUT", "soon")
        with pytest.raises(ValidationError):
            VaultConfig.from_env()
