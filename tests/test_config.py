"""
Tests for prefix policy, provider settings and key material loading.
"""
import os

import pytest
from pydantic import ValidationError

from envmap.exceptions import (
    ConfigurationError,
    InsecurePermissions,
    KeyTooShort,
    MissingKeySource,
)
from envmap.provider.config import (
    EncryptionConfig,
    EnvConfig,
    ProviderConfig,
    default_key_path,
    load_key_material,
)


class TestPrefixPolicy:
    """Tests for EnvConfig prefix handling."""

    def test_path_prefix_gets_trailing_slash(self):
        env = EnvConfig(path_prefix="/app/dev")
        assert env.resolved_prefix == "/app/dev/"
        assert env.apply_prefix("DB_URL") == "/app/dev/DB_URL"

    def test_path_prefix_already_slashed(self):
        env = EnvConfig(path_prefix="/app/dev/")
        assert env.apply_prefix("DB_URL") == "/app/dev/DB_URL"

    def test_flat_prefix(self):
        env = EnvConfig(prefix="APP_DEV_")
        assert env.apply_prefix("DB_URL") == "APP_DEV_DB_URL"
        assert env.trim_prefix("APP_DEV_DB_URL") == "DB_URL"

    def test_path_prefix_wins(self):
        env = EnvConfig(path_prefix="/app/dev", prefix="IGNORED_")
        assert env.apply_prefix("K") == "/app/dev/K"

    def test_no_prefix_is_identity(self):
        env = EnvConfig()
        assert env.resolved_prefix == ""
        assert env.apply_prefix("K") == "K"
        assert env.trim_prefix("K") == "K"

    def test_trim_leaves_foreign_names(self):
        env = EnvConfig(path_prefix="/app/dev")
        assert env.trim_prefix("/app/dev/K") == "K"
        assert env.trim_prefix("/other/K") == "/other/K"


class TestLoadKeyMaterial:
    """Tests for load_key_material."""

    def test_reads_key_file(self, key_file):
        data = load_key_material(EncryptionConfig(key_file=str(key_file)))
        assert data == key_file.read_bytes()

    def test_short_key_file(self, tmp_path):
        path = tmp_path / "shortkey"
        path.write_bytes(b"short")
        path.chmod(0o600)
        with pytest.raises(KeyTooShort):
            load_key_material(EncryptionConfig(key_file=str(path)))

    def test_sixteen_bytes_is_enough(self, tmp_path):
        path = tmp_path / "key16"
        path.write_bytes(b"0123456789abcdef")
        path.chmod(0o600)
        assert len(load_key_material(EncryptionConfig(key_file=str(path)))) == 16

    @pytest.mark.parametrize("mode", [0o644, 0o640, 0o604, 0o660, 0o606])
    def test_permissive_key_file(self, tmp_path, mode):
        path = tmp_path / "badperms"
        path.write_bytes(b"good-key-material-16")
        path.chmod(mode)
        with pytest.raises(InsecurePermissions) as exc:
            load_key_material(EncryptionConfig(key_file=str(path)))
        assert "chmod 600" in str(exc.value)

    def test_owner_read_only_accepted(self, tmp_path):
        path = tmp_path / "ro"
        path.write_bytes(b"good-key-material-16")
        path.chmod(0o400)
        assert load_key_material(EncryptionConfig(key_file=str(path)))

    def test_missing_key_file(self, tmp_path):
        cfg = EncryptionConfig(key_file=str(tmp_path / "nope"))
        with pytest.raises(ConfigurationError):
            load_key_material(cfg)

    def test_env_var_preferred(self, monkeypatch, tmp_path):
        monkeypatch.setenv("ENVMAP_TEST_KEY", "a passphrase from the env")
        cfg = EncryptionConfig(
            key_env="ENVMAP_TEST_KEY", key_file=str(tmp_path / "unused"),
        )
        assert load_key_material(cfg) == b"a passphrase from the env"

    def test_env_var_unset(self, monkeypatch):
        monkeypatch.delenv("ENVMAP_TEST_KEY", raising=False)
        with pytest.raises(MissingKeySource):
            load_key_material(EncryptionConfig(key_env="ENVMAP_TEST_KEY"))

    def test_env_var_empty(self, monkeypatch):
        monkeypatch.setenv("ENVMAP_TEST_KEY", "")
        with pytest.raises(MissingKeySource):
            load_key_material(EncryptionConfig(key_env="ENVMAP_TEST_KEY"))

    def test_env_var_raw_bytes(self, monkeypatch):
        raw = b"\xff\xfe-not-utf8-key-material-\x80\x81"
        monkeypatch.setitem(os.environb, b"ENVMAP_TEST_KEY", raw)
        cfg = EncryptionConfig(key_env="ENVMAP_TEST_KEY")
        assert load_key_material(cfg) == raw

    def test_no_source(self):
        with pytest.raises(MissingKeySource):
            load_key_material(EncryptionConfig())

    def test_missing_source_is_configuration_error(self):
        assert issubclass(MissingKeySource, ConfigurationError)


class TestProviderConfig:
    """Tests for the pydantic settings models."""

    def test_unsupported_encryption_type(self):
        with pytest.raises(ValidationError):
            EncryptionConfig(type="rot13")

    def test_extra_fields_kept(self):
        cfg = ProviderConfig(type="vault", address="https://vault:8200")
        assert cfg.field_values()["address"] == "https://vault:8200"

    def test_field_values_skips_empty(self):
        cfg = ProviderConfig(type="local-file", path="")
        assert "path" not in cfg.field_values()
        assert "encryption" not in cfg.field_values()

    def test_path_expanded(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HOME", str(tmp_path))
        cfg = ProviderConfig(type="local-file", path="~/secrets.db")
        assert cfg.path == str(tmp_path / "secrets.db")

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("ENVMAP_LOCAL_PATH", str(tmp_path / "s.db"))
        monkeypatch.setenv("ENVMAP_KEY_ENV", "MY_KEY")
        monkeypatch.delenv("ENVMAP_KEY_FILE", raising=False)
        cfg = ProviderConfig.from_env()
        assert cfg.type == "local-file"
        assert cfg.path == str(tmp_path / "s.db")
        assert cfg.encryption.key_env == "MY_KEY"
        assert cfg.encryption.key_file is None

    def test_from_env_defaults(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HOME", str(tmp_path))
        for name in ("ENVMAP_LOCAL_PATH", "ENVMAP_KEY_ENV", "ENVMAP_KEY_FILE"):
            monkeypatch.delenv(name, raising=False)
        cfg = ProviderConfig.from_env()
        assert cfg.path == str(tmp_path / ".envmap" / "secrets.db")
        assert cfg.encryption.key_file == str(default_key_path())
