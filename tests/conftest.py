"""Shared fixtures for the local store tests."""
import pytest

from envmap.provider import EncryptionConfig, EnvConfig, ProviderConfig
from envmap.provider.crypto import derive_key


def bytes_of_len(n: int) -> bytes:
    return bytes(1 + (i % 250) for i in range(n))


@pytest.fixture
def key_file(tmp_path):
    """32-byte key file with owner-only permissions."""
    path = tmp_path / "key"
    path.write_bytes(bytes_of_len(32))
    path.chmod(0o600)
    return path


@pytest.fixture
def key():
    return derive_key(b"test-key-material-at-least-16-bytes")


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "store" / "secrets.db"


@pytest.fixture
def provider_cfg(store_path, key_file):
    return ProviderConfig(
        type="local-file",
        path=str(store_path),
        encryption=EncryptionConfig(key_file=str(key_file)),
    )


@pytest.fixture
def env_cfg():
    return EnvConfig(path_prefix="/app/dev")
