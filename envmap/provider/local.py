"""
LocalFileProvider: Secrets in an encrypted file on the local disk.

Provides the public API of the ``local-file`` provider:
- ``get_secret(name)``: decrypt the store and return one value
- ``list_secrets(prefix)`` / ``list_with_metadata(prefix)``: enumerate values
- ``set_secret(name, value)``: read-modify-write and atomically persist
- ``rotate_key(material)``: re-encrypt the store under new key material

Every call takes the store lock exactly once, so concurrent CLI invocations
never interleave a read with a half-finished write.

Security Note:
    Never log secret values. Only log secret names and the store path.
"""
import logging
from datetime import datetime, timezone

from .base import MetadataLister, Provider
from .config import EnvConfig, ProviderConfig, load_key_material
from .crypto import derive_key
from .store import LocalStore, SecretRecord
from ..exceptions import ConfigurationError, SecretNotFound

logger = logging.getLogger("envmap.provider")


class LocalFileProvider(Provider, MetadataLister):
    """Encrypted local file storage.

    The key is derived from the configured key material once, at
    construction. ``created_at`` is fixed the first time a name is written;
    later updates change only the value.
    """

    def __init__(self, env_cfg: EnvConfig, provider_cfg: ProviderConfig):
        if not provider_cfg.path:
            raise ConfigurationError("local-file provider missing path")
        if provider_cfg.encryption is None:
            raise ConfigurationError(
                "local-file provider requires encryption configuration"
            )
        self._env = env_cfg
        material = load_key_material(provider_cfg.encryption)
        self._store = LocalStore(provider_cfg.path, derive_key(material))

    @property
    def path(self) -> str:
        return str(self._store.path)

    def _select(
        self, records: dict[str, SecretRecord], prefix: str
    ) -> dict[str, SecretRecord]:
        """Filter by prefixed name and strip the environment prefix."""
        wanted = self._env.apply_prefix(prefix)
        return {
            self._env.trim_prefix(name): record
            for name, record in records.items()
            if name.startswith(wanted)
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get_secret(self, name: str) -> str:
        """Return the value stored under the prefixed ``name``.

        Raises:
            SecretNotFound: If no entry exists for the name.
        """
        full_name = self._env.apply_prefix(name)
        record = self._store.load().get(full_name)
        if record is None:
            raise SecretNotFound(full_name, self.path)
        return record.value

    def list_secrets(self, prefix: str = "") -> dict[str, str]:
        """Return name -> value for every secret under ``prefix``."""
        return {
            name: record.value
            for name, record in self.list_with_metadata(prefix).items()
        }

    def list_with_metadata(self, prefix: str = "") -> dict[str, SecretRecord]:
        """Return name -> record for every secret under ``prefix``."""
        return self._select(self._store.load(), prefix)

    def set_secret(self, name: str, value: str) -> None:
        """Create or update a secret, keeping its original ``created_at``."""
        full_name = self._env.apply_prefix(name)
        with self._store.transaction() as records:
            existing = records.get(full_name)
            if existing is None:
                created_at = datetime.now(timezone.utc)
            else:
                created_at = existing.created_at
            records[full_name] = SecretRecord(value=value, created_at=created_at)
        logger.debug("Stored secret %s in %s", full_name, self.path)

    def rotate_key(self, material: bytes) -> int:
        """Re-encrypt the whole store under key material ``material``.

        The caller is responsible for persisting the new material (key file
        or env var) before using the store from another process.

        Returns:
            Number of secrets re-encrypted.
        """
        count = self._store.rekey(derive_key(material))
        logger.info("Rotated key of %s: %d secret(s) re-encrypted", self.path, count)
        return count
