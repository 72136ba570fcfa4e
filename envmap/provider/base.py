"""Provider capability interfaces shared by every secret backend."""
from abc import ABC, abstractmethod

from .store import SecretRecord


class Provider(ABC):
    """Interface for all secret backends.

    Names passed in are unprefixed; each provider applies the environment's
    prefix policy itself.
    """

    @abstractmethod
    def get_secret(self, name: str) -> str:
        """Retrieve a single secret by name.

        Raises:
            SecretNotFound: If the secret does not exist.
        """

    @abstractmethod
    def list_secrets(self, prefix: str = "") -> dict[str, str]:
        """Return all secrets under ``prefix``, keyed by unprefixed name."""

    @abstractmethod
    def set_secret(self, name: str, value: str) -> None:
        """Create or update a secret."""


class MetadataLister(ABC):
    """Optional capability: list values together with their metadata."""

    @abstractmethod
    def list_with_metadata(self, prefix: str = "") -> dict[str, SecretRecord]:
        """Return records under ``prefix``, keyed by unprefixed name."""


def list_or_describe(provider: Provider, prefix: str = "") -> dict[str, SecretRecord]:
    """Fetch secrets with metadata when the provider supports it.

    Providers without metadata still return every value, with
    ``created_at`` left as None to signal "unknown".
    """
    if isinstance(provider, MetadataLister):
        return provider.list_with_metadata(prefix)
    return {
        name: SecretRecord(value=value)
        for name, value in provider.list_secrets(prefix).items()
    }
