"""Secret providers and the table of provider types.

To add a provider type, implement :class:`Provider` and register a
:class:`ProviderInfo` for it in :func:`default_registry`.
"""
import logging
from collections.abc import Callable
from dataclasses import dataclass

from .base import MetadataLister, Provider, list_or_describe
from .config import EncryptionConfig, EnvConfig, ProviderConfig, load_key_material
from .crypto import decrypt, derive_key, encrypt, generate_key_file
from .local import LocalFileProvider
from .store import LocalStore, SecretRecord, deserialize_records, serialize_records
from ..exceptions import ConfigurationError

logger = logging.getLogger("envmap.provider")

Factory = Callable[[EnvConfig, ProviderConfig], Provider]


@dataclass(frozen=True)
class ProviderInfo:
    """Metadata about a registered provider type."""

    type: str
    description: str
    factory: Factory
    required_fields: tuple[str, ...] = ()
    optional_fields: tuple[str, ...] = ()


class ProviderRegistry:
    """Explicit table of provider type name -> :class:`ProviderInfo`."""

    def __init__(self):
        self._providers: dict[str, ProviderInfo] = {}

    def register(self, info: ProviderInfo) -> None:
        """Add a provider type.

        Raises:
            ValueError: If the type is empty, has no factory or is taken.
        """
        if not info.type:
            raise ValueError("provider type cannot be empty")
        if info.factory is None:
            raise ValueError("provider factory cannot be None")
        if info.type in self._providers:
            raise ValueError(f"provider type {info.type!r} already registered")
        self._providers[info.type] = info

    def get(self, provider_type: str) -> ProviderInfo | None:
        return self._providers.get(provider_type)

    def providers(self) -> list[ProviderInfo]:
        return sorted(self._providers.values(), key=lambda info: info.type)

    def list_types(self) -> list[str]:
        return sorted(self._providers)

    def __contains__(self, provider_type: str) -> bool:
        return provider_type in self._providers

    def create(self, env_cfg: EnvConfig, provider_cfg: ProviderConfig) -> Provider:
        """Build a provider for ``provider_cfg.type``.

        Raises:
            ConfigurationError: If the type is unknown or a required
                field is missing.
        """
        info = self.get(provider_cfg.type)
        if info is None:
            raise ConfigurationError(
                f"unknown provider type {provider_cfg.type!r} "
                f"(available: {', '.join(self.list_types())})"
            )
        present = provider_cfg.field_values()
        missing = [name for name in info.required_fields if name not in present]
        if missing:
            raise ConfigurationError(
                f"provider type {info.type!r} missing required field(s): "
                f"{', '.join(missing)}"
            )
        logger.debug("Creating %s provider", info.type)
        return info.factory(env_cfg, provider_cfg)


def default_registry() -> ProviderRegistry:
    """Build the registry of provider types shipped with envmap."""
    registry = ProviderRegistry()
    registry.register(ProviderInfo(
        type="local-file",
        description="Encrypted local file storage",
        factory=LocalFileProvider,
        required_fields=("path", "encryption"),
    ))
    registry.register(ProviderInfo(
        type="local-store",
        description="Encrypted local file storage (alias for local-file)",
        factory=LocalFileProvider,
        required_fields=("path", "encryption"),
    ))
    return registry


__all__ = [
    "Provider",
    "MetadataLister",
    "list_or_describe",
    "ProviderInfo",
    "ProviderRegistry",
    "default_registry",
    "LocalFileProvider",
    "LocalStore",
    "SecretRecord",
    "serialize_records",
    "deserialize_records",
    "EnvConfig",
    "ProviderConfig",
    "EncryptionConfig",
    "load_key_material",
    "derive_key",
    "encrypt",
    "decrypt",
    "generate_key_file",
]
