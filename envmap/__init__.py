"""envmap: secrets from interchangeable providers.

The local encrypted store lives in :mod:`envmap.provider`; remote providers
plug into the same :class:`~envmap.provider.Provider` interface.
"""
from .version import __version__
from .exceptions import (
    EnvmapError,
    ConfigurationError,
    DecryptionFailed,
    LockAcquisitionFailed,
    ParseError,
    SecretNotFound,
)
from .provider import (
    EnvConfig,
    LocalFileProvider,
    Provider,
    ProviderConfig,
    SecretRecord,
    default_registry,
    generate_key_file,
    list_or_describe,
)

__all__ = [
    "__version__",
    "EnvmapError",
    "ConfigurationError",
    "DecryptionFailed",
    "LockAcquisitionFailed",
    "ParseError",
    "SecretNotFound",
    "EnvConfig",
    "LocalFileProvider",
    "Provider",
    "ProviderConfig",
    "SecretRecord",
    "default_registry",
    "generate_key_file",
    "list_or_describe",
]
