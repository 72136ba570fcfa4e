"""Exception hierarchy for envmap.

Everything raised on purpose derives from :class:`EnvmapError`, so callers
can report any envmap failure with a single ``except`` clause.
"""


class EnvmapError(Exception):
    """Base exception for envmap errors."""


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class ConfigurationError(EnvmapError):
    """Provider or key configuration is missing or invalid."""


class MissingKeySource(ConfigurationError):
    """Neither a key environment variable nor a key file is usable."""


class InsecurePermissions(ConfigurationError):
    """Key file is readable or writable by group/other."""

    def __init__(self, path: str, mode: int):
        super().__init__(
            f"key file {path} is too permissive ({mode:#o}); "
            f"run: chmod 600 {path}"
        )
        self.path = path
        self.mode = mode


class KeyTooShort(ConfigurationError):
    """Key file holds fewer bytes than the minimum."""

    def __init__(self, path: str, size: int, minimum: int):
        super().__init__(
            f"key file {path} is too short ({size} bytes); "
            f"use at least {minimum} bytes of random data"
        )
        self.path = path
        self.size = size


class KeyFileExists(ConfigurationError):
    """Refusing to overwrite an existing key file."""

    def __init__(self, path: str):
        super().__init__(
            f"key file {path} already exists; "
            "remove it first if you want to regenerate"
        )
        self.path = path


# ---------------------------------------------------------------------------
# Crypto
# ---------------------------------------------------------------------------

class InvalidMaterial(EnvmapError):
    """Key derivation primitive rejected the input material."""


class DecryptionFailed(EnvmapError):
    """Store blob could not be decrypted."""


class CiphertextTooShort(DecryptionFailed):
    """Ciphertext is shorter than the nonce it must start with."""


class AuthenticationFailed(DecryptionFailed):
    """AEAD tag check failed: wrong key, or corrupted/tampered data."""


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class ParseError(EnvmapError):
    """Decrypted store content is not a valid record mapping."""


class LockAcquisitionFailed(EnvmapError):
    """The cross-process store lock could not be taken."""

    def __init__(self, lock_path: str, reason: str):
        super().__init__(f"acquire lock {lock_path}: {reason}")
        self.lock_path = lock_path


class SecretNotFound(EnvmapError, KeyError):
    """Requested secret does not exist in the provider."""

    def __init__(self, name: str, source: str | None = None):
        message = f"missing secret {name}"
        if source:
            message = f"{message} (expected from {source})"
        super().__init__(message)
        self.name = name
        self.source = source

    def __str__(self) -> str:
        return self.args[0]
