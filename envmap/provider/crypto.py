"""
Local Store Crypto: Key derivation, AES-256-GCM sealing and key generation.

Store blob layout: [nonce 12B][encrypted_payload + GCM_tag 16B]

The encryption key is HKDF-SHA256(key_material, info="envmap-local-encryption-v1").
HKDF accepts both random key files and passphrase-like environment values.

Security Note:
    Never log key material, plaintext or ciphertext values.
    Nonces are random 96-bit; collision probability negligible under normal usage.
"""
import os
import secrets
import logging
from pathlib import Path

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..exceptions import (
    AuthenticationFailed,
    CiphertextTooShort,
    InvalidMaterial,
    KeyFileExists,
)

logger = logging.getLogger("envmap.provider")

NONCE_SIZE = 12  # 96-bit nonce
TAG_SIZE = 16  # 128-bit GCM tag
KEY_LENGTH = 32  # AES-256
GENERATED_KEY_SIZE = 32

# Versioned: changing this label makes every existing store unreadable.
KEY_INFO = b"envmap-local-encryption-v1"


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_key(material: bytes) -> bytes:
    """Derive the 32-byte store key from arbitrary key material.

    Args:
        material: Raw key file bytes or the bytes of a key environment value.

    Returns:
        32-byte derived key.

    Raises:
        InvalidMaterial: If the HKDF primitive rejects the input.
    """
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=None,  # every encryption carries its own random nonce
        info=KEY_INFO,
    )
    try:
        return hkdf.derive(material)
    except (TypeError, ValueError) as err:
        raise InvalidMaterial(f"derive encryption key: {err}") from err


# ---------------------------------------------------------------------------
# Authenticated encryption
# ---------------------------------------------------------------------------

def encrypt(plaintext: bytes, key: bytes) -> bytes:
    """Seal plaintext with AES-256-GCM under a fresh random nonce.

    Args:
        plaintext: Data to encrypt.
        key: 32-byte derived key.

    Returns:
        nonce || ciphertext || tag.
    """
    cipher = AESGCM(key)
    nonce = os.urandom(NONCE_SIZE)
    return nonce + cipher.encrypt(nonce, plaintext, None)


def decrypt(ciphertext: bytes, key: bytes) -> bytes:
    """Open a blob produced by :func:`encrypt`.

    Args:
        ciphertext: Blob in format [nonce 12B][payload+tag].
        key: 32-byte derived key.

    Returns:
        Decrypted plaintext bytes.

    Raises:
        CiphertextTooShort: If the blob cannot even hold a nonce.
        AuthenticationFailed: If the tag does not verify.
    """
    if len(ciphertext) < NONCE_SIZE:
        raise CiphertextTooShort(
            f"ciphertext too short: {len(ciphertext)} bytes "
            f"(minimum {NONCE_SIZE})"
        )
    cipher = AESGCM(key)
    nonce = ciphertext[:NONCE_SIZE]
    try:
        return cipher.decrypt(nonce, ciphertext[NONCE_SIZE:], None)
    except InvalidTag as err:
        raise AuthenticationFailed(
            "message authentication failed (wrong key or corrupted data)"
        ) from err


# ---------------------------------------------------------------------------
# Key generation
# ---------------------------------------------------------------------------

def generate_key_file(path: str | Path) -> Path:
    """Create a new random key file for local storage.

    The parent directory is created with mode 0700 and the key is written
    with mode 0600.

    Args:
        path: Destination of the key file.

    Returns:
        The path written.

    Raises:
        KeyFileExists: If ``path`` already holds content.
    """
    target = Path(path).expanduser()
    key = secrets.token_bytes(GENERATED_KEY_SIZE)
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
    try:
        fd = os.open(target, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    except FileExistsError:
        fd = os.open(target, os.O_WRONLY)
        if os.fstat(fd).st_size > 0:
            os.close(fd)
            raise KeyFileExists(str(target)) from None
    with os.fdopen(fd, "wb") as fh:
        # an empty placeholder may predate us with looser bits
        os.fchmod(fh.fileno(), 0o600)
        fh.write(key)
    logger.info("Generated encryption key file %s", target)
    return target
