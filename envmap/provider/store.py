"""
Local Store Persistence: record serialization, locking and atomic writes.

The store is a single encrypted file holding every secret of one local
provider. Access is serialized by two locks held together:

- an advisory ``flock`` on ``<store>.lock``, which excludes other processes;
- a ``threading.Lock`` per store, which excludes other threads of this process.

Writes go to a temp file in the store directory which is fsync'ed and then
renamed over the store, so readers see either the old or the new blob.

Security Note:
    Never log secret values. Only log paths, counts and secret names.
"""
import os
import fcntl
import logging
import tempfile
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from collections.abc import Iterator, Mapping

import orjson
from pydantic import BaseModel, ConfigDict, ValidationError

from .crypto import decrypt, encrypt
from ..exceptions import LockAcquisitionFailed, ParseError

logger = logging.getLogger("envmap.provider")

LOCK_SUFFIX = ".lock"
TEMP_PREFIX = ".secrets-"
TEMP_SUFFIX = ".tmp"


class SecretRecord(BaseModel):
    """A secret value plus optional creation metadata.

    ``created_at`` is None when the source does not know it.
    """

    model_config = ConfigDict(frozen=True)

    value: str
    created_at: datetime | None = None


# ---------------------------------------------------------------------------
# Record serialization
# ---------------------------------------------------------------------------

def serialize_records(records: Mapping[str, SecretRecord]) -> bytes:
    """Encode a name -> record mapping as an orjson document.

    Args:
        records: Fully-qualified secret name to record.

    Returns:
        UTF-8 JSON bytes, indented and with sorted keys.
    """
    payload = {
        name: record.model_dump(mode="json")
        for name, record in records.items()
    }
    return orjson.dumps(
        payload, option=orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS
    )


def deserialize_records(data: bytes) -> dict[str, SecretRecord]:
    """Decode bytes from :func:`serialize_records` back into records.

    Entries stored as bare strings (name -> value) are accepted and
    come back with an unknown ``created_at``.

    Args:
        data: Decrypted store contents. Empty means an empty store.

    Returns:
        Mapping of fully-qualified secret name to record.

    Raises:
        ParseError: If the data is not a valid record mapping.
    """
    if not data:
        return {}
    try:
        parsed = orjson.loads(data)
    except orjson.JSONDecodeError as err:
        raise ParseError(f"parse local store: {err}") from err
    if not isinstance(parsed, dict):
        raise ParseError(
            f"parse local store: expected an object, got {type(parsed).__name__}"
        )
    records: dict[str, SecretRecord] = {}
    for name, entry in parsed.items():
        if isinstance(entry, str):
            records[name] = SecretRecord(value=entry)
            continue
        try:
            records[name] = SecretRecord.model_validate(entry)
        except ValidationError as err:
            raise ParseError(f"parse local store entry {name!r}: {err}") from err
    return records


# ---------------------------------------------------------------------------
# Persistence manager
# ---------------------------------------------------------------------------

class LocalStore:
    """Encrypted record file guarded by a cross-process lock.

    :meth:`read_all` and :meth:`write_all` expect the caller to hold
    :meth:`exclusive_lock`; :meth:`load` and :meth:`transaction` take it
    themselves.
    """

    def __init__(self, path: str | Path, key: bytes):
        self.path = Path(path)
        self.lock_path = Path(f"{self.path}{LOCK_SUFFIX}")
        self._key = key
        self._mutex = threading.Lock()

    def _ensure_dir(self) -> None:
        self.path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    @contextmanager
    def exclusive_lock(self) -> Iterator[None]:
        """Hold the sidecar flock and the in-process mutex.

        Blocks until the lock is free; there is no timeout.

        Raises:
            LockAcquisitionFailed: If the sidecar cannot be opened or locked.
        """
        try:
            self._ensure_dir()
            fd = os.open(self.lock_path, os.O_RDWR | os.O_CREAT, 0o600)
        except OSError as err:
            raise LockAcquisitionFailed(str(self.lock_path), str(err)) from err
        try:
            fcntl.flock(fd, fcntl.LOCK_EX)
        except OSError as err:
            os.close(fd)
            raise LockAcquisitionFailed(str(self.lock_path), str(err)) from err
        try:
            with self._mutex:
                yield
        finally:
            try:
                fcntl.flock(fd, fcntl.LOCK_UN)
            except OSError as err:
                logger.warning("Unlock %s failed: %s", self.lock_path, err)
            os.close(fd)

    # ------------------------------------------------------------------
    # Read / write (lock held by caller)
    # ------------------------------------------------------------------

    def read_all(self) -> dict[str, SecretRecord]:
        """Read, decrypt and decode the whole store.

        A missing or zero-length file is an empty store.

        Raises:
            DecryptionFailed: If the blob does not open under the current key.
            ParseError: If the decrypted blob is not a record mapping.
        """
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return {}
        if not raw:
            return {}
        records = deserialize_records(decrypt(raw, self._key))
        logger.debug("Read %d secret(s) from %s", len(records), self.path)
        return records

    def write_all(
        self,
        records: Mapping[str, SecretRecord],
        key: bytes | None = None,
    ) -> None:
        """Encode, encrypt and atomically replace the store file.

        Args:
            records: Complete mapping to persist.
            key: Encrypt under this key instead of the store's own.
        """
        ciphertext = encrypt(serialize_records(records), key or self._key)
        self._ensure_dir()
        fd, tmp_path = tempfile.mkstemp(
            prefix=TEMP_PREFIX, suffix=TEMP_SUFFIX, dir=self.path.parent,
        )
        try:
            with os.fdopen(fd, "wb") as fh:
                os.fchmod(fh.fileno(), 0o600)
                fh.write(ciphertext)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError as err:
                logger.warning("Could not remove temp file %s: %s", tmp_path, err)
            raise
        logger.debug("Wrote %d secret(s) to %s", len(records), self.path)

    # ------------------------------------------------------------------
    # Locked operations
    # ------------------------------------------------------------------

    def load(self) -> dict[str, SecretRecord]:
        """Return a locked snapshot of the whole store."""
        with self.exclusive_lock():
            return self.read_all()

    @contextmanager
    def transaction(self) -> Iterator[dict[str, SecretRecord]]:
        """Read-modify-write under a single lock hold.

        Yields the mutable record mapping; it is persisted on clean exit
        if it changed. Records are frozen, so changes are made by replacing
        entries. An exception in the body leaves the store untouched.
        """
        with self.exclusive_lock():
            records = self.read_all()
            before = dict(records)
            yield records
            if records != before:
                self.write_all(records)

    def rekey(self, new_key: bytes) -> int:
        """Re-encrypt the whole store under ``new_key``.

        Returns:
            Number of records re-encrypted.
        """
        with self.exclusive_lock():
            records = self.read_all()
            self.write_all(records, key=new_key)
            self._key = new_key
        return len(records)
