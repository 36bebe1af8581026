"""
Encrypted key-value store.

This module provides:
- SecureConfig: put/get/list/delete over plaintext keys (alias RecordStore)
- StoreLock: in-process and cross-process guard for read-modify-write cycles

Keys are sealed like values, so there is no plaintext index: every lookup
decrypts stored keys one by one and compares. This is O(n) per call, which
is fine for the handful of entries a configuration file holds.

Concurrency:
    Plain calls take no lock. Two writers sharing a file can lose each
    other's updates because every mutation rewrites the whole container.
    Wrap read-modify-write cycles in ``with store.locked():`` when several
    threads or processes use the same file.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

try:
    import fcntl
except ImportError:  # Windows
    fcntl = None

from .codec import Container, ContainerCodec
from .config import StoreConfig
from .crypto import CipherEnvelope, SecureKey
from .errors import (
    AuthenticationError,
    InvalidEntryError,
    KeyFormatError,
    KeyNotFoundError,
    MalformedCiphertextError,
    StorageError,
)
from .key_manager import KeyManager

logger = logging.getLogger(__name__)


class StoreLock:
    """
    Exclusive guard around one container file.

    Holds a re-entrant thread lock and an advisory ``lockf`` lock on a
    sidecar ``<container>.lock`` file. Blocks until both are available.
    """

    def __init__(self, path: Path) -> None:
        self.path = path.with_name(path.name + ".lock")
        self._thread_lock = threading.RLock()
        self._fd: Optional[int] = None
        self._depth = 0

    def acquire(self) -> None:
        if fcntl is None:
            raise StorageError("File locking requires fcntl (POSIX only)")
        self._thread_lock.acquire()
        if self._depth == 0:
            try:
                self.path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
                fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o600)
                try:
                    fcntl.lockf(fd, fcntl.LOCK_EX)
                except OSError:
                    os.close(fd)
                    raise
            except OSError as e:
                self._thread_lock.release()
                raise StorageError(f"Failed to lock {self.path}: {e}") from e
            self._fd = fd
            logger.debug("Locked %s", self.path)
        self._depth += 1

    def release(self) -> None:
        self._depth -= 1
        if self._depth == 0 and self._fd is not None:
            fcntl.lockf(self._fd, fcntl.LOCK_UN)
            os.close(self._fd)
            self._fd = None
            logger.debug("Unlocked %s", self.path)
        self._thread_lock.release()

    @property
    def held(self) -> bool:
        return self._depth > 0

    def __enter__(self) -> StoreLock:
        self.acquire()
        return self

    def __exit__(self, *exc) -> None:
        self.release()


class SecureConfig:
    """
    Encrypted key-value configuration store.

    Open one with ``SecureConfig.open(config)``; the constructor expects
    already initialized collaborators.
    """

    def __init__(
        self,
        codec: ContainerCodec,
        key: SecureKey,
        container: Container,
    ) -> None:
        self._codec = codec
        self._key = key
        self._envelope = CipherEnvelope(key)
        self._container = container
        self._lock = StoreLock(codec.path)
        # Records whose sealed key failed to open during the last scan
        self.skipped_records = 0

    @classmethod
    def open(cls, config: Optional[StoreConfig] = None) -> SecureConfig:
        """
        Open the store, creating container and master key on first use.

        Args:
            config: Store configuration (default: ``StoreConfig()``)

        Returns:
            Ready-to-use SecureConfig

        Raises:
            KeyGenerationError, KeyFormatError, CryptoError: Key problems
            ContainerFormatError: Structurally invalid container
            StorageError: Container cannot be read or written
        """
        config = config if config is not None else StoreConfig()
        codec = ContainerCodec(config)
        key_manager = KeyManager(codec)
        key = key_manager.initialize(codec.exists())
        container = key_manager.container
        if _decode_text_entries(container, CipherEnvelope(key)):
            container.legacy = True

        if container.legacy:
            codec.persist(container)
            logger.info("Migrated legacy container at %s to binary format", codec.path)

        return cls(codec, key, container)

    @classmethod
    def open_file(cls, filename: str, config: Optional[StoreConfig] = None) -> SecureConfig:
        """Open the store for a specific container file name."""
        config = config if config is not None else StoreConfig()
        return cls.open(config.with_filename(filename))

    @property
    def path(self) -> Path:
        return self._codec.path

    # =========================================================================
    # Public API
    # =========================================================================

    def put(self, key: str, value: str) -> None:
        """
        Store ``value`` under ``key``, replacing any previous value.

        The whole container is rewritten afterwards.

        Raises:
            InvalidEntryError: If key or value is not encodable as UTF-8
        """
        key_bytes = _encode(key, "Key")
        value_bytes = _encode(value, "Value")
        updated = self._container.copy()
        for sealed_key in self._matches(key):
            del updated.entries[sealed_key]
        sealed_key = self._envelope.seal(key_bytes)
        updated.entries[sealed_key] = self._envelope.seal(value_bytes)
        self._commit(updated)

    def get(self, key: str) -> str:
        """
        Return the value stored under ``key``.

        Raises:
            KeyNotFoundError: If no record decrypts to ``key``
            AuthenticationError: If the matching value fails to decrypt
            InvalidEntryError: If key is not encodable as UTF-8
        """
        _encode(key, "Key")
        for sealed_key, plain_key in self._scan():
            if plain_key == key:
                sealed_value = self._container.entries[sealed_key]
                try:
                    plaintext = self._envelope.open(sealed_value)
                except MalformedCiphertextError as e:
                    raise AuthenticationError("Decryption failed") from e
                return plaintext.decode("utf-8")
        raise KeyNotFoundError(f"Key not found: {key}")

    def list(self) -> List[str]:
        """All keys that decrypt, reserved record excluded, in no particular order."""
        return [plain_key for _, plain_key in self._scan()]

    keys = list

    def delete(self, key: str) -> None:
        """
        Remove ``key`` and rewrite the container.

        Raises:
            KeyNotFoundError: If no record decrypts to ``key``
            InvalidEntryError: If key is not encodable as UTF-8
        """
        _encode(key, "Key")
        matches = self._matches(key)
        if not matches:
            raise KeyNotFoundError(f"Key not found: {key}")
        updated = self._container.copy()
        for sealed_key in matches:
            del updated.entries[sealed_key]
        self._commit(updated)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and bool(self._matches(key))

    def __len__(self) -> int:
        return len(self.list())

    def __repr__(self) -> str:
        return f"SecureConfig(path={str(self.path)!r})"

    # =========================================================================
    # Locking
    # =========================================================================

    @contextmanager
    def locked(self) -> Iterator[SecureConfig]:
        """
        Hold the store lock and work on fresh state from disk.

        Nested use from the same thread is allowed.
        """
        with self._lock:
            self.reload()
            yield self

    def reload(self) -> None:
        """
        Re-read the container from disk.

        Raises:
            KeyFormatError: If the file now holds a different master key
        """
        container = self._codec.load()
        if KeyManager.decode_key(container.master_key_record) != self._key:
            raise KeyFormatError(f"Master key in {self.path} changed since open")
        _decode_text_entries(container, self._envelope)
        self._container = container
        logger.debug("Reloaded %d entries from %s", len(container), self.path)

    # =========================================================================
    # Internals
    # =========================================================================

    def _scan(self) -> Iterator[Tuple[bytes, str]]:
        """Yield (sealed key, plaintext key), skipping keys that do not open."""
        self.skipped_records = 0
        for sealed_key, _ in list(self._container.sealed_items()):
            try:
                plain_key = self._envelope.open(sealed_key).decode("utf-8")
            except (AuthenticationError, MalformedCiphertextError, UnicodeDecodeError):
                self.skipped_records += 1
                logger.debug("Skipping record whose key does not decrypt (%d so far)", self.skipped_records)
                continue
            yield sealed_key, plain_key

    def _matches(self, key: str) -> List[bytes]:
        return [sealed_key for sealed_key, plain_key in self._scan() if plain_key == key]

    def _commit(self, container: Container) -> None:
        self._codec.persist(container)
        self._container = container


def _encode(text: str, what: str) -> bytes:
    try:
        return text.encode("utf-8")
    except UnicodeEncodeError as e:
        # Never echo the text itself, it may be a secret
        raise InvalidEntryError(f"{what} is not valid UTF-8 text ({e.reason})") from None


def _opens(envelope: CipherEnvelope, sealed: bytes) -> bool:
    try:
        envelope.open(sealed)
    except (AuthenticationError, MalformedCiphertextError):
        return False
    return True


def _decode_text_entries(container: Container, envelope: CipherEnvelope) -> int:
    """
    Turn base64 text entries back into raw sealed bytes.

    Earlier writers stored base64(sealed key) -> base64(sealed value) inside
    the binary container. An entry is converted only when its key does not
    open as stored but does open once base64-decoded.

    Returns:
        Number of converted entries
    """
    converted = 0
    for sealed_key, sealed_value in list(container.sealed_items()):
        if _opens(envelope, sealed_key):
            continue
        try:
            raw_key = base64.b64decode(sealed_key, validate=True)
            raw_value = base64.b64decode(sealed_value, validate=True)
        except binascii.Error:
            continue
        if not _opens(envelope, raw_key):
            continue
        del container.entries[sealed_key]
        container.entries[raw_key] = raw_value
        converted += 1
    if converted:
        logger.info("Decoded %d base64 text entries", converted)
    return converted


RecordStore = SecureConfig
