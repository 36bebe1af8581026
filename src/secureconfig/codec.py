"""
Binary container format and its persistence.

This module provides:
- Container: in-memory form of the on-disk state (sealed key -> sealed value)
- ContainerCodec: encode/decode of the SCFG layout, load and persist to disk

Layout (all integers big-endian uint32):

    magic(4) version(4) entryCount(4)
    entryCount x [keyLen(4) key(keyLen) valueLen(4) value(valueLen)]

Keys and values are stored as raw bytes, never re-encoded. The codec only
checks structure; whether an entry decrypts is the store's concern.

Files written by older releases hold a JSON object of base64 strings
instead; load() recognises them and marks the container for migration.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import os
import struct
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from .config import StoreConfig
from .errors import InvalidFormatError, StorageError, TruncatedContainerError, UnsupportedVersionError

logger = logging.getLogger(__name__)

RESERVED_KEY = b"k"  # raw key of the master key record

FILE_MODE = 0o600
DIR_MODE = 0o700

_U32 = struct.Struct(">I")
_HEADER = struct.Struct(">4sI")


@dataclass
class Container:
    """Full container state: the reserved key record plus sealed entries."""

    entries: Dict[bytes, bytes] = field(default_factory=dict)
    legacy: bool = False  # loaded from the JSON format, needs rewriting

    @property
    def master_key_record(self) -> Optional[bytes]:
        return self.entries.get(RESERVED_KEY)

    def sealed_items(self):
        """Iterate over (sealed key, sealed value), reserved record excluded."""
        return ((k, v) for k, v in self.entries.items() if k != RESERVED_KEY)

    def copy(self) -> Container:
        return Container(entries=dict(self.entries), legacy=self.legacy)

    def __len__(self) -> int:
        return len(self.entries)


class ContainerCodec:
    """
    Serializes containers to the SCFG layout and moves them to and from disk.
    """

    def __init__(self, config: StoreConfig, path: Optional[Path] = None) -> None:
        """
        Args:
            config: Store configuration (magic, version, write mode)
            path: Container path (default: resolved from config)
        """
        self._config = config
        self._path = path if path is not None else config.resolve_path()

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.exists()

    # =========================================================================
    # Encoding
    # =========================================================================

    def encode(self, container: Container) -> bytes:
        """Serialize a container; entry order follows the mapping."""
        parts = [
            _HEADER.pack(self._config.magic, self._config.version),
            _U32.pack(len(container.entries)),
        ]
        for key, value in container.entries.items():
            parts.append(_U32.pack(len(key)))
            parts.append(key)
            parts.append(_U32.pack(len(value)))
            parts.append(value)
        return b"".join(parts)

    def decode(self, data: bytes) -> Container:
        """
        Parse the SCFG layout.

        Args:
            data: Raw container bytes

        Returns:
            Decoded Container

        Raises:
            TruncatedContainerError: If a header field or segment runs past the end
            InvalidFormatError: If magic mismatches or bytes trail the last entry
            UnsupportedVersionError: If the version is not the supported one
        """
        if len(data) < _HEADER.size:
            raise TruncatedContainerError(
                f"Container too short for header: {len(data)} bytes"
            )
        magic, version = _HEADER.unpack_from(data, 0)
        if magic != self._config.magic:
            raise InvalidFormatError("Invalid container format: magic header mismatch")
        if version != self._config.version:
            raise UnsupportedVersionError(version, self._config.version)

        reader = _Reader(data, _HEADER.size)
        count = reader.u32("entry count")
        entries: Dict[bytes, bytes] = {}
        for index in range(count):
            key = reader.chunk(f"key of entry {index}")
            value = reader.chunk(f"value of entry {index}")
            entries[key] = value

        if reader.remaining:
            raise InvalidFormatError(
                f"{reader.remaining} unexpected trailing bytes after {count} entries"
            )
        return Container(entries=entries)

    def decode_legacy(self, data: bytes) -> Container:
        """
        Parse a JSON-of-base64 container written by older releases.

        The reserved record keeps its hex key verbatim; every other name and
        value is base64. Strings that are not valid base64 are kept as their
        UTF-8 bytes so migration never drops an entry.
        """
        try:
            raw = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise InvalidFormatError(f"Invalid legacy container: {e}") from e
        if not isinstance(raw, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in raw.items()
        ):
            raise InvalidFormatError("Invalid legacy container: expected an object of strings")

        entries: Dict[bytes, bytes] = {}
        for name, value in raw.items():
            if name == RESERVED_KEY.decode():
                entries[RESERVED_KEY] = value.encode("utf-8")
            else:
                entries[_b64_or_raw(name)] = _b64_or_raw(value)
        return Container(entries=entries, legacy=True)

    # =========================================================================
    # Disk IO
    # =========================================================================

    def load(self) -> Container:
        """
        Read and decode the container file.

        Raises:
            StorageError: If the file cannot be read
            ContainerFormatError: If the content is structurally invalid
        """
        try:
            data = self._path.read_bytes()
        except OSError as e:
            raise StorageError(f"Failed to read config file {self._path}: {e}") from e

        if data.lstrip()[:1] == b"{":
            logger.info("Found legacy JSON container at %s", self._path)
            return self.decode_legacy(data)
        return self.decode(data)

    def persist(self, container: Container) -> None:
        """
        Write the whole container to disk with owner-only permissions.

        Raises:
            StorageError: If the directory or file cannot be written
        """
        data = self.encode(container)
        try:
            self._path.parent.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
            if self._config.atomic_writes:
                self._write_atomic(data)
            else:
                self._write_direct(data)
        except OSError as e:
            raise StorageError(f"Failed to write config file {self._path}: {e}") from e
        container.legacy = False
        logger.debug("Persisted %d entries to %s", len(container), self._path)

    def _write_direct(self, data: bytes) -> None:
        fd = os.open(self._path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, FILE_MODE)
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.chmod(self._path, FILE_MODE)

    def _write_atomic(self, data: bytes) -> None:
        # mkstemp creates the file 0o600
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.", suffix=".tmp", dir=self._path.parent
        )
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        _fsync_dir(self._path.parent)


class _Reader:
    """Bounds-checked cursor over container bytes."""

    def __init__(self, data: bytes, offset: int) -> None:
        self._data = data
        self._offset = offset

    @property
    def remaining(self) -> int:
        return len(self._data) - self._offset

    def u32(self, what: str) -> int:
        if self.remaining < _U32.size:
            raise TruncatedContainerError(f"Container too short for {what}")
        (value,) = _U32.unpack_from(self._data, self._offset)
        self._offset += _U32.size
        return value

    def chunk(self, what: str) -> bytes:
        length = self.u32(f"length of {what}")
        if self.remaining < length:
            raise TruncatedContainerError(
                f"Container too short for {what}: need {length} bytes, {self.remaining} left"
            )
        start = self._offset
        self._offset += length
        return self._data[start:self._offset]


def _b64_or_raw(text: str) -> bytes:
    try:
        return base64.b64decode(text, validate=True)
    except binascii.Error:
        return text.encode("utf-8")


def _fsync_dir(directory: Path) -> None:
    # Not supported on every platform (e.g. Windows)
    try:
        fd = os.open(directory, os.O_RDONLY)
    except OSError:
        return
    try:
        os.fsync(fd)
    except OSError as e:
        logger.debug("Directory fsync failed for %s: %s", directory, e)
    finally:
        os.close(fd)
