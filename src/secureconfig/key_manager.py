"""
Master key lifecycle.

The master key lives inside the container it protects, under the reserved
record ``b"k"``, as 64 lowercase hex characters. It is generated once, when
no container exists yet, and loaded unchanged on every later open.

Security Note:
    Never log key material. Only log the container path.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Optional

from .codec import RESERVED_KEY, Container, ContainerCodec
from .crypto import AES_256_KEY_SIZE, SecureKey
from .errors import KeyFormatError

logger = logging.getLogger(__name__)


class KeyManager:
    """
    Owns the master key of one store.

    Generates it on first use, persists it through the codec, and decodes it
    from the reserved record on later opens.
    """

    def __init__(self, codec: ContainerCodec) -> None:
        self._codec = codec
        self._key: Optional[SecureKey] = None
        self._container: Optional[Container] = None

    @property
    def container(self) -> Container:
        """Container read (or created) by initialize()."""
        if self._container is None:
            raise RuntimeError("KeyManager.initialize() has not been called")
        return self._container

    @property
    def key(self) -> SecureKey:
        if self._key is None:
            raise RuntimeError("KeyManager.initialize() has not been called")
        return self._key

    def initialize(self, container_exists: bool) -> SecureKey:
        """
        Produce the master key for this store.

        Args:
            container_exists: Whether a container file is already present

        Returns:
            The 32-byte master key

        Raises:
            KeyGenerationError: If the random source fails
            KeyFormatError: If the reserved record is missing or malformed
            StorageError: If the new container cannot be written
            ContainerFormatError: If the existing container is invalid
        """
        if container_exists:
            container = self._codec.load()
            key = self.decode_key(container.master_key_record)
        else:
            key = SecureKey.generate()
            container = Container(entries={RESERVED_KEY: key.hex().encode("ascii")})
            self._codec.persist(container)
            logger.info("Created new container with fresh master key at %s", self._codec.path)

        self._key = key
        self._container = container
        return key

    @staticmethod
    def decode_key(record: Optional[bytes]) -> SecureKey:
        """
        Decode the reserved record into a key.

        Hex is the canonical encoding; base64 is accepted for files written
        by other tools.
        """
        if record is None:
            raise KeyFormatError("Master key record not found in container")

        text = record.strip()
        try:
            raw = bytes.fromhex(text.decode("ascii"))
        except (UnicodeDecodeError, ValueError):
            try:
                raw = base64.b64decode(text, validate=True)
            except binascii.Error:
                raise KeyFormatError("Master key record is neither hex nor base64") from None

        if len(raw) != AES_256_KEY_SIZE:
            raise KeyFormatError(
                f"Invalid master key size: expected {AES_256_KEY_SIZE}, got {len(raw)}"
            )
        return SecureKey(raw)
