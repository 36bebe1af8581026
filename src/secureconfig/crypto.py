"""
Cryptographic primitives for the AES-256-GCM configuration envelope.

This module provides:
- SecureKey: Secure key wrapper with automatic zeroization
- CipherEnvelope: seal/open of byte strings as nonce || ciphertext || tag
- generate_random_bytes: CSPRNG helper used for keys and nonces
"""

from __future__ import annotations

import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import (
    AuthenticationError,
    CryptoError,
    KeyGenerationError,
    MalformedCiphertextError,
)

# Cryptographic constants
AES_256_KEY_SIZE: int = 32  # 256 bits
NONCE_SIZE: int = 12  # 96 bits (standard for AES-GCM)
TAG_SIZE: int = 16  # 128 bits (authentication tag)


def generate_random_bytes(length: int) -> bytes:
    """
    Generate cryptographically secure random bytes.

    Args:
        length: Number of bytes to generate

    Returns:
        Random bytes of specified length

    Raises:
        KeyGenerationError: If the operating system random source fails
    """
    try:
        return secrets.token_bytes(length)
    except OSError as e:
        raise KeyGenerationError(f"Random source unavailable: {e}") from e


class SecureKey:
    """
    Secure key wrapper with automatic memory cleanup on deletion.

    Uses bytearray internally for mutable zeroing in __del__.
    Note: Python's garbage collector doesn't guarantee immediate cleanup,
    so this is best-effort zeroization.
    """

    __slots__ = ("_bytes",)

    def __init__(self, key_bytes: bytes | bytearray) -> None:
        if not isinstance(key_bytes, (bytes, bytearray)):
            raise CryptoError("Key must be bytes or bytearray")
        self._bytes = bytearray(key_bytes)

    @classmethod
    def generate(cls) -> SecureKey:
        """Generate a cryptographically secure random 32-byte key."""
        return cls(generate_random_bytes(AES_256_KEY_SIZE))

    def as_bytes(self) -> bytes:
        """Return key as immutable bytes."""
        return bytes(self._bytes)

    def hex(self) -> str:
        """Return key as lowercase hex, the form stored in the container."""
        return self._bytes.hex()

    def __len__(self) -> int:
        return len(self._bytes)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SecureKey):
            return NotImplemented
        return secrets.compare_digest(self.as_bytes(), other.as_bytes())

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        """Redacted representation to prevent accidental key disclosure."""
        return "SecureKey([REDACTED])"

    def __del__(self) -> None:
        """Zero memory on deletion (best-effort)."""
        if hasattr(self, "_bytes"):
            for i in range(len(self._bytes)):
                self._bytes[i] = 0


class CipherEnvelope:
    """
    AES-256-GCM authenticated envelope bound to one master key.

    Every sealed blob is self-contained: nonce(12) || ciphertext || tag(16).
    No associated data is used.
    """

    def __init__(self, key: SecureKey) -> None:
        """
        Construct the envelope for a master key.

        Args:
            key: 32-byte master key

        Raises:
            CryptoError: If the key size is invalid
        """
        if len(key) != AES_256_KEY_SIZE:
            raise CryptoError(
                f"Invalid key size: expected {AES_256_KEY_SIZE}, got {len(key)}"
            )
        self._aead = AESGCM(key.as_bytes())

    def seal(self, plaintext: bytes) -> bytes:
        """
        Encrypt plaintext under a freshly drawn nonce.

        Args:
            plaintext: Data to encrypt

        Returns:
            nonce || ciphertext || tag

        Raises:
            CryptoError: If encryption fails
        """
        nonce = generate_random_bytes(NONCE_SIZE)
        try:
            return nonce + self._aead.encrypt(nonce, plaintext, None)
        except (TypeError, ValueError, OverflowError) as e:
            raise CryptoError(f"Encryption error: {e}") from e

    def open(self, sealed: bytes) -> bytes:
        """
        Verify and decrypt a sealed blob.

        Args:
            sealed: nonce || ciphertext || tag as produced by seal()

        Returns:
            Decrypted plaintext bytes

        Raises:
            MalformedCiphertextError: If input is shorter than the nonce
            AuthenticationError: If the tag does not verify
        """
        if len(sealed) < NONCE_SIZE:
            raise MalformedCiphertextError(
                f"Sealed data too short: expected at least {NONCE_SIZE} bytes, got {len(sealed)}"
            )
        nonce, ciphertext = sealed[:NONCE_SIZE], sealed[NONCE_SIZE:]
        try:
            return self._aead.decrypt(nonce, ciphertext, None)
        except (InvalidTag, ValueError):
            # Generic error to prevent oracle attacks
            raise AuthenticationError("Decryption failed") from None
