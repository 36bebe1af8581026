"""
Exception classes for secure configuration operations.

Structural container problems, cryptographic failures and lookups of
absent keys each have their own branch so callers can tell them apart.
"""

from __future__ import annotations


class SecureConfigError(Exception):
    """Base exception for all secure configuration operations."""

    pass


# =============================================================================
# Cryptographic errors
# =============================================================================


class CryptoError(SecureConfigError):
    """Cryptographic operation failed (encryption, decryption, key handling)."""

    pass


class KeyGenerationError(CryptoError):
    """The random source could not produce master key material."""

    pass


class KeyFormatError(CryptoError):
    """The reserved master key record is missing or cannot be decoded."""

    pass


class MalformedCiphertextError(CryptoError):
    """Sealed data is too short to contain a nonce."""

    pass


class AuthenticationError(CryptoError):
    """Authentication tag did not verify (tampering, wrong key or corruption)."""

    pass


# =============================================================================
# Container format errors
# =============================================================================


class ContainerFormatError(SecureConfigError):
    """The on-disk container is structurally invalid."""

    pass


class InvalidFormatError(ContainerFormatError):
    """Magic header mismatch or otherwise unrecognised layout."""

    pass


class UnsupportedVersionError(ContainerFormatError):
    """Container version is not the supported one."""

    def __init__(self, version: int, supported: int) -> None:
        super().__init__(f"Unsupported container version: {version} (supported: {supported})")
        self.version = version
        self.supported = supported


class TruncatedContainerError(ContainerFormatError):
    """A declared length runs past the end of the container."""

    pass


# =============================================================================
# Store errors
# =============================================================================


class KeyNotFoundError(SecureConfigError):
    """Key not found in the store."""

    pass


class InvalidEntryError(SecureConfigError, ValueError):
    """A key or value cannot be encoded as UTF-8."""

    pass


class StorageError(SecureConfigError):
    """Reading or writing the container file failed."""

    pass


class ConfigError(SecureConfigError):
    """Configuration error."""

    pass
