"""
SecureConfig

Encrypted key-value storage for configuration secrets (credentials, API
keys), protected at rest with AES-256-GCM.

Quick Start
-----------
```python
from secureconfig import SecureConfig, StoreConfig

store = SecureConfig.open(StoreConfig.for_path("secrets.bin"))
store.put("db.password", "secret123")
assert store.get("db.password") == "secret123"
```

Key Features
------------
- **AES-256-GCM**: every key and every value sealed under its own random nonce
- **Automatic master key**: generated on first open, kept in the container
- **Binary container**: ``SCFG`` header, version, length-prefixed entries
- **Owner-only files**: containers written 0600, directories 0700
- **Opt-in locking**: ``with store.locked():`` for shared files
"""

__version__ = "0.1.0"

# =============================================================================
# Crypto Exports
# =============================================================================

from .crypto import (
    AES_256_KEY_SIZE,
    NONCE_SIZE,
    TAG_SIZE,
    CipherEnvelope,
    SecureKey,
    generate_random_bytes,
)

# =============================================================================
# Error Exports
# =============================================================================

from .errors import (
    AuthenticationError,
    ConfigError,
    ContainerFormatError,
    CryptoError,
    InvalidEntryError,
    InvalidFormatError,
    KeyFormatError,
    KeyGenerationError,
    KeyNotFoundError,
    MalformedCiphertextError,
    SecureConfigError,
    StorageError,
    TruncatedContainerError,
    UnsupportedVersionError,
)

# =============================================================================
# Store Exports (Primary API)
# =============================================================================

from .codec import RESERVED_KEY, Container, ContainerCodec
from .config import StoreConfig
from .key_manager import KeyManager
from .paths import resolve_data_file
from .store import RecordStore, SecureConfig, StoreLock

__all__ = [
    # Version
    "__version__",
    # Crypto
    "AES_256_KEY_SIZE",
    "NONCE_SIZE",
    "TAG_SIZE",
    "CipherEnvelope",
    "SecureKey",
    "generate_random_bytes",
    # Errors
    "SecureConfigError",
    "CryptoError",
    "KeyGenerationError",
    "KeyFormatError",
    "MalformedCiphertextError",
    "AuthenticationError",
    "ContainerFormatError",
    "InvalidFormatError",
    "InvalidEntryError",
    "UnsupportedVersionError",
    "TruncatedContainerError",
    "KeyNotFoundError",
    "StorageError",
    "ConfigError",
    # Store (Primary API)
    "SecureConfig",
    "RecordStore",
    "StoreLock",
    "StoreConfig",
    "KeyManager",
    "Container",
    "ContainerCodec",
    "RESERVED_KEY",
    "resolve_data_file",
]
