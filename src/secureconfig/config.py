"""
Store configuration.

Settings that used to be process-wide constants (container file name,
magic header, format version) are carried by a StoreConfig instance passed
to the store at construction, so tests can point each store at its own
file.

Environment variables (a ``.env`` file is honoured):
    SECURECONFIG_FILE            container file name or absolute path
    SECURECONFIG_DIR             per-application fallback directory
    SECURECONFIG_ATOMIC_WRITES   "0"/"false" to overwrite in place
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from .errors import ConfigError
from .paths import default_app_dir, resolve_data_file

DEFAULT_FILENAME = "config"
MAGIC_HEADER = b"SCFG"
FORMAT_VERSION = 1

_FALSE_VALUES = ("0", "false", "no", "off")


@dataclass(frozen=True)
class StoreConfig:
    """Validated store configuration."""

    filename: str = DEFAULT_FILENAME
    app_dir: Path = field(default_factory=default_app_dir)
    path: Optional[Path] = None  # explicit container path, skips resolution
    magic: bytes = MAGIC_HEADER
    version: int = FORMAT_VERSION
    atomic_writes: bool = True

    def __post_init__(self) -> None:
        if not self.filename:
            raise ConfigError("filename must not be empty")
        if len(self.magic) != 4:
            raise ConfigError(f"magic must be exactly 4 bytes, got {len(self.magic)}")
        if not 0 <= self.version <= 0xFFFFFFFF:
            raise ConfigError(f"version must fit in uint32, got {self.version}")

    @classmethod
    def for_path(cls, path: str | os.PathLike, **kwargs) -> StoreConfig:
        """Build a config pinned to an explicit container path."""
        path = Path(path)
        return cls(filename=path.name, path=path.absolute(), **kwargs)

    @classmethod
    def from_env(cls, dotenv_path: Optional[Path] = None) -> StoreConfig:
        """
        Create StoreConfig from the environment.

        Args:
            dotenv_path: Optional ``.env`` file (default: search from cwd)

        Returns:
            Populated StoreConfig instance
        """
        load_dotenv(dotenv_path if dotenv_path is not None else find_dotenv(usecwd=True))

        kwargs = {}
        filename = os.environ.get("SECURECONFIG_FILE")
        if filename:
            kwargs["filename"] = filename
        app_dir = os.environ.get("SECURECONFIG_DIR")
        if app_dir:
            kwargs["app_dir"] = Path(app_dir).expanduser()
        atomic = os.environ.get("SECURECONFIG_ATOMIC_WRITES")
        if atomic is not None:
            kwargs["atomic_writes"] = atomic.strip().lower() not in _FALSE_VALUES
        return cls(**kwargs)

    def with_filename(self, filename: str) -> StoreConfig:
        """Return a copy using another container file name."""
        return replace(self, filename=filename, path=None)

    def resolve_path(self) -> Path:
        """Absolute container path, asking the resolver unless pinned."""
        if self.path is not None:
            return self.path
        return resolve_data_file(self.filename, self.app_dir)
