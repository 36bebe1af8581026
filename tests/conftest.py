"""
Pytest configuration and fixtures for secureconfig tests.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from secureconfig import ContainerCodec, SecureConfig, StoreConfig


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep every test away from the real home directory and .env files."""
    home = tmp_path / "home"
    home.mkdir()
    workdir = tmp_path / "work"
    workdir.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(workdir)
    for name in ("SECURECONFIG_FILE", "SECURECONFIG_DIR", "SECURECONFIG_ATOMIC_WRITES"):
        monkeypatch.delenv(name, raising=False)
    return workdir


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "secrets.bin"


@pytest.fixture
def config(store_path: Path) -> StoreConfig:
    return StoreConfig.for_path(store_path)


@pytest.fixture
def codec(config: StoreConfig) -> ContainerCodec:
    return ContainerCodec(config)


@pytest.fixture
def store(config: StoreConfig) -> SecureConfig:
    """A freshly created store."""
    return SecureConfig.open(config)
