"""Tests for StoreConfig and the path resolver."""

from __future__ import annotations

import os
import stat
from pathlib import Path

import pytest

from secureconfig import ConfigError, StoreConfig, resolve_data_file
from secureconfig.paths import default_app_dir


class TestStoreConfig:
    def test_defaults(self):
        config = StoreConfig()
        assert config.filename == "config"
        assert config.magic == b"SCFG"
        assert config.version == 1
        assert config.atomic_writes is True
        assert config.path is None

    def test_for_path(self, tmp_path):
        config = StoreConfig.for_path(tmp_path / "x.bin")
        assert config.filename == "x.bin"
        assert config.resolve_path() == tmp_path / "x.bin"

    def test_with_filename_drops_pinned_path(self, tmp_path):
        config = StoreConfig.for_path(tmp_path / "x.bin").with_filename("y.bin")
        assert config.path is None
        assert config.filename == "y.bin"

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"filename": ""},
            {"magic": b"TOOLONG"},
            {"version": -1},
            {"version": 2**32},
        ],
    )
    def test_validation(self, kwargs):
        with pytest.raises(ConfigError):
            StoreConfig(**kwargs)

    def test_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SECURECONFIG_FILE", "app.bin")
        monkeypatch.setenv("SECURECONFIG_DIR", str(tmp_path / "appdir"))
        monkeypatch.setenv("SECURECONFIG_ATOMIC_WRITES", "false")
        config = StoreConfig.from_env()
        assert config.filename == "app.bin"
        assert config.app_dir == tmp_path / "appdir"
        assert config.atomic_writes is False

    def test_from_dotenv_file(self, tmp_path):
        dotenv = tmp_path / ".env"
        dotenv.write_text("SECURECONFIG_FILE=from-dotenv.bin\n")
        try:
            assert StoreConfig.from_env(dotenv).filename == "from-dotenv.bin"
        finally:
            os.environ.pop("SECURECONFIG_FILE", None)

    def test_from_env_defaults(self):
        config = StoreConfig.from_env()
        assert config.filename == "config"
        assert config.app_dir == default_app_dir()


class TestResolveDataFile:
    def test_prefers_existing_file_in_cwd(self, isolated_env, tmp_path):
        (isolated_env / "config").write_bytes(b"")
        assert resolve_data_file("config", tmp_path / "app") == isolated_env.resolve() / "config"
        assert not (tmp_path / "app").exists()

    def test_falls_back_to_app_dir(self, tmp_path):
        app_dir = tmp_path / "app"
        path = resolve_data_file("config", app_dir)
        assert path == app_dir.resolve() / "config"
        assert path.is_absolute()
        assert stat.S_IMODE(os.stat(app_dir).st_mode) == 0o700

    def test_default_app_dir_is_under_home(self):
        path = resolve_data_file("config")
        assert path == (Path.home() / ".config" / "secureconfig").resolve() / "config"

    def test_uncreatable_app_dir_uses_cwd(self, isolated_env, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_bytes(b"")
        assert resolve_data_file("config", blocker / "app") == isolated_env.resolve() / "config"

    def test_absolute_filename_is_unchanged(self, tmp_path):
        target = tmp_path / "elsewhere" / "config"
        assert resolve_data_file(target, tmp_path / "app") == target
