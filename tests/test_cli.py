"""Tests for the secureconfig command line."""

from __future__ import annotations

import pytest

from secureconfig import SecureConfig, StoreConfig
from secureconfig.cli import main


@pytest.fixture
def container(tmp_path):
    return tmp_path / "cli" / "secrets.bin"


def test_store(container, capsys):
    assert main(["--file", str(container), "store", "database.password", "mySecretPassword"]) == 0
    assert "database.password" in capsys.readouterr().out
    assert SecureConfig.open(StoreConfig.for_path(container)).get("database.password") == "mySecretPassword"


def test_store_uses_env_location(tmp_path, monkeypatch):
    monkeypatch.setenv("SECURECONFIG_DIR", str(tmp_path / "appdir"))
    assert main(["store", "a", "b"]) == 0
    assert (tmp_path / "appdir" / "config").exists()


def test_get_list_delete(container, capsys):
    file_args = ["--file", str(container)]
    main(file_args + ["store", "b.key", "2"])
    main(file_args + ["store", "a.key", "1"])
    capsys.readouterr()

    assert main(file_args + ["get", "a.key"]) == 0
    assert capsys.readouterr().out == "1\n"

    assert main(file_args + ["list"]) == 0
    assert capsys.readouterr().out == "a.key\nb.key\n"

    assert main(file_args + ["delete", "a.key"]) == 0
    capsys.readouterr()
    assert main(file_args + ["get", "a.key"]) == 1
    assert "Key not found" in capsys.readouterr().err


def test_invalid_container_exits_nonzero(container, capsys):
    container.parent.mkdir(parents=True)
    container.write_bytes(b"garbage that is not a container")
    assert main(["--file", str(container), "store", "a", "b"]) == 1
    assert "Error initializing config" in capsys.readouterr().err


def test_usage_error():
    with pytest.raises(SystemExit) as exc_info:
        main(["store", "only-key"])
    assert exc_info.value.code != 0


def test_key_not_encodable_as_utf8_exits_nonzero(container, capsys):
    # Linux hands non-UTF-8 argv bytes over as lone surrogates
    assert main(["--file", str(container), "store", "bad\udcffkey", "v"]) == 1
    err = capsys.readouterr().err
    assert "not valid UTF-8" in err
    assert "Traceback" not in err
