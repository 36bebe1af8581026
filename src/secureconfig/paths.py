"""Location of the container file on disk."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

APP_DIR_MODE = 0o700


def default_app_dir() -> Path:
    """Per-application fallback directory, ``~/.config/secureconfig``."""
    return Path.home() / ".config" / "secureconfig"


def resolve_data_file(filename: str | os.PathLike, app_dir: Optional[Path] = None) -> Path:
    """
    Return the absolute path to use for ``filename``.

    Preference order:
    1. ``filename`` in the current working directory, if it already exists
    2. ``filename`` under ``app_dir`` (created owner-only if absent)
    3. the current working directory, if ``app_dir`` cannot be created

    Absolute filenames are returned unchanged.

    Args:
        filename: Container file name
        app_dir: Per-application directory (default: ``default_app_dir()``)

    Returns:
        Absolute path of the container file
    """
    candidate = Path(filename)
    if candidate.is_absolute():
        return candidate

    local = Path.cwd() / candidate
    if local.exists():
        logger.debug("Using config file in current directory: %s", local)
        return local

    directory = app_dir if app_dir is not None else default_app_dir()
    try:
        directory.mkdir(mode=APP_DIR_MODE, parents=True, exist_ok=True)
    except OSError as e:
        logger.warning("Cannot create %s (%s), falling back to current directory", directory, e)
        return local

    path = directory.resolve() / candidate
    logger.debug("Using config file in application directory: %s", path)
    return path
