"""
SecureConfig command line.

Usage:
    secureconfig store <key> <value>
    secureconfig get <key>
    secureconfig list
    secureconfig delete <key>

Or run directly:
    python -m secureconfig.cli store database.password mySecretPassword

The container location comes from ``--file`` or the SECURECONFIG_*
environment variables (a ``.env`` file is honoured).
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from . import __version__
from .config import StoreConfig
from .errors import SecureConfigError
from .store import SecureConfig


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="secureconfig",
        description="Store configuration secrets encrypted at rest (AES-256-GCM).",
    )
    ap.add_argument("--file", default=None, help="Container file name or path (default: $SECURECONFIG_FILE or 'config')")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    ap.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    sub = ap.add_subparsers(dest="command", required=True)

    p_store = sub.add_parser("store", help="Encrypt and store a value")
    p_store.add_argument("key")
    p_store.add_argument("value")

    p_get = sub.add_parser("get", help="Print a decrypted value")
    p_get.add_argument("key")

    sub.add_parser("list", help="Print all keys")

    p_del = sub.add_parser("delete", help="Remove a key")
    p_del.add_argument("key")

    return ap


def _open_store(file: Optional[str]) -> SecureConfig:
    config = StoreConfig.from_env()
    if file:
        config = config.with_filename(file)
    return SecureConfig.open(config)


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        store = _open_store(args.file)
    except SecureConfigError as e:
        print(f"Error initializing config: {e}", file=sys.stderr)
        return 1

    try:
        if args.command == "store":
            store.put(args.key, args.value)
            print(f"Successfully stored encrypted value for key: {args.key}")
        elif args.command == "get":
            print(store.get(args.key))
        elif args.command == "list":
            for key in sorted(store.list()):
                print(key)
        elif args.command == "delete":
            store.delete(args.key)
            print(f"Deleted key: {args.key}")
    except SecureConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
