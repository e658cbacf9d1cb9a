from __future__ import annotations

import os
from pathlib import Path


KEYS_DIR_ENV = "WALLETPASS_KEYS_DIR"
KEY_PASSWORD_ENV = "WALLETPASS_KEY_PASSWORD"
MANIFEST_ALGORITHM_ENV = "WALLETPASS_MANIFEST_ALGORITHM"
COMPRESSION_LEVEL_ENV = "WALLETPASS_COMPRESSION_LEVEL"

DEFAULT_KEYS_DIR = Path("keys")
DEFAULT_MANIFEST_ALGORITHM = "sha1"


def resolve_keys_dir(explicit: str | os.PathLike[str] | None = None) -> Path:
    """Resolve the directory holding signing key material.

    Precedence: explicit argument, then `WALLETPASS_KEYS_DIR`, then a
    working-directory-relative `keys/` folder.
    """

    if explicit is not None:
        return Path(explicit)

    env_value = os.environ.get(KEYS_DIR_ENV)
    if env_value:
        return Path(env_value)

    return DEFAULT_KEYS_DIR


def resolve_key_password(explicit: str | None = None) -> str | None:
    if explicit:
        return explicit
    return os.environ.get(KEY_PASSWORD_ENV) or None


def resolve_manifest_algorithm(explicit: str | None = None) -> str:
    if explicit:
        return explicit.strip().lower()
    env_value = os.environ.get(MANIFEST_ALGORITHM_ENV, "").strip().lower()
    return env_value or DEFAULT_MANIFEST_ALGORITHM


def resolve_compression_level(explicit: int | None = None) -> int | None:
    """Zip deflate level (0-9), or None for the zlib default.

    Unparseable environment values are ignored.
    """

    if explicit is not None:
        return explicit
    value = os.environ.get(COMPRESSION_LEVEL_ENV, "").strip()
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None
