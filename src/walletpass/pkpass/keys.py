from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .config import resolve_keys_dir


PASS_TYPE_PREFIX = "pass."
KEY_FILE_SUFFIX = ".pem"
WWDR_CERT_NAME = "wwdr.pem"


def key_identifier(pass_type_identifier: str) -> str:
    """`pass.com.example.demo` -> `com.example.demo`."""

    if pass_type_identifier.startswith(PASS_TYPE_PREFIX):
        return pass_type_identifier[len(PASS_TYPE_PREFIX):]
    return pass_type_identifier


@dataclass(frozen=True)
class KeyLayout:
    """Where signing material lives for one pass type.

    Layout: <keys_dir>/<identifier>.pem (private key + certificate) and
    <keys_dir>/wwdr.pem (shared intermediate certificate).
    """

    keys_dir: Path
    identifier: str

    @classmethod
    def for_identifier(
        cls,
        pass_type_identifier: str,
        keys_dir: str | os.PathLike[str] | None = None,
    ) -> "KeyLayout":
        return cls(keys_dir=resolve_keys_dir(keys_dir), identifier=key_identifier(pass_type_identifier))

    @property
    def signer_path(self) -> Path:
        return self.keys_dir / f"{self.identifier}{KEY_FILE_SUFFIX}"

    @property
    def wwdr_path(self) -> Path:
        return self.keys_dir / WWDR_CERT_NAME
