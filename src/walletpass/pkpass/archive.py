from __future__ import annotations

import json
import logging
import zlib
from io import BytesIO
from typing import Iterable
from zipfile import ZIP_DEFLATED, BadZipFile, LargeZipFile, ZipFile

from .determinism import EPOCH_ZIP_DT, digest_bytes, zip_info
from .errors import ArchiveError, ValidationError
from .types import MANIFEST_JSON, SIGNATURE, ArchiveMember
from .validate import validate_manifest_document

LOGGER = logging.getLogger(__name__)

_DIGEST_BY_LENGTH = {40: "sha1", 64: "sha256"}


def pack(
    members: Iterable[ArchiveMember],
    *,
    compression_level: int | None = None,
    date_time: tuple[int, int, int, int, int, int] = EPOCH_ZIP_DT,
) -> bytes:
    """Write members, in the given order, into an in-memory zip.

    Timestamps are fixed so identical inputs give identical archives.
    Member bytes are stored as-is (compression only affects the container).
    """

    buffer = BytesIO()
    seen: set[str] = set()
    try:
        with ZipFile(buffer, mode="w", compression=ZIP_DEFLATED) as zf:
            for member in members:
                if member.name in seen:
                    raise ArchiveError(f"Duplicate archive member {member.name}")
                seen.add(member.name)
                zf.writestr(
                    zip_info(member.name, date_time=date_time),
                    member.content,
                    compresslevel=compression_level,
                )
    except (OSError, ValueError, LargeZipFile, zlib.error) as exc:
        raise ArchiveError(f"Cannot write pass archive: {exc}") from exc

    data = buffer.getvalue()
    LOGGER.debug("Packed %d member(s) into %d bytes", len(seen), len(data))
    return data


def read_package(data: bytes) -> dict[str, bytes]:
    """Read every member of a pass archive; {name: bytes} in archive order."""

    try:
        with ZipFile(BytesIO(data), mode="r") as zf:
            return {name: zf.read(name) for name in zf.namelist()}
    except (BadZipFile, OSError, ValueError, zlib.error) as exc:
        raise ArchiveError(f"Cannot read pass archive: {exc}") from exc


def verify_package(data: bytes) -> dict[str, str]:
    """Check that the manifest matches the archive contents exactly.

    Returns the parsed manifest. The signature is only checked for
    presence, not cryptographically verified.
    """

    files = read_package(data)
    for required in (MANIFEST_JSON, SIGNATURE):
        if required not in files:
            raise ArchiveError(f"Pass archive is missing {required}")
    if not files[SIGNATURE]:
        raise ArchiveError("Pass archive has an empty signature")

    try:
        manifest = json.loads(files[MANIFEST_JSON].decode("utf-8"))
        validate_manifest_document(manifest)
    except (UnicodeDecodeError, json.JSONDecodeError, ValidationError) as exc:
        raise ArchiveError(f"Malformed {MANIFEST_JSON}: {exc}") from exc

    listed = set(manifest)
    present = {name for name in files if name not in (MANIFEST_JSON, SIGNATURE)}
    if listed != present:
        raise ArchiveError(
            f"Manifest does not match archive members: "
            f"unlisted={sorted(present - listed)} missing={sorted(listed - present)}"
        )

    for name, expected in sorted(manifest.items()):
        algorithm = _DIGEST_BY_LENGTH[len(expected)]
        actual = digest_bytes(files[name], algorithm)
        if actual != expected:
            raise ArchiveError(f"Digest mismatch for {name}: manifest {expected}, actual {actual}")

    return manifest
