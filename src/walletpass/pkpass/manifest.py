from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass
from typing import Iterable, Mapping

from .determinism import canonical_json_bytes, digest_bytes
from .types import MANIFEST_JSON, SIGNATURE, ArchiveMember

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ManifestEntry:
    name: str
    digest: str
    size_bytes: int


def manifest_entries(
    members: Mapping[str, bytes] | Iterable[ArchiveMember],
    *,
    algorithm: str = "sha1",
) -> list[ManifestEntry]:
    """Digest every member, keyed by base filename, sorted by name.

    `manifest.json` and `signature` can never be listed in the manifest.
    """

    if isinstance(members, Mapping):
        items = list(members.items())
    else:
        items = [(m.name, m.content) for m in members]

    entries: dict[str, ManifestEntry] = {}
    for name, content in items:
        base = posixpath.basename(name)
        if base in (MANIFEST_JSON, SIGNATURE):
            raise ValueError(f"{base} cannot be listed in the manifest")
        if base in entries:
            raise ValueError(f"Duplicate manifest entry {base}")
        entries[base] = ManifestEntry(
            name=base,
            digest=digest_bytes(content, algorithm),
            size_bytes=len(content),
        )

    return sorted(entries.values(), key=lambda e: e.name)


def build_manifest(
    members: Mapping[str, bytes] | Iterable[ArchiveMember],
    *,
    algorithm: str = "sha1",
) -> tuple[bytes, dict[str, str]]:
    """Return (manifest.json bytes, {filename: hex digest}).

    - digests over the raw, uncompressed member bytes
    - stable JSON formatting, so equal inputs give byte-identical manifests
    """

    entries = manifest_entries(members, algorithm=algorithm)
    digests = {e.name: e.digest for e in entries}
    manifest_bytes = canonical_json_bytes(digests)
    LOGGER.debug(
        "Manifest (%s) over %d member(s), %d bytes total",
        algorithm,
        len(entries),
        sum(e.size_bytes for e in entries),
    )
    return manifest_bytes, digests
