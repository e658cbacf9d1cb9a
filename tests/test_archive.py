from __future__ import annotations

import hashlib
import json
from io import BytesIO
from zipfile import ZipFile

import pytest

from walletpass.pkpass.archive import pack, read_package, verify_package
from walletpass.pkpass.errors import ArchiveError
from walletpass.pkpass.manifest import build_manifest
from walletpass.pkpass.types import ArchiveMember


def _members() -> list[ArchiveMember]:
    content = [ArchiveMember("pass.json", b'{"formatVersion":1}'), ArchiveMember("icon.png", b"icon" * 64)]
    manifest_bytes, _ = build_manifest(content)
    return content + [ArchiveMember("manifest.json", manifest_bytes), ArchiveMember("signature", b"sig")]


def test_pack_preserves_order_and_bytes() -> None:
    members = _members()

    data = pack(members)

    with ZipFile(BytesIO(data)) as zf:
        assert zf.namelist() == ["pass.json", "icon.png", "manifest.json", "signature"]
        assert zf.getinfo("pass.json").date_time == (1980, 1, 1, 0, 0, 0)
    assert read_package(data) == {m.name: m.content for m in members}


def test_pack_is_reproducible() -> None:
    assert pack(_members()) == pack(_members())


def test_compression_level_does_not_change_member_bytes() -> None:
    fast = read_package(pack(_members(), compression_level=1))
    best = read_package(pack(_members(), compression_level=9))
    stored = read_package(pack(_members(), compression_level=0))

    assert fast == best == stored


def test_duplicate_member_is_archive_error() -> None:
    with pytest.raises(ArchiveError, match="Duplicate"):
        pack([ArchiveMember("pass.json", b"a"), ArchiveMember("pass.json", b"b")])


def test_invalid_compression_level_is_archive_error() -> None:
    with pytest.raises(ArchiveError):
        pack(_members(), compression_level=42)


def test_verify_package_round_trip() -> None:
    manifest = verify_package(pack(_members()))

    assert manifest["icon.png"] == hashlib.sha1(b"icon" * 64).hexdigest()


def test_verify_package_detects_tampering() -> None:
    members = _members()
    tampered = [
        ArchiveMember(m.name, b"evil" if m.name == "icon.png" else m.content) for m in members
    ]

    with pytest.raises(ArchiveError, match="Digest mismatch for icon.png"):
        verify_package(pack(tampered))


def test_verify_package_detects_unlisted_member() -> None:
    members = _members() + [ArchiveMember("logo.png", b"logo")]

    with pytest.raises(ArchiveError, match="unlisted=\\['logo.png'\\]"):
        verify_package(pack(members))


def test_verify_package_requires_signature() -> None:
    members = [m for m in _members() if m.name != "signature"]

    with pytest.raises(ArchiveError, match="missing signature"):
        verify_package(pack(members))


def test_verify_package_rejects_malformed_manifest() -> None:
    members = [
        ArchiveMember(m.name, json.dumps({"pass.json": "XYZ"}).encode() if m.name == "manifest.json" else m.content)
        for m in _members()
    ]

    with pytest.raises(ArchiveError, match="Malformed manifest.json"):
        verify_package(pack(members))


def test_read_package_rejects_garbage() -> None:
    with pytest.raises(ArchiveError):
        read_package(b"definitely not a zip")
