from __future__ import annotations

import hashlib
import json
from datetime import datetime
from pathlib import Path
from zipfile import ZIP_DEFLATED, ZipInfo


EPOCH_ZIP_DT = (1980, 1, 1, 0, 0, 0)

SUPPORTED_DIGESTS = ("sha1", "sha256")


def canonical_json_bytes(obj: object) -> bytes:
    """Encode JSON deterministically.

    - UTF-8
    - stable key ordering
    - no insignificant whitespace
    """

    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode(
        "utf-8"
    )


def digest_bytes(data: bytes, algorithm: str = "sha1") -> str:
    """Lowercase hex digest of `data`.

    Only the algorithms wallet clients accept in a manifest are allowed.
    """

    if algorithm not in SUPPORTED_DIGESTS:
        raise ValueError(
            f"Unsupported manifest digest {algorithm!r}; expected one of {SUPPORTED_DIGESTS}"
        )
    return hashlib.new(algorithm, data).hexdigest()


def zip_date_time(value: datetime | None) -> tuple[int, int, int, int, int, int]:
    if value is None:
        return EPOCH_ZIP_DT
    # Zip timestamps cannot predate 1980.
    if value.year < 1980:
        return EPOCH_ZIP_DT
    return (value.year, value.month, value.day, value.hour, value.minute, value.second)


def zip_info(
    name: str,
    *,
    date_time: tuple[int, int, int, int, int, int] = EPOCH_ZIP_DT,
) -> ZipInfo:
    """ZipInfo with stable metadata (timestamp, permissions, compression)."""

    info = ZipInfo(name)
    info.date_time = date_time
    info.compress_type = ZIP_DEFLATED
    info.external_attr = 0o644 << 16
    return info


def write_bytes(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
