from __future__ import annotations

import argparse
import json
import logging
import re
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from .archive import verify_package
from .config import KEY_PASSWORD_ENV, resolve_keys_dir
from .determinism import SUPPORTED_DIGESTS, write_bytes
from .errors import PassError
from .fields import Template
from .signing import DEFAULT_SIGNATURE_HASH, SIGNATURE_HASHES
from .validate import load_template_document


@contextmanager
def _timed(label: str) -> Iterator[None]:
    start = time.perf_counter()
    print(f"[profile] START {label}", flush=True)
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        print(f"[profile] DONE  {label} ({elapsed:.2f}s)", flush=True)


def _sanitize_id(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("empty id")
    return re.sub(r"[^A-Za-z0-9._-]+", "_", value)


def _parse_field(raw: str) -> tuple[str, str]:
    key, sep, value = raw.partition("=")
    key = key.strip()
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"Expected KEY=VALUE, got {raw!r}")
    return key, value


def _load_instance_fields(path: str | None, overrides: list[tuple[str, str]]) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    if path:
        obj = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(obj, dict):
            raise PassError(f"Instance fields in {path} must be a JSON object")
        fields.update(obj)
    for key, value in overrides:
        fields[key] = value
    return fields


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="python -m walletpass.pkpass.cli",
        description="Generate a signed wallet pass archive (.pkpass) from a template.",
    )

    p.add_argument(
        "--template",
        required=True,
        help="Template JSON: {style, fields, images?, keys?}. Image paths are relative to the file.",
    )
    p.add_argument("--fields", help="Instance fields JSON object (overrides template fields).")
    p.add_argument(
        "--field",
        action="append",
        default=[],
        type=_parse_field,
        help="Instance field in the form key=value (repeatable, string values).",
    )
    p.add_argument(
        "--images-dir",
        action="append",
        default=[],
        help="Directory scanned for <role>.png, <role>@2x.png, <role>@3x.png (repeatable).",
    )
    p.add_argument(
        "--keys-dir",
        help=f"Key directory (defaults to the template's keys.path, then WALLETPASS_KEYS_DIR). "
        f"The key password is read from {KEY_PASSWORD_ENV}.",
    )
    p.add_argument("--out", help="Output .pkpass path (default: <serialNumber>.pkpass).")
    p.add_argument(
        "--manifest-algorithm",
        choices=list(SUPPORTED_DIGESTS),
        help="Manifest digest (default: WALLETPASS_MANIFEST_ALGORITHM or sha1).",
    )
    p.add_argument(
        "--signature-hash",
        choices=sorted(SIGNATURE_HASHES),
        default=DEFAULT_SIGNATURE_HASH,
        help=f"Signature digest (default: {DEFAULT_SIGNATURE_HASH}).",
    )
    p.add_argument(
        "--compression-level",
        type=int,
        choices=range(0, 10),
        metavar="0-9",
        help="Zip deflate level (default: WALLETPASS_COMPRESSION_LEVEL or zlib default).",
    )
    p.add_argument(
        "--verify",
        action="store_true",
        help="Read the written archive back and check manifest digests.",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        template_path = Path(args.template)
        doc = load_template_document(template_path)

        keys_dir = args.keys_dir or (doc.get("keys") or {}).get("path")
        if keys_dir and not args.keys_dir:
            keys_dir = template_path.parent / keys_dir
        template = Template(
            doc["style"],
            doc["fields"],
            key_location=resolve_keys_dir(keys_dir),
            images={
                key: template_path.parent / rel for key, rel in (doc.get("images") or {}).items()
            },
        )

        pkpass = template.create_pass(_load_instance_fields(args.fields, args.field))
        for images_dir in args.images_dir:
            pkpass.load_images_from(images_dir)

        with _timed("generate"):
            archive = pkpass.generate(
                manifest_algorithm=args.manifest_algorithm,
                signature_hash=args.signature_hash,
                compression_level=args.compression_level,
            )

        out_path = Path(args.out) if args.out else Path(f"{_sanitize_id(str(pkpass.serial_number))}.pkpass")
        write_bytes(out_path, archive)

        if args.verify:
            manifest = verify_package(out_path.read_bytes())
            print(f"verified {len(manifest)} manifest entries", flush=True)
    except (PassError, OSError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr, flush=True)
        return 2

    print(str(out_path))
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
