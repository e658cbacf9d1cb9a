"""Detached PKCS#7 signatures over the pass manifest.

The signature covers the exact `manifest.json` bytes that go into the
archive. Only the DER-encoded signed-data structure is returned; the
manifest itself is not embedded.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.serialization import pkcs7

from .errors import SigningError
from .keys import KeyLayout

LOGGER = logging.getLogger(__name__)

# PKCS7SignatureBuilder no longer accepts SHA-1 in current cryptography
# releases; the manifest digests themselves stay configurable separately.
SIGNATURE_HASHES: dict[str, type[hashes.HashAlgorithm]] = {
    "sha256": hashes.SHA256,
    "sha384": hashes.SHA384,
    "sha512": hashes.SHA512,
}
DEFAULT_SIGNATURE_HASH = "sha256"

_PEM_BLOCK_RE = re.compile(
    rb"-----BEGIN (?P<label>[A-Z0-9 ]+)-----.*?-----END (?P=label)-----\r?\n?",
    re.DOTALL,
)


def _pem_blocks(data: bytes) -> list[tuple[str, bytes]]:
    return [(m.group("label").decode("ascii"), m.group(0)) for m in _PEM_BLOCK_RE.finditer(data)]


def _read(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise SigningError(f"Cannot read key material {path}: {exc}") from exc


def load_signer(path: Path, password: str | None) -> tuple[Any, x509.Certificate]:
    """Load the private key and certificate from a combined PEM file."""

    blocks = _pem_blocks(_read(path))
    key_pem = next((b for label, b in blocks if label.endswith("PRIVATE KEY")), None)
    cert_pem = next((b for label, b in blocks if label == "CERTIFICATE"), None)
    if key_pem is None:
        raise SigningError(f"No private key found in {path}")
    if cert_pem is None:
        raise SigningError(f"No certificate found in {path}")

    try:
        private_key = serialization.load_pem_private_key(
            key_pem,
            password=password.encode("utf-8") if password else None,
        )
        certificate = x509.load_pem_x509_certificate(cert_pem)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise SigningError(f"Cannot load signer from {path}: {exc}") from exc
    return private_key, certificate


def load_intermediate(path: Path) -> x509.Certificate:
    try:
        return x509.load_pem_x509_certificate(_read(path))
    except ValueError as exc:
        raise SigningError(f"Cannot load intermediate certificate {path}: {exc}") from exc


def sign_manifest(
    manifest_bytes: bytes,
    key_location: str | os.PathLike[str] | None,
    pass_type_identifier: str,
    password: str | None = None,
    *,
    hash_algorithm: str = DEFAULT_SIGNATURE_HASH,
) -> bytes:
    """Return the detached DER signature over `manifest_bytes`.

    Key files are looked up with `KeyLayout`. Every failure is reported as
    SigningError with the underlying message.
    """

    hash_cls = SIGNATURE_HASHES.get(hash_algorithm)
    if hash_cls is None:
        raise SigningError(
            f"Unsupported signature hash {hash_algorithm!r}; expected one of {sorted(SIGNATURE_HASHES)}"
        )

    layout = KeyLayout.for_identifier(pass_type_identifier, key_location)
    private_key, certificate = load_signer(layout.signer_path, password)
    intermediate = load_intermediate(layout.wwdr_path)

    try:
        signature = (
            pkcs7.PKCS7SignatureBuilder()
            .set_data(manifest_bytes)
            .add_signer(certificate, private_key, hash_cls())
            .add_certificate(intermediate)
            .sign(
                serialization.Encoding.DER,
                [pkcs7.PKCS7Options.DetachedSignature, pkcs7.PKCS7Options.Binary],
            )
        )
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise SigningError(f"Signing failed: {exc}") from exc

    LOGGER.info(
        "Signed manifest for %s (%s, %d signature bytes)",
        layout.identifier,
        hash_algorithm,
        len(signature),
    )
    return signature
