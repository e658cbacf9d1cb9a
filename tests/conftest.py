from __future__ import annotations

import shutil
import subprocess
import sys
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

_SRC = (Path(__file__).resolve().parents[1] / "src").as_posix()
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)


PASS_TYPE_IDENTIFIER = "pass.com.acme.demo"
KEY_PASSWORD = "s3cret"


@dataclass(frozen=True)
class KeyMaterial:
    keys_dir: Path
    password: str
    pass_type_identifier: str
    signer_cert: x509.Certificate
    wwdr_cert: x509.Certificate


def _self_signed(common_name: str, key: rsa.RSAPrivateKey) -> x509.Certificate:
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.now(timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=30))
        .sign(key, hashes.SHA256())
    )


@pytest.fixture(scope="session")
def key_material(tmp_path_factory: pytest.TempPathFactory) -> KeyMaterial:
    """Throwaway signer (<identifier>.pem, password protected) + wwdr.pem."""

    keys_dir = tmp_path_factory.mktemp("keys")

    signer_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    signer_cert = _self_signed("Pass Type ID: " + PASS_TYPE_IDENTIFIER, signer_key)
    wwdr_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    wwdr_cert = _self_signed("Test WWDR Intermediate", wwdr_key)

    key_pem = signer_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.BestAvailableEncryption(KEY_PASSWORD.encode("utf-8")),
    )
    (keys_dir / "com.acme.demo.pem").write_bytes(
        signer_cert.public_bytes(serialization.Encoding.PEM) + key_pem
    )
    (keys_dir / "wwdr.pem").write_bytes(wwdr_cert.public_bytes(serialization.Encoding.PEM))

    return KeyMaterial(
        keys_dir=keys_dir,
        password=KEY_PASSWORD,
        pass_type_identifier=PASS_TYPE_IDENTIFIER,
        signer_cert=signer_cert,
        wwdr_cert=wwdr_cert,
    )


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "WALLETPASS_KEYS_DIR",
        "WALLETPASS_KEY_PASSWORD",
        "WALLETPASS_MANIFEST_ALGORITHM",
        "WALLETPASS_COMPRESSION_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def openssl_verify(tmp_path: Path) -> Callable[[bytes, bytes], bool]:
    """Check a detached DER signature over `content` with `openssl smime`.

    `-noverify` skips chain building; the signer's digest over the exact
    content bytes is still checked.
    """

    openssl = shutil.which("openssl")
    if openssl is None:
        pytest.skip("openssl not available")

    def verify(signature: bytes, content: bytes) -> bool:
        sig_path = tmp_path / "signature.der"
        content_path = tmp_path / "content.bin"
        sig_path.write_bytes(signature)
        content_path.write_bytes(content)
        proc = subprocess.run(
            [
                openssl,
                "smime",
                "-verify",
                "-noverify",
                "-binary",
                "-inform",
                "DER",
                "-in",
                str(sig_path),
                "-content",
                str(content_path),
                "-out",
                str(tmp_path / "verified.out"),
            ],
            check=False,
            capture_output=True,
        )
        return proc.returncode == 0

    return verify
