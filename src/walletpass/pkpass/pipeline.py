from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Callable

from .archive import pack
from .config import resolve_compression_level, resolve_manifest_algorithm
from .determinism import SUPPORTED_DIGESTS, canonical_json_bytes, zip_date_time
from .errors import PassError, SigningError
from .images import resolve_images
from .manifest import build_manifest
from .signing import DEFAULT_SIGNATURE_HASH, SIGNATURE_HASHES, sign_manifest
from .types import MANIFEST_JSON, PASS_JSON, SIGNATURE, ArchiveMember, PassState
from .validate import validate_pass

if TYPE_CHECKING:
    from .fields import Pass

LOGGER = logging.getLogger(__name__)

# Receives the exact manifest.json bytes, returns the detached signature.
Signer = Callable[[bytes], bytes]


class PassGeneration:
    """One-shot generation of a pass archive.

    BUILT -> VALIDATED -> MANIFEST_COMPUTED -> SIGNED -> ARCHIVED -> DONE;
    any failure moves the pass to FAILED, records the error on
    `pass_.failure`, drops accumulated members and re-raises.
    """

    def __init__(
        self,
        pass_: "Pass",
        *,
        manifest_algorithm: str | None = None,
        signature_hash: str = DEFAULT_SIGNATURE_HASH,
        compression_level: int | None = None,
        max_workers: int | None = None,
        signer: Signer | None = None,
        modified: datetime | None = None,
    ) -> None:
        self._pass = pass_
        self._manifest_algorithm = resolve_manifest_algorithm(manifest_algorithm)
        self._signature_hash = signature_hash
        self._compression_level = resolve_compression_level(compression_level)
        self._max_workers = max_workers
        self._signer = signer
        self._date_time = zip_date_time(modified)

    def run(self) -> bytes:
        p = self._pass
        if p.state is not PassState.BUILT:
            raise PassError(f"Pass cannot be generated twice (state: {p.state.value})")

        try:
            return self._run()
        except Exception as exc:
            p.state = PassState.FAILED
            p.failure = exc
            p.files.clear()
            LOGGER.warning("Pass generation failed: %s", exc)
            raise

    def _advance(self, state: PassState) -> None:
        LOGGER.debug("Pass %s: %s -> %s", self._pass.serial_number, self._pass.state.value, state.value)
        self._pass.state = state

    def _check_options(self) -> None:
        if self._manifest_algorithm not in SUPPORTED_DIGESTS:
            raise PassError(
                f"Unsupported manifest digest {self._manifest_algorithm!r}; "
                f"expected one of {SUPPORTED_DIGESTS}"
            )
        if self._signer is None and self._signature_hash not in SIGNATURE_HASHES:
            raise PassError(
                f"Unsupported signature hash {self._signature_hash!r}; "
                f"expected one of {sorted(SIGNATURE_HASHES)}"
            )

    def _encode_pass_json(self) -> bytes:
        try:
            return canonical_json_bytes(self._pass.to_json())
        except (TypeError, ValueError) as exc:
            raise PassError(f"Cannot encode {PASS_JSON}: {exc}") from exc

    def _run(self) -> bytes:
        p = self._pass

        # Gate: nothing is read or invoked before these checks.
        self._check_options()
        validate_pass(p.fields, p.images)
        self._advance(PassState.VALIDATED)

        pass_json = self._encode_pass_json()
        images = resolve_images(p.images, max_workers=self._max_workers)

        members = [ArchiveMember(PASS_JSON, pass_json)]
        members.extend(ArchiveMember(name, content) for name, content in images.items())
        manifest_bytes, digests = build_manifest(members, algorithm=self._manifest_algorithm)
        p.files.extend(members)
        p.files.append(ArchiveMember(MANIFEST_JSON, manifest_bytes))
        self._advance(PassState.MANIFEST_COMPUTED)

        signature = self._sign(manifest_bytes)
        p.files.append(ArchiveMember(SIGNATURE, signature))
        self._advance(PassState.SIGNED)

        archive = pack(p.files, compression_level=self._compression_level, date_time=self._date_time)
        self._advance(PassState.ARCHIVED)

        self._advance(PassState.DONE)
        LOGGER.info(
            "Generated pass %s (%d manifest entries, %d bytes)",
            p.serial_number,
            len(digests),
            len(archive),
        )
        return archive

    def _sign(self, manifest_bytes: bytes) -> bytes:
        p = self._pass
        if self._signer is None:
            return sign_manifest(
                manifest_bytes,
                p.template.key_location,
                str(p.fields["passTypeIdentifier"]),
                p.template.key_password,
                hash_algorithm=self._signature_hash,
            )

        try:
            signature = self._signer(manifest_bytes)
        except SigningError:
            raise
        except Exception as exc:
            raise SigningError(str(exc)) from exc
        if not isinstance(signature, (bytes, bytearray)) or not signature:
            raise SigningError("Signer returned no signature bytes")
        return bytes(signature)
