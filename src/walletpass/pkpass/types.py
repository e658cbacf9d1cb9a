from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class PassStyle(str, Enum):
    """Supported pass styles.

    The style names double as the key of the structure object inside
    `pass.json`, so the values must match what wallet clients expect.
    """

    BOARDING_PASS = "boardingPass"
    COUPON = "coupon"
    EVENT_TICKET = "eventTicket"
    GENERIC = "generic"
    STORE_CARD = "storeCard"


class ImageRole(str, Enum):
    """Named image slots, in archive order."""

    BACKGROUND = "background"
    FOOTER = "footer"
    ICON = "icon"
    LOGO = "logo"
    STRIP = "strip"
    THUMBNAIL = "thumbnail"


class PassState(str, Enum):
    BUILT = "built"
    VALIDATED = "validated"
    MANIFEST_COMPUTED = "manifest_computed"
    SIGNED = "signed"
    ARCHIVED = "archived"
    DONE = "done"
    FAILED = "failed"


IMAGE_SCALES: tuple[int, ...] = (1, 2, 3)

REQUIRED_FIELDS: tuple[str, ...] = (
    "description",
    "organizationName",
    "passTypeIdentifier",
    "serialNumber",
    "teamIdentifier",
)

REQUIRED_IMAGES: tuple[ImageRole, ...] = (ImageRole.ICON, ImageRole.LOGO)

PASS_JSON = "pass.json"
MANIFEST_JSON = "manifest.json"
SIGNATURE = "signature"
FORMAT_VERSION = 1


@dataclass(frozen=True)
class ArchiveMember:
    """A single file written into the pass archive."""

    name: str
    content: bytes
