"""Signed wallet pass (.pkpass) assembly.

A pass is stamped out of a reusable Template plus per-instance fields and
images, then validated, digested into `manifest.json`, signed and zipped:

    template = Template("generic", {...}, key_location="keys")
    pkpass = template.create_pass({...}, images={"icon": b"...", "logo": b"..."})
    archive_bytes = pkpass.generate()

Outputs are deterministic: equal inputs give byte-identical manifests, and
archive members carry fixed timestamps.
"""

from .archive import pack, read_package, verify_package
from .errors import (
    ArchiveError,
    ImageResolutionError,
    ImageTypeError,
    PassError,
    SigningError,
    ValidationError,
)
from .fields import Pass, Template, merge_fields
from .images import image_filename, image_key, resolve_image, resolve_images, scan_image_directory
from .manifest import build_manifest
from .pipeline import PassGeneration
from .signing import sign_manifest
from .types import ImageRole, PassState, PassStyle
from .validate import validate_pass

__all__ = [
    "ArchiveError",
    "ImageResolutionError",
    "ImageRole",
    "ImageTypeError",
    "Pass",
    "PassError",
    "PassGeneration",
    "PassState",
    "PassStyle",
    "SigningError",
    "Template",
    "ValidationError",
    "build_manifest",
    "image_filename",
    "image_key",
    "merge_fields",
    "pack",
    "read_package",
    "resolve_image",
    "resolve_images",
    "scan_image_directory",
    "sign_manifest",
    "validate_pass",
    "verify_package",
]
