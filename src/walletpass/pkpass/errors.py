from __future__ import annotations


class PassError(Exception):
    """Base class for every failure raised while building a pass."""


class ValidationError(PassError):
    """A required field or image is missing.

    `name` is the field name (e.g. `serialNumber`) or the image file name
    (e.g. `icon.png`).
    """

    def __init__(self, message: str, *, name: str) -> None:
        super().__init__(message)
        self.name = name


class ImageResolutionError(PassError):
    """An image source could not be turned into bytes."""

    def __init__(self, message: str, *, role: str) -> None:
        super().__init__(message)
        self.role = role


class ImageTypeError(ImageResolutionError, TypeError):
    """An image source has a shape the resolver does not understand."""


class SigningError(PassError):
    """Signing the manifest failed.

    `diagnostic` carries the underlying library or file-system message as-is.
    """

    def __init__(self, diagnostic: str) -> None:
        super().__init__(diagnostic)
        self.diagnostic = diagnostic


class ArchiveError(PassError):
    """Writing, finalizing or reading back the pass archive failed."""
