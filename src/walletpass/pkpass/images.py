from __future__ import annotations

import logging
import os
import re
from concurrent.futures import ALL_COMPLETED, Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Any, Callable, Iterator, MutableMapping, Union

from .errors import ImageResolutionError, ImageTypeError
from .types import IMAGE_SCALES, ImageRole

LOGGER = logging.getLogger(__name__)

# Raw bytes, a file path, a Future, or a zero-argument callable returning
# bytes (or a Future of bytes).
ImageSource = Union[bytes, bytearray, memoryview, str, "os.PathLike[str]", Future, Callable[[], Any]]

DEFAULT_MAX_WORKERS = 6

_IMAGE_FILE_RE = re.compile(
    r"^(?P<role>" + "|".join(r.value for r in ImageRole) + r")(?:@(?P<scale>[23])x)?\.png$"
)


def image_key(role: ImageRole | str, scale: int = 1) -> str:
    """Key of an image slot in the image map: `icon`, `icon2x`, `icon3x`."""

    role = ImageRole(role)
    if scale not in IMAGE_SCALES:
        raise ValueError(f"Unsupported image scale {scale}; expected one of {IMAGE_SCALES}")
    return role.value if scale == 1 else f"{role.value}{scale}x"


def image_filename(role: ImageRole | str, scale: int = 1) -> str:
    """Archive member name of an image slot: `icon.png`, `icon@2x.png`."""

    role = ImageRole(role)
    if scale not in IMAGE_SCALES:
        raise ValueError(f"Unsupported image scale {scale}; expected one of {IMAGE_SCALES}")
    return f"{role.value}.png" if scale == 1 else f"{role.value}@{scale}x.png"


def iter_image_slots() -> Iterator[tuple[ImageRole, int, str, str]]:
    """Yield (role, scale, key, filename) for every slot, in archive order."""

    for role in ImageRole:
        for scale in IMAGE_SCALES:
            yield role, scale, image_key(role, scale), image_filename(role, scale)


def _slot_for_key(key: str) -> tuple[str, str]:
    for role, _scale, slot_key, filename in iter_image_slots():
        if slot_key == key:
            return role.value, filename
    return key, f"{key}.png"


def scan_image_directory(directory: str | Path) -> dict[str, Path]:
    """Map image keys to files found in `directory`.

    Only `<role>.png`, `<role>@2x.png` and `<role>@3x.png` for known roles
    are picked up; any other file is ignored.
    """

    found: dict[str, Path] = {}
    for path in sorted(Path(directory).iterdir()):
        if not path.is_file():
            continue
        m = _IMAGE_FILE_RE.match(path.name)
        if not m:
            continue
        scale = int(m.group("scale") or 1)
        found[image_key(m.group("role"), scale)] = path.resolve()
    return found


def _ensure_bytes(role: str, filename: str, value: object) -> bytes:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    raise ImageTypeError(
        f"Image producer for {filename} returned {type(value).__name__}, expected bytes",
        role=role,
    )


def _await_future(role: str, filename: str, future: Future) -> bytes:
    try:
        value = future.result()
    except Exception as exc:
        raise ImageResolutionError(f"Image producer for {filename} failed: {exc}", role=role) from exc
    return _ensure_bytes(role, filename, value)


def load_image_source(key: str, source: object) -> bytes:
    """Turn one image source into bytes. Does not touch any cache."""

    role, filename = _slot_for_key(key)

    if isinstance(source, (bytes, bytearray, memoryview)):
        return bytes(source)

    if isinstance(source, (str, os.PathLike)):
        try:
            return Path(source).read_bytes()
        except OSError as exc:
            raise ImageResolutionError(
                f"Cannot read image {filename} from {os.fspath(source)}: {exc}", role=role
            ) from exc

    if isinstance(source, Future):
        return _await_future(role, filename, source)

    if callable(source):
        try:
            produced = source()
        except Exception as exc:
            raise ImageResolutionError(
                f"Image producer for {filename} failed: {exc}", role=role
            ) from exc
        if isinstance(produced, Future):
            return _await_future(role, filename, produced)
        return _ensure_bytes(role, filename, produced)

    raise ImageTypeError(
        f"Cannot load image {filename}, must be bytes, a file path or a callable "
        f"(got {type(source).__name__})",
        role=role,
    )


def resolve_image(images: MutableMapping[str, Any], key: str) -> bytes | None:
    """Resolve a single slot; None when the slot is empty.

    Bytes produced from a path or producer replace the source in `images`.
    """

    source = images.get(key)
    if source is None:
        return None
    data = load_image_source(key, source)
    images[key] = data
    return data


def resolve_images(
    images: MutableMapping[str, Any],
    *,
    max_workers: int | None = None,
) -> dict[str, bytes]:
    """Resolve every populated slot concurrently.

    Returns {archive filename: bytes} in archive order. All tasks are joined
    before anything is returned or raised; on failure the error of the first
    failing slot (in archive order) is raised and no result is cached.
    """

    pending = [
        (key, filename, images[key])
        for _role, _scale, key, filename in iter_image_slots()
        if images.get(key) is not None
    ]
    if not pending:
        return {}

    workers = max_workers or min(len(pending), DEFAULT_MAX_WORKERS)
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="pkpass-image") as executor:
        futures = [
            (key, filename, executor.submit(load_image_source, key, source))
            for key, filename, source in pending
        ]
        wait([f for _k, _n, f in futures], return_when=ALL_COMPLETED)

    for _key, filename, future in futures:
        exc = future.exception()
        if exc is not None:
            LOGGER.warning("Image %s could not be resolved: %s", filename, exc)
            raise exc

    resolved: dict[str, bytes] = {}
    for key, filename, future in futures:
        data = future.result()
        images[key] = data
        resolved[filename] = data
    LOGGER.debug("Resolved %d image(s): %s", len(resolved), ", ".join(resolved))
    return resolved


class ImageSlots:
    """Image accessors shared by templates and passes.

    Subclasses provide an `images` dict keyed by `image_key()`.
    """

    images: dict[str, Any]

    def set_image(self, role: ImageRole | str, source: ImageSource | None, scale: int = 1) -> None:
        key = image_key(role, scale)
        if source is None:
            self.images.pop(key, None)
        else:
            self.images[key] = source

    def get_image(self, role: ImageRole | str, scale: int = 1) -> Any:
        return self.images.get(image_key(role, scale))

    def load_images_from(self, directory: str | Path) -> None:
        """Populate image slots from the PNG files in `directory`."""

        found = scan_image_directory(directory)
        LOGGER.debug("Loaded %d image(s) from %s", len(found), directory)
        self.images.update(found)
