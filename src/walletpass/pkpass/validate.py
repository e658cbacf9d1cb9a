from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

import jsonschema
from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError as SchemaValidationError

from .errors import ValidationError
from .images import image_filename, image_key
from .types import REQUIRED_FIELDS, REQUIRED_IMAGES


SCHEMA_DIR = Path(__file__).resolve().parent / "schemas"
TEMPLATE_SCHEMA = "pass_template_v1.schema.json"
MANIFEST_SCHEMA = "pass_manifest_v1.schema.json"


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def validate_pass(fields: Mapping[str, Any], images: Mapping[str, Any]) -> None:
    """Check required fields, then required images.

    Pure in-memory check: image sources are only tested for presence, never
    read or invoked. Raises ValidationError naming the first missing item.
    """

    for key in REQUIRED_FIELDS:
        if _is_missing(fields.get(key)):
            raise ValidationError(f"Missing field {key}", name=key)

    for role in REQUIRED_IMAGES:
        if images.get(image_key(role)) is None:
            filename = image_filename(role)
            raise ValidationError(f"Missing image {filename}", name=role.value)


def load_schema(name: str, *, schema_dir: str | Path | None = None) -> dict[str, Any]:
    path = Path(schema_dir) / name if schema_dir is not None else SCHEMA_DIR / name
    return json.loads(path.read_text(encoding="utf-8"))


def _validate_against(doc: Any, schema_name: str, label: str) -> None:
    schema = load_schema(schema_name)
    validator = Draft202012Validator(schema, format_checker=jsonschema.FormatChecker())
    try:
        validator.validate(doc)
    except SchemaValidationError as exc:
        where = "/".join(str(p) for p in exc.absolute_path) or "<root>"
        raise ValidationError(f"Invalid {label} at {where}: {exc.message}", name=where) from exc


def validate_template_document(doc: Mapping[str, Any]) -> None:
    """Validate a template input document (CLI input).

    Only the envelope is checked (style, fields object, image paths); the
    field values themselves are passed through untouched.
    """

    _validate_against(doc, TEMPLATE_SCHEMA, "template document")


def validate_manifest_document(doc: Mapping[str, Any]) -> None:
    """Validate a manifest read back from an archive: flat name -> hex map."""

    _validate_against(doc, MANIFEST_SCHEMA, "manifest")


def load_template_document(path: str | Path) -> dict[str, Any]:
    """Load and validate a template document; returns the parsed JSON."""

    obj = json.loads(Path(path).read_text(encoding="utf-8"))
    validate_template_document(obj)
    return obj
