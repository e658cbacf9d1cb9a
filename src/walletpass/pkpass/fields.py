from __future__ import annotations

import os
from typing import Any, Mapping

from .config import resolve_key_password, resolve_keys_dir
from .errors import PassError
from .images import ImageSlots
from .types import FORMAT_VERSION, ArchiveMember, PassState, PassStyle


def merge_fields(
    template_fields: Mapping[str, Any] | None,
    instance_fields: Mapping[str, Any] | None,
) -> dict[str, Any]:
    """Shallow key-wise merge; instance values win over template defaults."""

    combined: dict[str, Any] = dict(template_fields or {})
    combined.update(instance_fields or {})
    return combined


class TopLevelField:
    """Read/write one key of the owner's `fields` map."""

    def __init__(self, key: str) -> None:
        self.key = key

    def __get__(self, obj: Any, objtype: type | None = None) -> Any:
        if obj is None:
            return self
        return obj.fields.get(self.key)

    def __set__(self, obj: Any, value: Any) -> None:
        obj.fields[self.key] = value


class StructureField:
    """Read/write one key of the pass's style structure (e.g. `coupon`)."""

    def __init__(self, key: str) -> None:
        self.key = key

    def __get__(self, obj: Any, objtype: type | None = None) -> Any:
        if obj is None:
            return self
        return obj.structure.get(self.key)

    def __set__(self, obj: Any, value: Any) -> None:
        obj.structure[self.key] = value


class Template(ImageSlots):
    """Reusable defaults shared by many passes.

    A template is treated as read-only once passes are created from it:
    `create_pass` copies everything a pass may mutate.
    """

    pass_type_identifier = TopLevelField("passTypeIdentifier")
    team_identifier = TopLevelField("teamIdentifier")
    background_color = TopLevelField("backgroundColor")
    foreground_color = TopLevelField("foregroundColor")
    label_color = TopLevelField("labelColor")
    logo_text = TopLevelField("logoText")
    organization_name = TopLevelField("organizationName")
    suppress_strip_shine = TopLevelField("suppressStripShine")
    web_service_url = TopLevelField("webServiceURL")

    def __init__(
        self,
        style: PassStyle | str,
        fields: Mapping[str, Any] | None = None,
        *,
        key_location: str | os.PathLike[str] | None = None,
        key_password: str | None = None,
        images: Mapping[str, Any] | None = None,
    ) -> None:
        try:
            self.style = PassStyle(style)
        except ValueError:
            raise PassError(f"Unsupported pass style {style}") from None
        self.fields: dict[str, Any] = dict(fields or {})
        self.key_location = resolve_keys_dir(key_location)
        self.key_password = resolve_key_password(key_password)
        self.images: dict[str, Any] = dict(images or {})

    def set_keys(
        self,
        path: str | os.PathLike[str] | None = None,
        password: str | None = None,
    ) -> None:
        """Point the template at its key directory; empty values are ignored."""

        if path:
            self.key_location = resolve_keys_dir(path)
        if password:
            self.key_password = password

    def create_pass(
        self,
        fields: Mapping[str, Any] | None = None,
        *,
        images: Mapping[str, Any] | None = None,
    ) -> "Pass":
        return Pass(self, merge_fields(self.fields, fields), images=images)


class Pass(ImageSlots):
    """One issued pass: template defaults + instance fields + images."""

    authentication_token = TopLevelField("authenticationToken")
    background_color = TopLevelField("backgroundColor")
    barcode = TopLevelField("barcode")
    description = TopLevelField("description")
    foreground_color = TopLevelField("foregroundColor")
    label_color = TopLevelField("labelColor")
    locations = TopLevelField("locations")
    logo_text = TopLevelField("logoText")
    organization_name = TopLevelField("organizationName")
    pass_type_identifier = TopLevelField("passTypeIdentifier")
    relevant_date = TopLevelField("relevantDate")
    serial_number = TopLevelField("serialNumber")
    suppress_strip_shine = TopLevelField("suppressStripShine")
    team_identifier = TopLevelField("teamIdentifier")
    web_service_url = TopLevelField("webServiceURL")

    auxiliary_fields = StructureField("auxiliaryFields")
    back_fields = StructureField("backFields")
    header_fields = StructureField("headerFields")
    primary_fields = StructureField("primaryFields")
    secondary_fields = StructureField("secondaryFields")
    transit_type = StructureField("transitType")

    def __init__(
        self,
        template: Template,
        fields: Mapping[str, Any],
        *,
        images: Mapping[str, Any] | None = None,
    ) -> None:
        self.template = template
        self.fields: dict[str, Any] = dict(fields)

        # Copy the structure so accessor writes never reach the template.
        style = template.style.value
        structure = self.fields.get(style) or {}
        if not isinstance(structure, Mapping):
            raise PassError(f"Pass field {style} must be an object, got {type(structure).__name__}")
        self.structure: dict[str, Any] = dict(structure)
        self.fields[style] = self.structure

        self.images: dict[str, Any] = {**template.images, **dict(images or {})}
        self.files: list[ArchiveMember] = []
        self.state = PassState.BUILT
        self.failure: Exception | None = None

    @property
    def style(self) -> PassStyle:
        return self.template.style

    def to_json(self) -> dict[str, Any]:
        """The `pass.json` document (a dict, not serialized)."""

        doc = dict(self.fields)
        doc["formatVersion"] = FORMAT_VERSION
        return doc

    def generate(self, **options: Any) -> bytes:
        """Validate, sign and package this pass; returns the archive bytes.

        Options are forwarded to `PassGeneration`.
        """

        from .pipeline import PassGeneration

        return PassGeneration(self, **options).run()
