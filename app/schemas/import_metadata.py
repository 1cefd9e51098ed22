"""
app/schemas/import_metadata.py

Upload metadata, validated once when a file is uploaded.

The shape depends on the template layout:

    {"kind": "multi-category"}
    {"kind": "single-category", "category_id": 3, "statistic_id": 12}

Both variants accept an optional display ``name`` and ``description``.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Annotated, Any, Literal, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from app.errors import BadRequest, ErrorDetail
from db.models.import_template import ImportLayout


class _MetadataBase(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    name: str | None = Field(default=None, max_length=255)
    description: str | None = None


class MultiCategoryMetadata(_MetadataBase):
    kind: Literal["multi-category"] = ImportLayout.MULTI_CATEGORY


class SingleCategoryMetadata(_MetadataBase):
    kind: Literal["single-category"] = ImportLayout.SINGLE_CATEGORY
    category_id: int = Field(..., gt=0, validation_alias=AliasChoices("category_id", "categoryId"))
    statistic_id: int = Field(..., gt=0, validation_alias=AliasChoices("statistic_id", "statisticId"))


ImportMetadata = Annotated[
    Union[MultiCategoryMetadata, SingleCategoryMetadata],
    Field(discriminator="kind"),
]

_METADATA_ADAPTER: TypeAdapter[MultiCategoryMetadata | SingleCategoryMetadata] = TypeAdapter(ImportMetadata)


def parse_import_metadata(
    raw: str | Mapping[str, Any] | None,
    *,
    default_kind: str | None = None,
) -> MultiCategoryMetadata | SingleCategoryMetadata:
    """
    Parse upload metadata from a JSON string or mapping.

    When ``kind`` is absent, ``default_kind`` (normally the template layout)
    is used. Raises BadRequest with one error per invalid field.
    """

    if raw is None or (isinstance(raw, str) and not raw.strip()):
        payload: dict[str, Any] = {}
    elif isinstance(raw, str):
        try:
            decoded = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise BadRequest(f"metadata must be a JSON object: {exc.msg}.") from exc
        if not isinstance(decoded, dict):
            raise BadRequest("metadata must be a JSON object.")
        payload = decoded
    else:
        payload = dict(raw)

    if "kind" not in payload and default_kind is not None:
        payload["kind"] = default_kind

    try:
        return _METADATA_ADAPTER.validate_python(payload)
    except ValidationError as exc:
        errors = [
            ErrorDetail(
                code=str(error["type"]),
                message=str(error["msg"]),
                column=".".join(str(part) for part in error["loc"]) or None,
            )
            for error in exc.errors()
        ]
        raise BadRequest("Invalid import metadata.", errors=errors) from exc
