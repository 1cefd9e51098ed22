"""
app/schemas/imports.py

Request and response schemas for CSV import endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ImportStatsResponse(BaseModel):
    total_rows: int = Field(..., ge=0)
    valid_rows: int = Field(..., ge=0)
    failed_rows: int = Field(..., ge=0)


class ImportUploadResponse(BaseModel):
    """
    API response model for one upload.

    ``message`` explains a discarded duplicate.
    """

    import_id: UUID
    status: str
    duplicate_of: UUID | None = None
    stats: ImportStatsResponse
    message: str | None = None


class ImportActionRequest(BaseModel):
    user_id: int = Field(..., gt=0)


class ValidationIssueResponse(BaseModel):
    row_number: int = Field(..., ge=1)
    reason: str
    message: str
    column: str | None = None


class ImportValidationResponse(BaseModel):
    import_id: UUID
    status: str
    is_valid: bool
    stats: dict[str, Any]
    warnings: list[str] = Field(default_factory=list)
    errors: list[ValidationIssueResponse] = Field(default_factory=list)


class ImportPromotionResponse(BaseModel):
    import_id: UUID
    status: str
    published_rows: int = Field(..., ge=0)
    inserted_rows: int = Field(..., ge=0)
    updated_rows: int = Field(..., ge=0)


class ImportRollbackResponse(BaseModel):
    import_id: UUID
    status: str
    restored_rows: int = Field(..., ge=0)
    deleted_rows: int = Field(..., ge=0)
    skipped_rows: int = Field(..., ge=0)


class ImportRetryResponse(BaseModel):
    import_id: UUID
    status: str
    stats: ImportStatsResponse


class ImportSessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    import_id: UUID = Field(..., validation_alias="id")
    name: str
    description: str | None = None
    file_name: str
    file_size_bytes: int
    content_hash: str
    template_id: int
    metadata: dict[str, Any] | None = Field(default=None, validation_alias="metadata_json")
    status: str
    attempt: int
    uploaded_by: int
    promoted_by: int | None = None
    total_rows: int
    valid_rows: int
    failed_rows: int
    published_rows: int | None = None
    duplicate_of: UUID | None = None
    error_message: str | None = None
    validation_summary: dict[str, Any] | None = None
    created_at: datetime
    updated_at: datetime
    validated_at: datetime | None = None
    promoted_at: datetime | None = None
    rolled_back_by: int | None = None
    rolled_back_at: datetime | None = None
    failure_breakdown: dict[str, int] | None = None


class ImportSessionListResponse(BaseModel):
    imports: list[ImportSessionResponse] = Field(default_factory=list)


class StagedRowResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    row_number: int
    state_id: int
    category_id: int
    statistic_id: int
    year: int
    value: float
    raw_fields: dict[str, Any] | None = None


class StagedRowsResponse(BaseModel):
    import_id: UUID
    total: int = Field(..., ge=0)
    rows: list[StagedRowResponse] = Field(default_factory=list)


class ImportEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    level: str
    event: str
    message: str
    details: dict[str, Any] | None = None
    created_at: datetime


class ImportEventListResponse(BaseModel):
    import_id: UUID
    events: list[ImportEventResponse] = Field(default_factory=list)


class ImportTemplateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None = None
    layout: str


class ImportTemplateListResponse(BaseModel):
    templates: list[ImportTemplateResponse] = Field(default_factory=list)
