"""
app/schemas package marker.
"""

from app.schemas.import_metadata import (
    ImportMetadata,
    MultiCategoryMetadata,
    SingleCategoryMetadata,
    parse_import_metadata,
)
from app.schemas.imports import (
    ImportActionRequest,
    ImportEventListResponse,
    ImportEventResponse,
    ImportPromotionResponse,
    ImportRetryResponse,
    ImportRollbackResponse,
    ImportSessionListResponse,
    ImportSessionResponse,
    ImportStatsResponse,
    ImportTemplateListResponse,
    ImportTemplateResponse,
    ImportUploadResponse,
    ImportValidationResponse,
    StagedRowResponse,
    StagedRowsResponse,
    ValidationIssueResponse,
)

__all__ = [
    "ImportActionRequest",
    "ImportEventListResponse",
    "ImportEventResponse",
    "ImportMetadata",
    "ImportPromotionResponse",
    "ImportRetryResponse",
    "ImportRollbackResponse",
    "ImportSessionListResponse",
    "ImportSessionResponse",
    "ImportStatsResponse",
    "ImportTemplateListResponse",
    "ImportTemplateResponse",
    "ImportUploadResponse",
    "ImportValidationResponse",
    "MultiCategoryMetadata",
    "SingleCategoryMetadata",
    "StagedRowResponse",
    "StagedRowsResponse",
    "ValidationIssueResponse",
    "parse_import_metadata",
]
