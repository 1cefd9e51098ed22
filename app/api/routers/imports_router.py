"""
app/api/routers/imports_router.py

CSV import HTTP endpoints: upload, validate, promote, roll back, retry and
the operator views over import sessions and their event logs.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Form, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from app.api.dependencies import read_csv_upload
from app.errors import (
    BadRequest,
    ImportPipelineError,
    InvalidStateTransition,
    NotFound,
    ParseError,
    PromotionError,
    UnknownTemplate,
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
from app.services.import_orchestrator_service import (
    ImportOrchestratorService,
    get_import_orchestrator_service,
)
from db.models.import_session import ImportStatus
from db.session import get_db

router = APIRouter(tags=["imports"])

_STATUS_BY_ERROR: tuple[tuple[type[ImportPipelineError], int], ...] = (
    (NotFound, status.HTTP_404_NOT_FOUND),
    (UnknownTemplate, status.HTTP_404_NOT_FOUND),
    (InvalidStateTransition, status.HTTP_409_CONFLICT),
    (ParseError, status.HTTP_400_BAD_REQUEST),
    (BadRequest, status.HTTP_400_BAD_REQUEST),
    (PromotionError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def _http_error(exc: ImportPipelineError) -> HTTPException:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=exc.to_dict())
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.to_dict())


@router.post(
    "/imports",
    status_code=status.HTTP_201_CREATED,
    response_model=ImportUploadResponse,
)
def upload_import(
    response: Response,
    upload: tuple[str, bytes] = Depends(read_csv_upload),
    template_id: int | None = Form(default=None),
    user_id: int | None = Form(default=None),
    metadata: str | None = Form(default=None, description="JSON object tagged by kind"),
    db: Session = Depends(get_db),
    orchestrator: ImportOrchestratorService = Depends(get_import_orchestrator_service),
) -> ImportUploadResponse:
    """
    Upload one CSV file and stage its rows.

    Content already promoted by an earlier import answers 200 with
    ``status="discarded"`` and ``duplicate_of`` set.
    """

    file_name, content = upload
    try:
        result = orchestrator.upload(
            db=db,
            content=content,
            file_name=file_name,
            template_id=template_id,
            user_id=user_id,
            metadata=metadata,
        )
    except ImportPipelineError as exc:
        raise _http_error(exc) from exc

    if result.duplicate is not None:
        response.status_code = status.HTTP_200_OK

    return ImportUploadResponse(
        import_id=result.import_id,
        status=result.status,
        duplicate_of=result.duplicate_of,
        stats=ImportStatsResponse(**result.stats.to_dict()),
        message=result.duplicate.message if result.duplicate is not None else None,
    )


@router.get("/imports", response_model=ImportSessionListResponse)
def list_imports(
    status_filter: str | None = Query(default=None, alias="status", description="Optional status filter"),
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
    orchestrator: ImportOrchestratorService = Depends(get_import_orchestrator_service),
) -> ImportSessionListResponse:
    try:
        sessions = orchestrator.list_imports(db=db, limit=limit, status=status_filter)
    except ImportPipelineError as exc:
        raise _http_error(exc) from exc
    return ImportSessionListResponse(
        imports=[ImportSessionResponse.model_validate(item) for item in sessions]
    )


@router.get("/imports/{import_id}", response_model=ImportSessionResponse)
def get_import(
    import_id: UUID,
    db: Session = Depends(get_db),
    orchestrator: ImportOrchestratorService = Depends(get_import_orchestrator_service),
) -> ImportSessionResponse:
    try:
        import_session = orchestrator.get_import(db=db, import_id=import_id)
        breakdown = orchestrator.failure_breakdown(db=db, import_id=import_id)
    except ImportPipelineError as exc:
        raise _http_error(exc) from exc

    payload = ImportSessionResponse.model_validate(import_session)
    return payload.model_copy(update={"failure_breakdown": breakdown})


@router.post("/imports/{import_id}/validate", response_model=ImportValidationResponse)
def validate_import(
    import_id: UUID,
    db: Session = Depends(get_db),
    orchestrator: ImportOrchestratorService = Depends(get_import_orchestrator_service),
) -> ImportValidationResponse:
    try:
        report = orchestrator.validate_import(db=db, import_id=import_id)
    except ImportPipelineError as exc:
        raise _http_error(exc) from exc

    return ImportValidationResponse(
        import_id=report.import_id,
        status=ImportStatus.VALIDATED if report.is_valid else ImportStatus.VALIDATION_FAILED,
        is_valid=report.is_valid,
        stats=report.stats_dict(),
        warnings=report.warnings,
        errors=[ValidationIssueResponse(**issue.to_dict()) for issue in report.errors],
    )


@router.post("/imports/{import_id}/promote", response_model=ImportPromotionResponse)
def promote_import(
    import_id: UUID,
    request: ImportActionRequest,
    db: Session = Depends(get_db),
    orchestrator: ImportOrchestratorService = Depends(get_import_orchestrator_service),
) -> ImportPromotionResponse:
    try:
        outcome = orchestrator.promote_to_production(db=db, import_id=import_id, user_id=request.user_id)
    except ImportPipelineError as exc:
        raise _http_error(exc) from exc

    return ImportPromotionResponse(
        import_id=outcome.import_id,
        status=ImportStatus.PROMOTED,
        published_rows=outcome.published_rows,
        inserted_rows=outcome.inserted_rows,
        updated_rows=outcome.updated_rows,
    )


@router.post("/imports/{import_id}/rollback", response_model=ImportRollbackResponse)
def rollback_import(
    import_id: UUID,
    request: ImportActionRequest,
    db: Session = Depends(get_db),
    orchestrator: ImportOrchestratorService = Depends(get_import_orchestrator_service),
) -> ImportRollbackResponse:
    """
    Revert a promoted import: inserted values are removed, replaced ones restored.
    """

    try:
        outcome = orchestrator.rollback_promotion(db=db, import_id=import_id, user_id=request.user_id)
    except ImportPipelineError as exc:
        raise _http_error(exc) from exc

    return ImportRollbackResponse(
        import_id=outcome.import_id,
        status=ImportStatus.ROLLED_BACK,
        restored_rows=outcome.restored_rows,
        deleted_rows=outcome.deleted_rows,
        skipped_rows=outcome.skipped_rows,
    )


@router.post("/imports/{import_id}/retry", response_model=ImportRetryResponse)
def retry_import(
    import_id: UUID,
    request: ImportActionRequest,
    db: Session = Depends(get_db),
    orchestrator: ImportOrchestratorService = Depends(get_import_orchestrator_service),
) -> ImportRetryResponse:
    try:
        result = orchestrator.retry_import(db=db, import_id=import_id, user_id=request.user_id)
    except ImportPipelineError as exc:
        raise _http_error(exc) from exc

    return ImportRetryResponse(
        import_id=result.import_id,
        status=result.status,
        stats=ImportStatsResponse(**result.stats.to_dict()),
    )


@router.post("/imports/{import_id}/discard", response_model=ImportSessionResponse)
def discard_import(
    import_id: UUID,
    db: Session = Depends(get_db),
    orchestrator: ImportOrchestratorService = Depends(get_import_orchestrator_service),
) -> ImportSessionResponse:
    try:
        import_session = orchestrator.discard_import(db=db, import_id=import_id)
    except ImportPipelineError as exc:
        raise _http_error(exc) from exc
    return ImportSessionResponse.model_validate(import_session)


@router.delete("/imports/{import_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_import(
    import_id: UUID,
    db: Session = Depends(get_db),
    orchestrator: ImportOrchestratorService = Depends(get_import_orchestrator_service),
) -> Response:
    try:
        orchestrator.purge_import(db=db, import_id=import_id)
    except ImportPipelineError as exc:
        raise _http_error(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/imports/{import_id}/staged-rows", response_model=StagedRowsResponse)
def list_staged_rows(
    import_id: UUID,
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    orchestrator: ImportOrchestratorService = Depends(get_import_orchestrator_service),
) -> StagedRowsResponse:
    try:
        total, rows = orchestrator.list_staged_rows(db=db, import_id=import_id, limit=limit, offset=offset)
    except ImportPipelineError as exc:
        raise _http_error(exc) from exc
    return StagedRowsResponse(
        import_id=import_id,
        total=total,
        rows=[StagedRowResponse.model_validate(row) for row in rows],
    )


@router.get("/imports/{import_id}/events", response_model=ImportEventListResponse)
def list_import_events(
    import_id: UUID,
    level: str | None = Query(default=None, description="info, warning or error"),
    limit: int = Query(default=200, ge=1, le=1000),
    db: Session = Depends(get_db),
    orchestrator: ImportOrchestratorService = Depends(get_import_orchestrator_service),
) -> ImportEventListResponse:
    try:
        events = orchestrator.list_events(db=db, import_id=import_id, level=level, limit=limit)
    except ImportPipelineError as exc:
        raise _http_error(exc) from exc
    return ImportEventListResponse(
        import_id=import_id,
        events=[ImportEventResponse.model_validate(event) for event in events],
    )


@router.get("/imports/{import_id}/failed-rows")
def download_failed_rows(
    import_id: UUID,
    db: Session = Depends(get_db),
    orchestrator: ImportOrchestratorService = Depends(get_import_orchestrator_service),
) -> Response:
    """
    Download the latest attempt's failed rows as a CSV attachment.
    """

    try:
        report = orchestrator.export_failed_rows(db=db, import_id=import_id)
    except ImportPipelineError as exc:
        raise _http_error(exc) from exc

    if report is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"message": f"Import {import_id} has no failed rows."},
        )

    return Response(
        content=report,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="import-{import_id}-failed-rows.csv"'},
    )


@router.get("/import-templates", response_model=ImportTemplateListResponse)
def list_import_templates(
    db: Session = Depends(get_db),
    orchestrator: ImportOrchestratorService = Depends(get_import_orchestrator_service),
) -> ImportTemplateListResponse:
    return ImportTemplateListResponse(
        templates=[
            ImportTemplateResponse.model_validate(template)
            for template in orchestrator.list_templates(db=db)
        ]
    )
