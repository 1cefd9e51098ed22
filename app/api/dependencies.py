"""
app/api/dependencies.py

Shared FastAPI dependencies for request validation.
"""

from __future__ import annotations

from fastapi import Depends, File, HTTPException, UploadFile, status

from app.config import ImportSettings, get_import_settings

CSV_CONTENT_TYPES = {
    "text/csv",
    "text/plain",
    "application/csv",
    "application/vnd.ms-excel",
}

_READ_CHUNK_BYTES = 64 * 1024


def get_csv_upload(file: UploadFile = File(...)) -> UploadFile:
    """
    Accept the upload only when it looks like a CSV by extension or MIME type.
    """

    filename = (file.filename or "").strip().lower()
    content_type = (file.content_type or "").split(";", 1)[0].strip().lower()

    if not filename.endswith(".csv") and content_type not in CSV_CONTENT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "Only CSV files are allowed."},
        )

    return file


def read_csv_upload(
    file: UploadFile = Depends(get_csv_upload),
    settings: ImportSettings = Depends(get_import_settings),
) -> tuple[str, bytes]:
    """
    Read the uploaded CSV into memory, refusing files above the configured size.

    Returns ``(file_name, content)``.
    """

    limit = settings.max_file_bytes
    chunks: list[bytes] = []
    size = 0
    try:
        while chunk := file.file.read(_READ_CHUNK_BYTES):
            size += len(chunk)
            if size > limit:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail={"message": f"Uploaded file exceeds the {limit} byte limit."},
                )
            chunks.append(chunk)
    finally:
        file.file.close()

    return file.filename or "upload.csv", b"".join(chunks)
