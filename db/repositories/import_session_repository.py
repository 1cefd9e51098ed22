"""
Repository for import session lifecycle persistence and status lookup.

Status changes go through ``transition``, a compare-and-set UPDATE guarded by
the statuses the caller expects. A concurrent operation that already moved
the session on makes the guard miss and the call returns False.
"""

from __future__ import annotations

import uuid
from collections.abc import Collection
from typing import Any

from sqlalchemy import Select, delete, select, update
from sqlalchemy.orm import Session

from db.models.import_session import ImportSession, ImportStatus


class ImportSessionRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_session(
        self,
        *,
        name: str,
        file_name: str,
        file_size_bytes: int,
        content_hash: str,
        source_content: str,
        template_id: int,
        uploaded_by: int,
        description: str | None = None,
        metadata_json: dict[str, Any] | None = None,
        duplicate_of: uuid.UUID | None = None,
    ) -> ImportSession:
        import_session = ImportSession(
            name=name,
            description=description,
            file_name=file_name,
            file_size_bytes=file_size_bytes,
            content_hash=content_hash,
            source_content=source_content,
            template_id=template_id,
            metadata_json=metadata_json,
            uploaded_by=uploaded_by,
            status=ImportStatus.UPLOADED,
            attempt=1,
            duplicate_of=duplicate_of,
        )
        self._session.add(import_session)
        self._session.flush()
        self._session.refresh(import_session)
        return import_session

    def get_session(self, import_id: uuid.UUID) -> ImportSession | None:
        return self._session.get(ImportSession, import_id)

    def reload(self, import_id: uuid.UUID) -> ImportSession | None:
        """
        Fetch the session bypassing any stale identity-map state.
        """

        return self._session.get(ImportSession, import_id, populate_existing=True)

    def list_sessions(
        self,
        *,
        limit: int = 100,
        status: str | None = None,
    ) -> list[ImportSession]:
        stmt: Select[tuple[ImportSession]] = select(ImportSession)

        if status:
            stmt = stmt.where(ImportSession.status == status)

        stmt = stmt.order_by(ImportSession.created_at.desc()).limit(max(1, limit))
        return list(self._session.scalars(stmt).all())

    def find_by_content_hash(self, content_hash: str) -> list[ImportSession]:
        """
        Earlier sessions with the same content, promoted ones first, then newest first.
        """

        stmt: Select[tuple[ImportSession]] = select(ImportSession).where(
            ImportSession.content_hash == content_hash
        )
        sessions = list(self._session.scalars(stmt.order_by(ImportSession.created_at.desc())).all())
        sessions.sort(key=lambda item: item.status != ImportStatus.PROMOTED)
        return sessions

    def list_in_flight(self) -> list[ImportSession]:
        stmt = select(ImportSession).where(ImportSession.status.in_(ImportStatus.IN_FLIGHT))
        return list(self._session.scalars(stmt).all())

    def transition(
        self,
        import_id: uuid.UUID,
        *,
        from_statuses: Collection[str],
        to_status: str,
        values: dict[str, Any] | None = None,
    ) -> bool:
        """
        Move the session to ``to_status`` only if it is currently in ``from_statuses``.

        Extra column ``values`` are written in the same statement. Returns
        True when the guard matched.
        """

        if to_status not in ImportStatus.ALL:
            raise ValueError(f"Unknown import status: {to_status!r}")

        stmt = (
            update(ImportSession)
            .where(
                ImportSession.id == import_id,
                ImportSession.status.in_(tuple(from_statuses)),
            )
            .values(status=to_status, **(values or {}))
            .execution_options(synchronize_session="fetch")
        )
        result = self._session.execute(stmt)
        return result.rowcount == 1

    def delete_session(self, import_id: uuid.UUID) -> bool:
        result = self._session.execute(
            delete(ImportSession)
            .where(ImportSession.id == import_id)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1
