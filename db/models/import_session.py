"""
db/models/import_session.py

One CSV upload attempt and its lifecycle state.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, JSONDocument, TimestampMixin

if TYPE_CHECKING:
    from db.models.import_history import ImportEvent, PromotionHistoryEntry
    from db.models.import_rows import FailedRow, StagedRow
    from db.models.import_template import ImportTemplate


class ImportStatus:
    UPLOADED = "uploaded"
    STAGING = "staging"
    STAGED = "staged"
    VALIDATING = "validating"
    VALIDATED = "validated"
    VALIDATION_FAILED = "validation_failed"
    PROMOTING = "promoting"
    PROMOTED = "promoted"
    PROMOTION_FAILED = "promotion_failed"
    RETRYING = "retrying"
    DISCARDED = "discarded"
    ROLLED_BACK = "rolled_back"

    TERMINAL = frozenset({PROMOTED, DISCARDED, ROLLED_BACK})
    FAILED = frozenset({VALIDATION_FAILED, PROMOTION_FAILED})
    # Transient states a crashed worker can leave behind.
    IN_FLIGHT = frozenset({STAGING, VALIDATING, PROMOTING, RETRYING})

    ALL = frozenset(
        {
            UPLOADED,
            STAGING,
            STAGED,
            VALIDATING,
            VALIDATED,
            VALIDATION_FAILED,
            PROMOTING,
            PROMOTED,
            PROMOTION_FAILED,
            RETRYING,
            DISCARDED,
            ROLLED_BACK,
        }
    )


class ImportSession(Base, TimestampMixin):
    """
    Tracks one uploaded file from upload through promotion, rollback or discard.

    The decoded file text is kept in ``source_content`` so a failed
    import can be re-parsed without a second upload. ``content_hash`` is
    computed once at upload and never changes across retries.
    """

    __tablename__ = "import_sessions"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size_bytes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    content_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="sha256 of the normalised file text",
    )
    source_content: Mapped[str] = mapped_column(Text, nullable=False)
    source_headers: Mapped[list[str] | None] = mapped_column(
        JSON,
        nullable=True,
        comment="CSV header row in file order",
    )
    template_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("import_templates.id"),
        nullable=False,
    )
    metadata_json: Mapped[dict[str, Any] | None] = mapped_column(
        JSONDocument,
        nullable=True,
        comment="Validated upload metadata (tagged by kind)",
    )
    uploaded_by: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=ImportStatus.UPLOADED,
    )
    attempt: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    total_rows: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    valid_rows: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed_rows: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    published_rows: Mapped[int | None] = mapped_column(Integer, nullable=True)
    validation_summary: Mapped[dict[str, Any] | None] = mapped_column(
        JSONDocument,
        nullable=True,
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    duplicate_of: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("import_sessions.id", ondelete="SET NULL"),
        nullable=True,
        comment="Earlier session with the same content hash",
    )
    promoted_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    validated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    promoted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rolled_back_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rolled_back_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # ── Relationships ──────────────────────────────────────────────────────────

    template: Mapped["ImportTemplate"] = relationship("ImportTemplate")

    staged_rows: Mapped[list["StagedRow"]] = relationship(
        "StagedRow",
        back_populates="import_session",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    failed_row_entries: Mapped[list["FailedRow"]] = relationship(
        "FailedRow",
        back_populates="import_session",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    events: Mapped[list["ImportEvent"]] = relationship(
        "ImportEvent",
        back_populates="import_session",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    promotion_history: Mapped[list["PromotionHistoryEntry"]] = relationship(
        "PromotionHistoryEntry",
        back_populates="import_session",
        foreign_keys="PromotionHistoryEntry.import_session_id",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    # ── Indexes ────────────────────────────────────────────────────────────────

    __table_args__ = (
        Index("ix_import_sessions_status", "status"),
        Index("ix_import_sessions_content_hash", "content_hash"),
        Index("ix_import_sessions_created_at", "created_at"),
        Index("ix_import_sessions_hash_status", "content_hash", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<ImportSession id={self.id} file_name={self.file_name!r} "
            f"status={self.status!r} attempt={self.attempt}>"
        )
