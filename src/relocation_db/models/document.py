"""MemberDocument ORM model — the persistent "My Documents" catalog.

A row is written when a member downloads a generated guide or document.
It records where the rendered file lives and when it should be cleaned up.
"""

from datetime import datetime, timezone

from sqlalchemy import BigInteger, CheckConstraint, Identity, Index, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from relocation_db.models.base import Base
from relocation_db.models.enums import DocumentKind


class MemberDocument(Base):
    """One row per saved download."""

    __tablename__ = "member_documents"

    id: Mapped[int] = mapped_column(BigInteger, Identity(), primary_key=True)

    # --- Ownership ---
    subject_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)

    # --- Classification ---
    kind: Mapped[DocumentKind] = mapped_column(
        String(20),
        nullable=False,
        default=DocumentKind.DOCUMENT,
    )
    # Flow type that produced it (e.g. "cover-letter")
    document_type: Mapped[str] = mapped_column(String(40), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)

    # --- Payload ---
    # {"file_path": ..., "file_url": ..., "file_ext": ..., "generated_at": ...}
    content: Mapped[dict] = mapped_column(
        JSONB,
        nullable=False,
        server_default=text("'{}'::jsonb"),
    )
    # {"answers": {...}, "format": ..., "source_id": <artifact handle>}
    meta: Mapped[dict] = mapped_column(
        JSONB,
        nullable=False,
        server_default=text("'{}'::jsonb"),
    )

    # --- Timestamps ---
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
    # Null means keep forever
    expires_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )

    __table_args__ = (
        CheckConstraint(
            "kind IN ('guide', 'document')",
            name="ck_member_documents_kind",
        ),
        # Listing path: a member's documents, newest first
        Index("ix_member_documents_subject_created", "subject_id", "created_at"),
        # Sweep path: only rows that can expire
        Index(
            "ix_member_documents_expires_at",
            "expires_at",
            postgresql_where=text("expires_at IS NOT NULL"),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<MemberDocument(id={self.id}, subject={self.subject_id!r}, "
            f"type={self.document_type!r}, title={self.title!r})>"
        )
