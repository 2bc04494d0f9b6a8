"""Short-lived generation storage: preview artifacts and idempotency keys.

Both tables hold rows with a hard expiry.  Reads check ``expires_at`` in
the SDK (lazy expiry); the cleanup sweep deletes expired rows.  Neither
table is meant to be durable; the "My Documents" catalog is.
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Index, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from relocation_db.models.base import Base


class GeneratedArtifact(Base):
    """One row per generated preview, keyed by its opaque handle."""

    __tablename__ = "generated_artifacts"

    # --- Identity ---
    # Opaque capability token handed to the client, e.g. "gendoc_1718000000_x9..."
    handle: Mapped[str] = mapped_column(String(96), primary_key=True)
    # Owner of the artifact; downloads by anyone else are refused
    subject_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    flow_type: Mapped[str] = mapped_column(String(40), nullable=False)

    # --- Content ---
    title: Mapped[str] = mapped_column(Text, nullable=False)
    # {"subtitle": ..., "sections": [...], "answers": {...}}
    content: Mapped[dict] = mapped_column(
        JSONB,
        nullable=False,
        server_default=text("'{}'::jsonb"),
    )
    ai_generated: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )

    # --- Lifetime ---
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    expires_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False
    )

    __table_args__ = (
        # Sweep path: DELETE ... WHERE expires_at <= now()
        Index("ix_generated_artifacts_expires_at", "expires_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<GeneratedArtifact(handle={self.handle!r}, subject={self.subject_id!r}, "
            f"flow={self.flow_type!r}, expires_at={self.expires_at!s})>"
        )


class IdempotencyKey(Base):
    """Marker that an operation already ran, and what it produced.

    ``value`` is whatever the first run returned (an artifact handle or a
    saved document id, as text) so repeats can return it unchanged.
    """

    __tablename__ = "idempotency_keys"

    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    expires_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False
    )

    __table_args__ = (
        Index("ix_idempotency_keys_expires_at", "expires_at"),
    )

    def __repr__(self) -> str:
        return f"<IdempotencyKey(key={self.key!r}, value={self.value!r})>"
