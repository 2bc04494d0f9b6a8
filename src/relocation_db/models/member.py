"""Member-side tables read by the flow SDK.

``MemberProfile`` is maintained by the profile editor elsewhere on the
platform; this package only reads it for pre-fill hints, greetings and
the membership gate.  ``VerificationResult`` holds the last stored
verification for a member, which the member can clear.
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, String, Text, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from relocation_db.models.base import Base


class MemberProfile(Base):
    """Profile fields keyed by subject id."""

    __tablename__ = "member_profiles"

    subject_id: Mapped[str] = mapped_column(Text, primary_key=True)
    display_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    first_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_member: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    # Flat dict: {"visa_type": "visitor", "application_location": "boston", ...}
    fields: Mapped[dict] = mapped_column(
        JSONB,
        nullable=False,
        server_default=text("'{}'::jsonb"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<MemberProfile(subject={self.subject_id!r}, member={self.is_member})>"


class VerificationResult(Base):
    """Latest stored verification per (subject, kind)."""

    __tablename__ = "verification_results"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    subject_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    kind: Mapped[str] = mapped_column(String(40), nullable=False)
    payload: Mapped[dict] = mapped_column(
        JSONB,
        nullable=False,
        server_default=text("'{}'::jsonb"),
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        UniqueConstraint("subject_id", "kind", name="uq_verification_subject_kind"),
    )
