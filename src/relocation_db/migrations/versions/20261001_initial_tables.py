"""Create the generation, catalog and member tables.

Revision ID: 20261001_initial
Revises:
Create Date: 2026-10-01
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP

revision = "20261001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _empty_jsonb(name: str) -> sa.Column:
    return sa.Column(
        name, JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")
    )


def upgrade() -> None:
    # --- Previews (short TTL) ---
    op.create_table(
        "generated_artifacts",
        sa.Column("handle", sa.String(96), primary_key=True),
        sa.Column("subject_id", sa.Text, nullable=False),
        sa.Column("flow_type", sa.String(40), nullable=False),
        sa.Column("title", sa.Text, nullable=False),
        _empty_jsonb("content"),
        sa.Column(
            "ai_generated", sa.Boolean, nullable=False, server_default=sa.text("false")
        ),
        sa.Column("created_at", TIMESTAMP(timezone=True), nullable=False),
        sa.Column("expires_at", TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_generated_artifacts_subject_id", "generated_artifacts", ["subject_id"]
    )
    op.create_index(
        "ix_generated_artifacts_expires_at", "generated_artifacts", ["expires_at"]
    )

    # --- Idempotency / dedup keys ---
    op.create_table(
        "idempotency_keys",
        sa.Column("key", sa.String(128), primary_key=True),
        sa.Column("value", sa.Text, nullable=False),
        sa.Column("created_at", TIMESTAMP(timezone=True), nullable=False),
        sa.Column("expires_at", TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_idempotency_keys_expires_at", "idempotency_keys", ["expires_at"]
    )

    # --- My Documents catalog ---
    op.create_table(
        "member_documents",
        sa.Column("id", sa.BigInteger, sa.Identity(), primary_key=True),
        sa.Column("subject_id", sa.Text, nullable=False),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("document_type", sa.String(40), nullable=False),
        sa.Column("title", sa.Text, nullable=False),
        _empty_jsonb("content"),
        _empty_jsonb("meta"),
        sa.Column("created_at", TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", TIMESTAMP(timezone=True), nullable=False),
        sa.Column("expires_at", TIMESTAMP(timezone=True), nullable=True),
        sa.CheckConstraint(
            "kind IN ('guide', 'document')", name="ck_member_documents_kind"
        ),
    )
    op.create_index(
        "ix_member_documents_subject_id", "member_documents", ["subject_id"]
    )
    op.create_index(
        "ix_member_documents_subject_created",
        "member_documents",
        ["subject_id", "created_at"],
    )
    op.create_index(
        "ix_member_documents_expires_at",
        "member_documents",
        ["expires_at"],
        postgresql_where=sa.text("expires_at IS NOT NULL"),
    )

    # --- Member-side tables ---
    op.create_table(
        "member_profiles",
        sa.Column("subject_id", sa.Text, primary_key=True),
        sa.Column("display_name", sa.Text, nullable=True),
        sa.Column("first_name", sa.Text, nullable=True),
        sa.Column(
            "is_member", sa.Boolean, nullable=False, server_default=sa.text("false")
        ),
        _empty_jsonb("fields"),
        sa.Column("updated_at", TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_table(
        "verification_results",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("subject_id", sa.Text, nullable=False),
        sa.Column("kind", sa.String(40), nullable=False),
        _empty_jsonb("payload"),
        sa.Column("created_at", TIMESTAMP(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "subject_id", "kind", name="uq_verification_subject_kind"
        ),
    )
    op.create_index(
        "ix_verification_results_subject_id", "verification_results", ["subject_id"]
    )


def downgrade() -> None:
    op.drop_table("verification_results")
    op.drop_table("member_profiles")
    op.drop_table("member_documents")
    op.drop_table("idempotency_keys")
    op.drop_table("generated_artifacts")
