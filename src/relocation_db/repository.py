"""Async repositories for the relocation tables.

All public methods accept an ``AsyncSession`` so the caller controls
transaction boundaries.  Methods ``flush()`` but never ``commit()``; the
server's ``get_db`` dependency (or ``session_scope`` in the CLI) commits.

Expiry is the SDK's business: repositories take ``now`` explicitly for
the sweep queries so that callers (and tests) control the clock.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from relocation_db.models.artifact import GeneratedArtifact, IdempotencyKey
from relocation_db.models.document import MemberDocument
from relocation_db.models.enums import DocumentKind
from relocation_db.models.member import MemberProfile, VerificationResult


class ArtifactRepository:
    """Read/write operations on ``generated_artifacts``."""

    async def create(
        self,
        db: AsyncSession,
        *,
        handle: str,
        subject_id: str,
        flow_type: str,
        title: str,
        content: dict[str, Any],
        ai_generated: bool,
        created_at: datetime,
        expires_at: datetime,
    ) -> GeneratedArtifact:
        """Insert a complete artifact row and return it."""
        row = GeneratedArtifact(
            handle=handle,
            subject_id=subject_id,
            flow_type=flow_type,
            title=title,
            content=content,
            ai_generated=ai_generated,
            created_at=created_at,
            expires_at=expires_at,
        )
        db.add(row)
        await db.flush()
        return row

    async def get_by_handle(
        self, db: AsyncSession, handle: str
    ) -> GeneratedArtifact | None:
        """Fetch by handle, expired or not; the caller decides."""
        return await db.get(GeneratedArtifact, handle)

    async def delete(self, db: AsyncSession, handle: str) -> bool:
        result = await db.execute(
            delete(GeneratedArtifact).where(GeneratedArtifact.handle == handle)
        )
        await db.flush()
        return result.rowcount > 0

    async def delete_for_subject(self, db: AsyncSession, subject_id: str) -> int:
        """Drop every preview owned by *subject_id*."""
        result = await db.execute(
            delete(GeneratedArtifact).where(GeneratedArtifact.subject_id == subject_id)
        )
        await db.flush()
        return result.rowcount

    async def purge_expired(self, db: AsyncSession, *, now: datetime) -> int:
        """Delete rows whose TTL has elapsed; returns the row count."""
        result = await db.execute(
            delete(GeneratedArtifact).where(GeneratedArtifact.expires_at <= now)
        )
        await db.flush()
        return result.rowcount


class IdempotencyRepository:
    """Read/write operations on ``idempotency_keys``."""

    async def get(self, db: AsyncSession, key: str) -> IdempotencyKey | None:
        return await db.get(IdempotencyKey, key)

    async def claim(
        self,
        db: AsyncSession,
        *,
        key: str,
        value: str,
        created_at: datetime,
        expires_at: datetime,
    ) -> str:
        """Store *value* under *key* unless a live entry already exists.

        An expired entry is overwritten.  Returns the value that ends up
        stored, which is the earlier writer's value when two requests race.
        """
        stmt = pg_insert(IdempotencyKey).values(
            key=key, value=value, created_at=created_at, expires_at=expires_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[IdempotencyKey.key],
            set_={
                "value": stmt.excluded.value,
                "created_at": stmt.excluded.created_at,
                "expires_at": stmt.excluded.expires_at,
            },
            where=IdempotencyKey.expires_at <= created_at,
        )
        await db.execute(stmt)
        await db.flush()
        result = await db.execute(
            select(IdempotencyKey.value).where(IdempotencyKey.key == key)
        )
        return result.scalar_one()

    async def delete(self, db: AsyncSession, key: str) -> None:
        await db.execute(delete(IdempotencyKey).where(IdempotencyKey.key == key))
        await db.flush()

    async def purge_expired(self, db: AsyncSession, *, now: datetime) -> int:
        result = await db.execute(
            delete(IdempotencyKey).where(IdempotencyKey.expires_at <= now)
        )
        await db.flush()
        return result.rowcount


class DocumentRepository:
    """Read/write operations on ``member_documents`` ("My Documents")."""

    async def save_document(
        self,
        db: AsyncSession,
        *,
        subject_id: str,
        kind: DocumentKind,
        document_type: str,
        title: str,
        content: dict[str, Any],
        meta: dict[str, Any] | None = None,
        expires_at: datetime | None = None,
    ) -> MemberDocument:
        """Insert a catalog row and return it (``id`` populated by flush)."""
        doc = MemberDocument(
            subject_id=subject_id,
            kind=kind,
            document_type=document_type,
            title=title,
            content=content,
            meta=meta or {},
            expires_at=expires_at,
        )
        db.add(doc)
        await db.flush()
        return doc

    async def get(
        self, db: AsyncSession, document_id: int, subject_id: str
    ) -> MemberDocument | None:
        """Fetch a row only if it belongs to *subject_id*."""
        stmt = select(MemberDocument).where(
            MemberDocument.id == document_id,
            MemberDocument.subject_id == subject_id,
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_by_subject(
        self,
        db: AsyncSession,
        subject_id: str,
        *,
        now: datetime,
        limit: int = 20,
        offset: int = 0,
    ) -> list[MemberDocument]:
        """List a member's unexpired documents, most recent first."""
        stmt = (
            select(MemberDocument)
            .where(
                MemberDocument.subject_id == subject_id,
                (MemberDocument.expires_at.is_(None)) | (MemberDocument.expires_at > now),
            )
            .order_by(MemberDocument.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def delete_document(
        self, db: AsyncSession, document_id: int, subject_id: str
    ) -> bool:
        """Delete a row owned by *subject_id*; False if nothing matched."""
        result = await db.execute(
            delete(MemberDocument).where(
                MemberDocument.id == document_id,
                MemberDocument.subject_id == subject_id,
            )
        )
        await db.flush()
        return result.rowcount > 0

    async def record_file(
        self, db: AsyncSession, document_id: int, subject_id: str, file_path: str
    ) -> bool:
        """Add *file_path* to the row's ``content["files"]``; False if no such row."""
        doc = await self.get(db, document_id, subject_id)
        if doc is None:
            return False
        content = dict(doc.content or {})
        files = list(content.get("files") or [])
        if file_path not in files:
            files.append(file_path)
            # Reassign so the JSONB change is detected
            doc.content = {**content, "files": files}
            await db.flush()
        return True

    async def purge_expired(
        self, db: AsyncSession, *, now: datetime
    ) -> list[dict[str, Any]]:
        """Delete expired rows and return their ``content`` payloads.

        The payloads carry ``files`` so the caller can remove the
        rendered files as well.
        """
        stmt = (
            delete(MemberDocument)
            .where(
                MemberDocument.expires_at.is_not(None),
                MemberDocument.expires_at <= now,
            )
            .returning(MemberDocument.content)
        )
        result = await db.execute(stmt)
        await db.flush()
        return [dict(content or {}) for content in result.scalars().all()]


class ProfileRepository:
    """Read-only access to ``member_profiles``."""

    async def get(self, db: AsyncSession, subject_id: str) -> MemberProfile | None:
        return await db.get(MemberProfile, subject_id)

    async def get_profile(self, db: AsyncSession, subject_id: str) -> dict[str, Any]:
        """Flat profile dict for pre-fill hints; empty when no row exists.

        ``display_name`` and ``first_name`` are folded in next to the
        free-form ``fields`` so generators see a single mapping.
        """
        row = await self.get(db, subject_id)
        if row is None:
            return {}
        profile: dict[str, Any] = dict(row.fields or {})
        if row.display_name:
            profile.setdefault("display_name", row.display_name)
        if row.first_name:
            profile.setdefault("first_name", row.first_name)
        return profile

    async def is_member(self, db: AsyncSession, subject_id: str) -> bool:
        row = await self.get(db, subject_id)
        return bool(row is not None and row.is_member)


class VerificationRepository:
    """Write access to ``verification_results`` (clear only)."""

    async def delete_for_subject(
        self, db: AsyncSession, subject_id: str, kind: str | None = None
    ) -> int:
        """Delete stored verification results; all kinds when *kind* is None."""
        stmt = delete(VerificationResult).where(
            VerificationResult.subject_id == subject_id
        )
        if kind is not None:
            stmt = stmt.where(VerificationResult.kind == kind)
        result = await db.execute(stmt)
        await db.flush()
        return result.rowcount
