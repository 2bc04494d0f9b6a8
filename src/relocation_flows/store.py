"""Short-lived storage for generated previews and idempotency keys.

``ArtifactStore`` maps opaque handles to generated content with a hard
expiry.  ``IdempotencyCache`` remembers what a repeated operation produced
the first time so repeats return the same result.

Both wrap ``relocation_db`` repositories and take the caller's
``AsyncSession``; neither commits.  Expiry is lazy: reads compare
``expires_at`` against the injected clock, so an expired row is invisible
even before the cleanup sweep deletes it.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from relocation_db.models.artifact import GeneratedArtifact
from relocation_db.repository import ArtifactRepository, IdempotencyRepository

from relocation_flows.constants import (
    DEDUP_WINDOW_SECONDS,
    DOCUMENT_PREVIEW_TTL_SECONDS,
    GUIDE_PREVIEW_TTL_SECONDS,
    HANDLE_PREFIXES,
)
from relocation_flows.errors import ArtifactNotFound
from relocation_flows.models.artifact import Artifact, ContentSection, GeneratedContent
from relocation_flows.models.conversation import Answer
from relocation_flows.models.flow import FlowCategory, FlowType

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def preview_ttl(flow_type: FlowType) -> int:
    """Preview lifetime in seconds for a flow's category."""
    if flow_type.category is FlowCategory.GUIDE:
        return GUIDE_PREVIEW_TTL_SECONDS
    return DOCUMENT_PREVIEW_TTL_SECONDS


class ArtifactStore:
    """Handle-addressed preview storage with lazy expiry.

    Args:
        clock: returns the current UTC time; injectable for tests
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self._repo = ArtifactRepository()
        self._clock = clock or utcnow

    def now(self) -> datetime:
        return self._clock()

    def new_handle(self, flow_type: FlowType) -> str:
        """``{guide|gendoc}_{unix seconds}_{random token}``.

        The token comes from ``secrets`` so handles double as unguessable
        capabilities; the timestamp keeps them sortable in logs.
        """
        prefix = HANDLE_PREFIXES[flow_type.category.value]
        stamp = int(self.now().timestamp())
        return f"{prefix}_{stamp}_{secrets.token_urlsafe(12)}"

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(
        self,
        db: AsyncSession,
        *,
        subject_id: str,
        flow_type: FlowType,
        content: GeneratedContent,
        answers: dict[str, Answer],
        ttl_seconds: int | None = None,
    ) -> Artifact:
        """Give complete generated content a handle and persist it."""
        artifact = Artifact(
            handle=self.new_handle(flow_type),
            subject_id=subject_id,
            flow_type=flow_type,
            title=content.title,
            subtitle=content.subtitle,
            sections=list(content.sections),
            answers=dict(answers),
            ai_generated=content.ai_generated,
            created_at=self.now(),
            ttl_seconds=ttl_seconds if ttl_seconds is not None else preview_ttl(flow_type),
        )
        await self.put(db, artifact)
        return artifact

    async def put(self, db: AsyncSession, artifact: Artifact) -> str:
        """Persist a fully built artifact and return its handle."""
        await self._repo.create(
            db,
            handle=artifact.handle,
            subject_id=artifact.subject_id,
            flow_type=artifact.flow_type.value,
            title=artifact.title,
            content=artifact.content_dict(),
            ai_generated=artifact.ai_generated,
            created_at=artifact.created_at,
            expires_at=artifact.expires_at,
        )
        logger.info(
            "Stored artifact %s (flow=%s, subject=%s, ttl=%ds)",
            artifact.handle, artifact.flow_type.value, artifact.subject_id,
            artifact.ttl_seconds,
        )
        return artifact.handle

    async def delete(self, db: AsyncSession, handle: str) -> bool:
        return await self._repo.delete(db, handle)

    async def delete_for_subject(self, db: AsyncSession, subject_id: str) -> int:
        return await self._repo.delete_for_subject(db, subject_id)

    async def purge_expired(self, db: AsyncSession) -> int:
        """Delete every expired row; safe alongside concurrent reads."""
        return await self._repo.purge_expired(db, now=self.now())

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(
        self, db: AsyncSession, handle: str, subject_id: str | None = None
    ) -> Artifact:
        """Return a live artifact.

        Raises:
            ArtifactNotFound: if the handle is unknown, its TTL elapsed, or
                *subject_id* is given and does not own it.
        """
        if not handle:
            raise ArtifactNotFound(handle)
        row = await self._repo.get_by_handle(db, handle)
        if row is None:
            raise ArtifactNotFound(handle)
        if subject_id is not None and row.subject_id != subject_id:
            logger.warning("Subject %s asked for artifact %s owned by someone else", subject_id, handle)
            raise ArtifactNotFound(handle)
        if row.expires_at <= self.now():
            raise ArtifactNotFound(handle)
        return self._to_artifact(row)

    @staticmethod
    def _to_artifact(row: GeneratedArtifact) -> Artifact:
        content = row.content or {}
        return Artifact(
            handle=row.handle,
            subject_id=row.subject_id,
            flow_type=FlowType(row.flow_type),
            title=row.title,
            subtitle=content.get("subtitle"),
            sections=[ContentSection(**s) for s in content.get("sections", [])],
            answers=content.get("answers", {}),
            ai_generated=row.ai_generated,
            created_at=row.created_at,
            ttl_seconds=int((row.expires_at - row.created_at).total_seconds()),
        )


class IdempotencyCache:
    """Key → value memo with a bounded lifetime (default 24 h).

    Expired keys read as absent.  ``remember`` keeps the first live value
    when two requests race on the same key and returns whichever value won.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        ttl_seconds: int = DEDUP_WINDOW_SECONDS,
    ) -> None:
        self._repo = IdempotencyRepository()
        self._clock = clock or utcnow
        self._ttl = ttl_seconds

    async def recall(self, db: AsyncSession, key: str) -> str | None:
        row = await self._repo.get(db, key)
        if row is None or row.expires_at <= self._clock():
            return None
        return row.value

    async def remember(
        self,
        db: AsyncSession,
        key: str,
        value: str,
        ttl_seconds: int | None = None,
    ) -> str:
        now = self._clock()
        ttl = self._ttl if ttl_seconds is None else ttl_seconds
        stored = await self._repo.claim(
            db,
            key=key,
            value=value,
            created_at=now,
            expires_at=now + timedelta(seconds=ttl),
        )
        if stored != value:
            logger.info("Idempotency key %s already held; keeping earlier value", key)
        return stored

    async def forget(self, db: AsyncSession, key: str) -> None:
        await self._repo.delete(db, key)

    async def purge_expired(self, db: AsyncSession) -> int:
        return await self._repo.purge_expired(db, now=self._clock())
