"""FlowService — the boundary every caller (HTTP routes, CLI) goes through.

Wraps the conversation machine, the artifact store, the renderer and the
``relocation_db`` repositories behind a small async API.  Every operation
takes the caller's ``AsyncSession`` and subject id and refuses an empty
subject id before touching any state.  The service never commits; the
server's ``get_db`` dependency owns the transaction.

Usage::

    service = FlowService(registry, machine, artifacts, idempotency,
                          DocumentRenderer(), documents_dir=Path("/srv/docs"),
                          documents_base_url="https://example.org/docs")

    turn = await service.start_flow(db, "42", "cover-letter")
    result = await service.submit_answer(db, "42", "cover-letter", "visitor",
                                         turn.context())
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from datetime import timedelta
from pathlib import Path
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from relocation_db.models.enums import DocumentKind
from relocation_db.models.document import MemberDocument
from relocation_db.repository import (
    DocumentRepository,
    ProfileRepository,
    VerificationRepository,
)

from relocation_flows.constants import (
    DEDUP_WINDOW_SECONDS,
    RESOURCE_KINDS,
    SAVED_DOCUMENT_TTL_DAYS,
    SAVED_GUIDE_TTL_DAYS,
)
from relocation_flows.conversation import ConversationMachine
from relocation_flows.errors import ArtifactNotFound, Unauthenticated, ValidationError
from relocation_flows.models.artifact import (
    Artifact,
    DownloadFormat,
    DownloadLink,
    FlowSummary,
    SavedDocument,
)
from relocation_flows.models.conversation import Answer, ConversationContext, StepResult, Turn
from relocation_flows.models.flow import FlowCategory, FlowType
from relocation_flows.registry import QuestionSetRegistry
from relocation_flows.render import DocumentRenderer, safe_filename
from relocation_flows.store import ArtifactStore, IdempotencyCache

logger = logging.getLogger(__name__)

# Legacy client values for the two download formats
_FORMAT_ALIASES: dict[str, DownloadFormat] = {
    "word": DownloadFormat.PRIMARY,
    "pdf": DownloadFormat.PRINT,
}

CLEANUP_TARGETS = ("artifacts", "idempotency", "documents")


def download_dedup_key(handle: str, subject_id: str) -> str:
    """``saved_`` + md5(handle + "_" + subject): one catalog row per download window."""
    digest = hashlib.md5(f"{handle}_{subject_id}".encode("utf-8")).hexdigest()
    return f"saved_{digest}"


def parse_format(raw: str | DownloadFormat | None) -> DownloadFormat:
    """Resolve a caller-supplied format; ``None`` means primary."""
    if isinstance(raw, DownloadFormat):
        return raw
    if raw is None or not str(raw).strip():
        return DownloadFormat.PRIMARY
    value = str(raw).strip().lower()
    if value in _FORMAT_ALIASES:
        return _FORMAT_ALIASES[value]
    try:
        return DownloadFormat(value)
    except ValueError:
        raise ValidationError("format", f"Unsupported format {raw!r}; use 'primary' or 'print'") from None


def _require_subject(subject_id: str | None) -> str:
    if subject_id is None or not str(subject_id).strip():
        raise Unauthenticated()
    return str(subject_id).strip()


def _write_file(path: Path, html: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(html, encoding="utf-8")


def _remove_files(paths: list[str]) -> None:
    for path in paths:
        Path(path).unlink(missing_ok=True)


def _catalogued_files(content: dict[str, Any] | None) -> list[str]:
    """Every rendered file a catalog row owns."""
    content = content or {}
    files = list(content.get("files") or [])
    if not files and content.get("file_path"):
        files.append(content["file_path"])
    return files


def artifact_file_tag(handle: str) -> str:
    """Short per-artifact suffix for rendered file names."""
    return hashlib.sha256(handle.encode("utf-8")).hexdigest()[:10]


class FlowService:
    """Async boundary over the flow SDK.

    Args:
        registry: loaded question sets
        machine: conversation machine wired with a dispatcher
        artifacts: preview store (shared with the dispatcher)
        idempotency: dedup cache (shared with the dispatcher)
        renderer: download renderer
        documents_dir: root directory rendered files are written under
        documents_base_url: public URL prefix that serves ``documents_dir``
    """

    def __init__(
        self,
        registry: QuestionSetRegistry,
        machine: ConversationMachine,
        artifacts: ArtifactStore,
        idempotency: IdempotencyCache,
        renderer: DocumentRenderer,
        *,
        documents_dir: Path | str,
        documents_base_url: str,
    ) -> None:
        self._registry = registry
        self._machine = machine
        self._artifacts = artifacts
        self._idempotency = idempotency
        self._renderer = renderer
        self._documents_dir = Path(documents_dir)
        self._base_url = documents_base_url.rstrip("/")

        self._documents = DocumentRepository()
        self._profiles = ProfileRepository()
        self._verifications = VerificationRepository()

    # ==================================================================
    # Flows
    # ==================================================================

    def list_flows(self) -> list[FlowSummary]:
        return [
            FlowSummary(
                flow_type=ft,
                category=ft.category.value,
                title=self._registry.get(ft).title,
                question_count=len(self._registry.get(ft)),
            )
            for ft in self._registry.flow_types()
        ]

    async def start_flow(
        self, db: AsyncSession, subject_id: str, flow_type: str | FlowType
    ) -> Turn:
        """Greeting plus the first question; stateless and repeatable."""
        subject = _require_subject(subject_id)
        ft = FlowType.parse(flow_type)
        self._registry.get(ft)

        profile = await self._profiles.get_profile(db, subject)
        return self._machine.start(ft, profile, identity=self._identity(profile))

    async def submit_answer(
        self,
        db: AsyncSession,
        subject_id: str,
        flow_type: str | FlowType,
        message: Answer | None,
        context: ConversationContext | dict | None,
    ) -> StepResult:
        """Record an answer; returns the next turn or the generated outcome."""
        subject = _require_subject(subject_id)
        ft = FlowType.parse(flow_type)
        self._registry.get(ft)

        profile = await self._profiles.get_profile(db, subject)
        return await self._machine.advance(
            db, ft, message, context, profile,
            identity=self._identity(profile), subject_id=subject,
        )

    # ==================================================================
    # Artifacts
    # ==================================================================

    async def get_artifact(self, db: AsyncSession, subject_id: str, handle: str) -> Artifact:
        subject = _require_subject(subject_id)
        return await self._artifacts.get(db, handle, subject)

    async def delete_artifact(self, db: AsyncSession, subject_id: str, handle: str) -> None:
        subject = _require_subject(subject_id)
        # Ownership check first; a foreign handle reads as not found
        await self._artifacts.get(db, handle, subject)
        await self._artifacts.delete(db, handle)

    async def download(
        self,
        db: AsyncSession,
        subject_id: str,
        handle: str,
        fmt: str | DownloadFormat | None = None,
    ) -> DownloadLink:
        """Render the artifact, write it to disk, and catalog it once.

        Repeated downloads of the same handle by the same subject inside
        the dedup window reuse the catalog entry; each format written is
        recorded on it so deleting or sweeping the entry removes every file.

        Raises:
            Unauthenticated: empty subject id.
            ValidationError: unsupported format.
            ArtifactNotFound: unknown, expired, or foreign handle.
        """
        subject = _require_subject(subject_id)
        fmt = parse_format(fmt)
        artifact = await self._artifacts.get(db, handle, subject)

        now = self._artifacts.now()
        rendered = self._renderer.render(
            artifact, fmt, generated_at=now, tag=artifact_file_tag(handle),
        )
        user_dir = f"user-{safe_filename(subject)}"
        file_path = self._documents_dir / user_dir / rendered.name
        url = f"{self._base_url}/{user_dir}/{rendered.name}"
        await asyncio.to_thread(_write_file, file_path, rendered.html)
        logger.info("Rendered %s for subject=%s to %s", handle, subject, file_path)

        key = download_dedup_key(handle, subject)
        saved = await self._idempotency.recall(db, key)
        if saved is not None and not await self._documents.record_file(
            db, int(saved), subject, str(file_path)
        ):
            # The catalog row was deleted inside the window; catalog afresh
            await self._idempotency.forget(db, key)
            saved = None
        if saved is None:
            saved = await self._save_to_catalog(
                db, key, subject, artifact, fmt,
                file_path=file_path, url=url, extension=rendered.extension,
            )

        return DownloadLink(url=url, format=fmt, saved_document_id=int(saved))

    async def _save_to_catalog(
        self,
        db: AsyncSession,
        key: str,
        subject: str,
        artifact: Artifact,
        fmt: DownloadFormat,
        *,
        file_path: Path,
        url: str,
        extension: str,
    ) -> str:
        now = self._artifacts.now()
        if artifact.flow_type.category is FlowCategory.GUIDE:
            kind, days = DocumentKind.GUIDE, SAVED_GUIDE_TTL_DAYS
        else:
            kind, days = DocumentKind.DOCUMENT, SAVED_DOCUMENT_TTL_DAYS

        doc = await self._documents.save_document(
            db,
            subject_id=subject,
            kind=kind,
            document_type=artifact.flow_type.value,
            title=artifact.title,
            content={
                "file_path": str(file_path),
                "file_url": url,
                "file_ext": extension,
                "files": [str(file_path)],
                "generated_at": now.isoformat(),
            },
            meta={
                "answers": artifact.answers,
                "format": fmt.value,
                "source_id": artifact.handle,
                "ai_generated": artifact.ai_generated,
            },
            expires_at=now + timedelta(days=days),
        )
        winner = await self._idempotency.remember(db, key, str(doc.id), DEDUP_WINDOW_SECONDS)
        if winner != str(doc.id):
            # A concurrent download saved first; drop our duplicate row
            await self._documents.delete_document(db, doc.id, subject)
            await self._documents.record_file(db, int(winner), subject, str(file_path))
        else:
            logger.info("Saved %s to My Documents as #%s (expires in %d days)", artifact.handle, doc.id, days)
        return winner

    # ==================================================================
    # Catalog
    # ==================================================================

    async def list_documents(
        self,
        db: AsyncSession,
        subject_id: str,
        *,
        limit: int = 20,
        offset: int = 0,
    ) -> list[SavedDocument]:
        subject = _require_subject(subject_id)
        rows = await self._documents.list_by_subject(
            db, subject, now=self._artifacts.now(), limit=limit, offset=offset,
        )
        return [self._to_saved(row) for row in rows]

    async def delete_document(self, db: AsyncSession, subject_id: str, document_id: int) -> None:
        """Delete a catalog row and its rendered file."""
        subject = _require_subject(subject_id)
        row = await self._documents.get(db, document_id, subject)
        if row is None:
            raise ArtifactNotFound(str(document_id))
        files = _catalogued_files(row.content)
        await self._documents.delete_document(db, document_id, subject)
        await asyncio.to_thread(_remove_files, files)

    @staticmethod
    def _to_saved(row: MemberDocument) -> SavedDocument:
        content = row.content or {}
        return SavedDocument(
            id=row.id,
            document_type=row.document_type,
            title=row.title,
            file_url=content.get("file_url"),
            file_ext=content.get("file_ext"),
            created_at=row.created_at,
            expires_at=row.expires_at,
        )

    # ==================================================================
    # Clearing and sweeping
    # ==================================================================

    async def clear(self, db: AsyncSession, subject_id: str, resource_kind: str) -> int:
        """Delete the subject's data of one kind; returns the rows removed.

        ``verification`` drops stored verification results; ``previews``
        drops the subject's preview artifacts.
        """
        subject = _require_subject(subject_id)
        kind = (resource_kind or "").strip().lower()
        if kind not in RESOURCE_KINDS:
            raise ValidationError(
                "resource_kind",
                f"Unknown resource kind {resource_kind!r}; expected one of {sorted(RESOURCE_KINDS)}",
            )

        if kind == "verification":
            removed = await self._verifications.delete_for_subject(db, subject)
        else:
            removed = await self._artifacts.delete_for_subject(db, subject)
        logger.info("Cleared %d %s row(s) for subject=%s", removed, kind, subject)
        return removed

    async def purge_expired(
        self, db: AsyncSession, what: tuple[str, ...] | list[str] = CLEANUP_TARGETS
    ) -> dict[str, int]:
        """Sweep expired rows (and catalogued files); returns counts per target."""
        unknown = set(what) - set(CLEANUP_TARGETS)
        if unknown:
            raise ValidationError("what", f"Unknown cleanup target(s): {sorted(unknown)}")

        counts: dict[str, int] = {}
        if "artifacts" in what:
            counts["artifacts"] = await self._artifacts.purge_expired(db)
        if "idempotency" in what:
            counts["idempotency"] = await self._idempotency.purge_expired(db)
        if "documents" in what:
            expired = await self._documents.purge_expired(db, now=self._artifacts.now())
            for content in expired:
                await asyncio.to_thread(_remove_files, _catalogued_files(content))
            counts["documents"] = len(expired)
        logger.info("Expiry sweep: %s", counts)
        return counts

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _identity(profile: dict[str, Any]) -> str:
        for field in ("first_name", "display_name"):
            value = profile.get(field)
            if value and str(value).strip():
                return str(value).strip()
        return ""
