"""GenerationDispatcher — turns a completed conversation into a stored artifact.

Strategy, in order:

  1. Completion dedup: the same subject finishing the same flow with the
     same answers inside the dedup window gets the earlier handle back,
     provided that artifact is still live.
  2. AI generator, only when it reports itself available (API key set).
     Any failure is logged and recovered by step 3.
  3. Template generator, which has a builder for every flow.  If even
     that raises, the dispatcher raises ``GenerationFailed``.

Content is stored only after a generator has returned it in full, so a
failed run never leaves a half-written artifact behind.
"""

from __future__ import annotations

import hashlib
import json
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from relocation_flows.constants import COMPLETION_MESSAGES
from relocation_flows.errors import AIBackendError, ArtifactNotFound, GenerationFailed
from relocation_flows.interfaces import ContentGenerator
from relocation_flows.models.artifact import Artifact, GeneratedContent
from relocation_flows.models.conversation import GenerationOutcome, GenerationRequest
from relocation_flows.store import ArtifactStore, IdempotencyCache

logger = logging.getLogger(__name__)


def completion_key(subject_id: str, request: GenerationRequest) -> str:
    """Stable idempotency key for one subject finishing one flow.

    Answers are serialised with sorted keys so insertion order does not
    change the key.
    """
    payload = json.dumps(
        {
            "subject": subject_id,
            "flow": request.flow_type.value,
            "answers": request.answers,
        },
        sort_keys=True,
        ensure_ascii=False,
    )
    digest = hashlib.sha256(payload.encode("utf-8")).hexdigest()
    return f"completion_{digest}"


class GenerationDispatcher:
    """AI-first generation with a template fallback that always answers.

    Args:
        ai_generator: optional AI generator; skipped when ``None`` or when
            ``is_available()`` is false
        template_generator: deterministic fallback
        artifacts: preview store the result is written to
        idempotency: cache used for completion dedup
    """

    def __init__(
        self,
        ai_generator: ContentGenerator | None,
        template_generator: ContentGenerator,
        artifacts: ArtifactStore,
        idempotency: IdempotencyCache,
    ) -> None:
        self._ai = ai_generator
        self._template = template_generator
        self._artifacts = artifacts
        self._idempotency = idempotency

    async def generate(
        self,
        db: AsyncSession,
        request: GenerationRequest,
        *,
        subject_id: str,
    ) -> GenerationOutcome:
        """Generate, store, and describe the artifact for *request*.

        Raises:
            GenerationFailed: if the template fallback also failed.
        """
        key = completion_key(subject_id, request)

        # --- Repeated completion inside the window ---
        previous = await self._live_artifact(db, key, subject_id)
        if previous is not None:
            logger.info(
                "Completion for flow %s by subject=%s already produced %s; reusing it",
                request.flow_type.value, subject_id, previous.handle,
            )
            return self._outcome(previous)

        content = await self._produce(request)
        artifact = await self._artifacts.create(
            db,
            subject_id=subject_id,
            flow_type=request.flow_type,
            content=content,
            answers=request.answers,
        )

        winner = await self._idempotency.remember(db, key, artifact.handle)
        if winner != artifact.handle:
            # A concurrent completion claimed the key first; keep theirs.
            existing = await self._live_artifact(db, key, subject_id)
            if existing is not None:
                await self._artifacts.delete(db, artifact.handle)
                return self._outcome(existing)
            # The key pointed at an artifact that has since expired.
            await self._idempotency.forget(db, key)
            await self._idempotency.remember(db, key, artifact.handle)

        return self._outcome(artifact)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _produce(self, request: GenerationRequest) -> GeneratedContent:
        flow = request.flow_type.value

        if self._ai is not None and self._ai.is_available():
            try:
                return await self._ai.generate(request)
            except AIBackendError as exc:
                logger.warning("AI generation failed for %s, using template: %s", flow, exc)
            except Exception:
                logger.warning(
                    "AI generator raised unexpectedly for %s, using template",
                    flow, exc_info=True,
                )
        else:
            logger.info("AI generation not configured; using template for %s", flow)

        try:
            return await self._template.generate(request)
        except Exception as exc:
            logger.exception("Template generation failed for %s", flow)
            raise GenerationFailed(f"Template generation failed for {flow}") from exc

    async def _live_artifact(
        self, db: AsyncSession, key: str, subject_id: str
    ) -> Artifact | None:
        handle = await self._idempotency.recall(db, key)
        if handle is None:
            return None
        try:
            return await self._artifacts.get(db, handle, subject_id)
        except ArtifactNotFound:
            return None

    @staticmethod
    def _outcome(artifact: Artifact) -> GenerationOutcome:
        category = artifact.flow_type.category.value
        return GenerationOutcome(
            flow_type=artifact.flow_type,
            artifact_handle=artifact.handle,
            title=artifact.title,
            ai_generated=artifact.ai_generated,
            message=COMPLETION_MESSAGES[(category, artifact.ai_generated)],
        )
