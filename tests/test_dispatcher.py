"""GenerationDispatcher tests — fallback policy and completion dedup.

Generators are small ContentGenerator subclasses with scripted behaviour;
the stores run on the in-memory repositories from test_store.
"""

import pytest

from relocation_flows.constants import COMPLETION_MESSAGES
from relocation_flows.dispatcher import GenerationDispatcher, completion_key
from relocation_flows.errors import AIBackendError, GenerationFailed
from relocation_flows.interfaces import ContentGenerator
from relocation_flows.models.artifact import ContentSection, GeneratedContent
from relocation_flows.models.conversation import GenerationRequest
from relocation_flows.models.flow import FlowType

from test_store import FakeClock, make_stores


# =====================================================================
# Scripted generators
# =====================================================================


class ScriptedGenerator(ContentGenerator):
    """Returns fixed content, or raises *error*; counts calls."""

    def __init__(self, title, *, ai=False, available=True, error=None):
        self.title = title
        self.ai = ai
        self.available = available
        self.error = error
        self.calls = 0

    def is_available(self):
        return self.available

    async def generate(self, request):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return GeneratedContent(
            title=self.title,
            sections=[ContentSection(body=f"{request.flow_type.value} body")],
            ai_generated=self.ai,
        )


def _request(flow_type=FlowType.COVER_LETTER, **answers):
    return GenerationRequest(
        flow_type=flow_type,
        answers=answers or {"visa_type": "visitor"},
        identity="Jane",
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def stores(clock):
    return make_stores(clock)


def _dispatcher(stores, ai, template):
    artifacts, idempotency = stores
    return GenerationDispatcher(ai, template, artifacts, idempotency)


# =====================================================================
# Fallback policy
# =====================================================================


class TestFallback:

    @pytest.mark.asyncio
    async def test_ai_used_when_available(self, stores, mock_db):
        ai = ScriptedGenerator("AI", ai=True)
        template = ScriptedGenerator("Template")
        outcome = await _dispatcher(stores, ai, template).generate(mock_db, _request(), subject_id="42")
        assert outcome.ai_generated is True
        assert outcome.title == "AI"
        assert template.calls == 0
        assert outcome.message == COMPLETION_MESSAGES[("document", True)]

    @pytest.mark.asyncio
    async def test_not_configured_uses_template(self, stores, mock_db):
        ai = ScriptedGenerator("AI", ai=True, available=False)
        template = ScriptedGenerator("Template")
        outcome = await _dispatcher(stores, ai, template).generate(mock_db, _request(), subject_id="42")
        assert ai.calls == 0
        assert outcome.ai_generated is False
        assert outcome.title == "Template"
        assert outcome.message == COMPLETION_MESSAGES[("document", False)]

    @pytest.mark.asyncio
    async def test_no_ai_generator_at_all(self, stores, mock_db):
        template = ScriptedGenerator("Template")
        outcome = await _dispatcher(stores, None, template).generate(
            mock_db, _request(FlowType.APOSTILLE), subject_id="42",
        )
        assert outcome.message == COMPLETION_MESSAGES[("guide", False)]
        assert outcome.artifact_handle.startswith("guide_")

    @pytest.mark.asyncio
    async def test_ai_backend_error_falls_back(self, stores, mock_db, caplog):
        ai = ScriptedGenerator("AI", ai=True, error=AIBackendError("timed out"))
        template = ScriptedGenerator("Template")
        outcome = await _dispatcher(stores, ai, template).generate(mock_db, _request(), subject_id="42")
        assert ai.calls == 1
        assert outcome.title == "Template"
        assert "timed out" in caplog.text

    @pytest.mark.asyncio
    async def test_unexpected_ai_error_falls_back(self, stores, mock_db):
        ai = ScriptedGenerator("AI", ai=True, error=KeyError("boom"))
        template = ScriptedGenerator("Template")
        outcome = await _dispatcher(stores, ai, template).generate(mock_db, _request(), subject_id="42")
        assert outcome.title == "Template"

    @pytest.mark.asyncio
    async def test_both_fail(self, stores, mock_db):
        ai = ScriptedGenerator("AI", ai=True, error=AIBackendError("down"))
        template = ScriptedGenerator("Template", error=RuntimeError("broken"))
        with pytest.raises(GenerationFailed):
            await _dispatcher(stores, ai, template).generate(mock_db, _request(), subject_id="42")
        # Nothing half-written
        artifacts, idempotency = stores
        assert artifacts._repo._rows == {}
        assert idempotency._repo._rows == {}

    @pytest.mark.asyncio
    async def test_artifact_is_stored_with_answers(self, stores, mock_db):
        template = ScriptedGenerator("Template")
        outcome = await _dispatcher(stores, None, template).generate(
            mock_db, _request(visa_type="talent"), subject_id="42",
        )
        artifacts, _ = stores
        artifact = await artifacts.get(mock_db, outcome.artifact_handle, "42")
        assert artifact.answers == {"visa_type": "talent"}
        assert artifact.sections[0].body == "cover-letter body"


# =====================================================================
# Completion dedup
# =====================================================================


class TestDedup:

    @pytest.mark.asyncio
    async def test_repeat_inside_window_reuses_handle(self, stores, clock, mock_db):
        template = ScriptedGenerator("Template")
        d = _dispatcher(stores, None, template)
        first = await d.generate(mock_db, _request(), subject_id="42")
        clock.advance(hours=1)
        second = await d.generate(mock_db, _request(), subject_id="42")
        assert second.artifact_handle == first.artifact_handle
        assert template.calls == 1

    @pytest.mark.asyncio
    async def test_repeat_after_window_creates_new(self, stores, clock, mock_db):
        template = ScriptedGenerator("Template")
        d = _dispatcher(stores, None, template)
        first = await d.generate(mock_db, _request(), subject_id="42")
        clock.advance(hours=25)
        second = await d.generate(mock_db, _request(), subject_id="42")
        assert second.artifact_handle != first.artifact_handle
        assert template.calls == 2

    @pytest.mark.asyncio
    async def test_expired_artifact_is_regenerated_inside_window(self, stores, clock, mock_db):
        """Guide previews expire after an hour; the key must not pin a dead handle."""
        template = ScriptedGenerator("Template")
        d = _dispatcher(stores, None, template)
        first = await d.generate(mock_db, _request(FlowType.APOSTILLE), subject_id="42")
        clock.advance(hours=2)
        second = await d.generate(mock_db, _request(FlowType.APOSTILLE), subject_id="42")
        assert second.artifact_handle != first.artifact_handle
        # And the key now points at the new one
        third = await d.generate(mock_db, _request(FlowType.APOSTILLE), subject_id="42")
        assert third.artifact_handle == second.artifact_handle

    @pytest.mark.asyncio
    async def test_different_answers_are_not_deduped(self, stores, mock_db):
        template = ScriptedGenerator("Template")
        d = _dispatcher(stores, None, template)
        a = await d.generate(mock_db, _request(visa_type="visitor"), subject_id="42")
        b = await d.generate(mock_db, _request(visa_type="talent"), subject_id="42")
        assert a.artifact_handle != b.artifact_handle

    @pytest.mark.asyncio
    async def test_different_subjects_are_not_deduped(self, stores, mock_db):
        template = ScriptedGenerator("Template")
        d = _dispatcher(stores, None, template)
        a = await d.generate(mock_db, _request(), subject_id="42")
        b = await d.generate(mock_db, _request(), subject_id="7")
        assert a.artifact_handle != b.artifact_handle

    @pytest.mark.asyncio
    async def test_race_keeps_first_claim(self, stores, mock_db):
        """A concurrent completion that claimed the key first wins; ours is dropped."""
        artifacts, idempotency = stores
        template = ScriptedGenerator("Template")
        d = _dispatcher(stores, None, template)
        winner = await d.generate(mock_db, _request(), subject_id="42")

        # Simulate losing the race: recall misses, claim then finds the winner
        original_recall = idempotency.recall
        calls = {"n": 0}

        async def flaky_recall(db, key):
            calls["n"] += 1
            if calls["n"] == 1:
                return None
            return await original_recall(db, key)

        idempotency.recall = flaky_recall
        loser = await d.generate(mock_db, _request(), subject_id="42")
        assert loser.artifact_handle == winner.artifact_handle
        assert list(artifacts._repo._rows) == [winner.artifact_handle]

    def test_key_ignores_answer_order(self):
        a = GenerationRequest(flow_type=FlowType.APOSTILLE, answers={"x": "1", "y": "2"})
        b = GenerationRequest(flow_type=FlowType.APOSTILLE, answers={"y": "2", "x": "1"})
        assert completion_key("42", a) == completion_key("42", b)
        assert completion_key("42", a).startswith("completion_")
