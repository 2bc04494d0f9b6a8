"""ConversationMachine tests — the stateless step function.

Uses the packaged question sets for realistic flows and small in-test
question sets (installed on an unloaded registry) for the edge cases.
Generation is replaced with a StubDispatcher that records requests.
"""

import copy

import pytest

from relocation_flows.constants import LAST_QUESTION_NOTICE
from relocation_flows.conversation import ConversationMachine
from relocation_flows.errors import UnknownFlow, ValidationError
from relocation_flows.models.conversation import GenerationOutcome, GenerationRequest, Turn
from relocation_flows.models.flow import FlowType
from relocation_flows.models.question import QuestionSet
from relocation_flows.registry import QuestionSetRegistry


# =====================================================================
# Helpers
# =====================================================================


class StubDispatcher:
    """Records generation requests and returns a canned outcome."""

    def __init__(self):
        self.calls: list[tuple[GenerationRequest, str]] = []

    async def generate(self, db, request, *, subject_id):
        self.calls.append((request, subject_id))
        return GenerationOutcome(
            flow_type=request.flow_type,
            artifact_handle="guide_1_stub",
            title="Stub",
            ai_generated=False,
        )


def _registry_with(*questions, flow_type=FlowType.BANK_RATINGS):
    """Unloaded registry holding one hand-built question set."""
    r = QuestionSetRegistry()
    r.question_sets[flow_type] = QuestionSet(
        flow_type=flow_type, title="Test flow", questions=list(questions),
    )
    return r


def _choice(key, *values, condition=None):
    q = {
        "key": key,
        "prompt": f"{key}?",
        "input_kind": "single_choice",
        "options": [{"value": v, "label": v} for v in values],
    }
    if condition:
        q["condition"] = condition
    return q


def _text(key, condition=None, profile_field=None):
    q = {"key": key, "prompt": f"{key}?", "input_kind": "free_text"}
    if condition:
        q["condition"] = condition
    if profile_field:
        q["profile_field"] = profile_field
    return q


@pytest.fixture
def machine(registry):
    return ConversationMachine(registry, dispatcher=StubDispatcher())


# =====================================================================
# start
# =====================================================================


class TestStart:

    def test_first_turn(self, machine):
        turn = machine.start("cover-letter", identity="Jane")
        assert turn.step == 0
        assert turn.answers == {}
        assert turn.input_kind == "single_choice"
        assert turn.message.startswith("Hi Jane!")
        assert "**Visa Cover Letter**" in turn.message

    def test_start_is_idempotent(self, machine):
        profile = {"visa_type": "visitor"}
        first = machine.start("cover-letter", profile, identity="Jane")
        second = machine.start("cover-letter", profile, identity="Jane")
        assert first == second

    def test_default_identity(self, machine):
        assert machine.start("apostille").message.startswith("Hi there!")

    def test_unknown_flow(self, machine):
        with pytest.raises(UnknownFlow):
            machine.start("tax-return")

    def test_empty_flow(self, machine):
        with pytest.raises(ValidationError):
            machine.start("")

    def test_multi_choice_turn_exposes_multi_select(self, machine):
        turn = machine.start("apostille")
        assert turn.input_kind == "multi_choice"
        assert turn.options is None
        assert "birth_cert" in [o.value for o in turn.multi_select]

    def test_free_text_turn_shows_input(self):
        m = ConversationMachine(_registry_with(_text("name")))
        turn = m.start(FlowType.BANK_RATINGS)
        assert turn.show_input is True
        assert turn.options is None and turn.multi_select is None


# =====================================================================
# Condition OR-semantics on the cover letter
# =====================================================================


class TestAccommodationBranch:
    """Q ``property_details`` is gated on accommodation ∈ {purchased, purchasing, renting}."""

    CONTEXT = {"step": 2, "answers": {"visa_type": "visitor", "consulate": "boston"}}

    def test_renting_reveals_property_details(self, machine):
        turn = machine.next_step("cover-letter", "renting", copy.deepcopy(self.CONTEXT))
        assert isinstance(turn, Turn)
        assert turn.step == 3
        assert turn.answers["accommodation"] == "renting"

    def test_staying_family_skips_property_details(self, machine):
        turn = machine.next_step("cover-letter", "staying_family", copy.deepcopy(self.CONTEXT))
        assert isinstance(turn, Turn)
        assert turn.step == 4

    def test_or_across_keys(self):
        m = ConversationMachine(_registry_with(
            _choice("a", "x", "n"),
            _choice("b", "y", "n"),
            _text("either", condition={"a": ["x"], "b": ["y"]}),
            _text("tail"),
        ))
        hit = m.next_step(FlowType.BANK_RATINGS, "y", {"step": 1, "answers": {"a": "n"}})
        miss = m.next_step(FlowType.BANK_RATINGS, "n", {"step": 1, "answers": {"a": "n"}})
        assert hit.step == 2
        assert miss.step == 3


# =====================================================================
# is_last
# =====================================================================


class TestIsLast:

    @pytest.fixture
    def m(self):
        return ConversationMachine(_registry_with(
            _choice("q0", "x", "y"),
            _text("q1"),
            _text("q2", condition={"q0": ["x"]}),
        ))

    def test_skipped_tail_makes_current_last(self, m):
        turn = m.next_step(FlowType.BANK_RATINGS, "y", {"step": 0, "answers": {}})
        assert turn.step == 1
        assert turn.is_last is True
        assert turn.message.endswith(LAST_QUESTION_NOTICE.format(noun="guide"))

    def test_reachable_tail_is_not_last(self, m):
        turn = m.next_step(FlowType.BANK_RATINGS, "x", {"step": 0, "answers": {}})
        assert turn.step == 1
        assert turn.is_last is False
        assert "last question" not in turn.message

    def test_single_question_flow_start_is_last(self):
        m = ConversationMachine(_registry_with(_text("only")))
        assert m.start(FlowType.BANK_RATINGS).is_last is True

    def test_document_notice_wording(self, machine):
        ctx = {"step": 4, "answers": {"visa_type": "visitor", "consulate": "boston",
                                      "accommodation": "temporary"}}
        turn = machine.next_step("cover-letter", "Retirement", ctx)
        assert turn.step == 5
        assert turn.is_last is True
        assert "your document will be generated" in turn.message


# =====================================================================
# Answer recording
# =====================================================================


class TestAnswers:

    def test_multi_choice_string_is_split(self, machine):
        turn = machine.next_step("apostille", "birth_cert, marriage_cert", {"step": 0, "answers": {}})
        assert turn.answers["documents_needed"] == ["birth_cert", "marriage_cert"]
        assert turn.step == 1

    def test_multi_choice_list_passes_through(self, machine):
        turn = machine.next_step("apostille", ["diploma"], {"step": 0, "answers": {}})
        assert turn.answers["documents_needed"] == ["diploma"]
        # Neither state question applies
        assert turn.step == 3

    def test_free_text_is_trimmed(self, machine):
        ctx = {"step": 1, "answers": {"documents_needed": ["birth_cert"]}}
        turn = machine.next_step("apostille", "  Texas  ", ctx)
        assert turn.answers["birth_state"] == "Texas"

    def test_duplicate_key_last_write_wins(self):
        m = ConversationMachine(_registry_with(_text("a"), _text("a"), _text("b")))
        t1 = m.next_step(FlowType.BANK_RATINGS, "first", {"step": 0, "answers": {}})
        t2 = m.next_step(FlowType.BANK_RATINGS, "second", t1.context())
        assert t2.answers == {"a": "second"}
        assert t2.step == 2

    def test_out_of_range_step_records_nothing(self, machine):
        result = machine.next_step("apostille", "whatever", {"step": 99, "answers": {"urgency": "asap"}})
        assert isinstance(result, GenerationRequest)
        assert result.answers == {"urgency": "asap"}

    def test_profile_hint(self, machine):
        ctx = {"step": 1, "answers": {"visa_type": "visitor"}}
        turn = machine.next_step("cover-letter", "boston", ctx, {"housing_plans": "Renting in Lyon"})
        assert turn.step == 2
        assert "(From your profile: **Renting in Lyon**)" in turn.message

    def test_no_hint_without_profile_value(self, machine):
        ctx = {"step": 1, "answers": {"visa_type": "visitor"}}
        turn = machine.next_step("cover-letter", "boston", ctx, {"housing_plans": "  "})
        assert "From your profile" not in turn.message


# =====================================================================
# Fail fast, no partial mutation
# =====================================================================


class TestValidation:

    @pytest.mark.parametrize("message", [None, "", "   ", [], [""]])
    def test_empty_message_rejected(self, machine, message):
        ctx = {"step": 0, "answers": {"x": "1"}}
        before = copy.deepcopy(ctx)
        with pytest.raises(ValidationError) as exc_info:
            machine.next_step("apostille", message, ctx)
        assert exc_info.value.field == "message"
        assert ctx == before

    def test_negative_step_rejected(self, machine):
        with pytest.raises(ValidationError) as exc_info:
            machine.next_step("apostille", "diploma", {"step": -1, "answers": {}})
        assert exc_info.value.field.startswith("context")

    def test_non_mapping_context_rejected(self, machine):
        with pytest.raises(ValidationError):
            machine.next_step("apostille", "diploma", ["step", 0])

    def test_non_string_answer_values_rejected(self, machine):
        with pytest.raises(ValidationError):
            machine.next_step("apostille", "diploma", {"step": 0, "answers": {"a": {"b": 1}}})

    def test_unknown_flow_before_anything_else(self, machine):
        with pytest.raises(UnknownFlow):
            machine.next_step("tax-return", "", None)

    def test_missing_context_starts_fresh(self, machine):
        turn = machine.next_step("apostille", "diploma", None)
        assert turn.answers == {"documents_needed": ["diploma"]}


# =====================================================================
# advance → dispatcher
# =====================================================================


class TestAdvance:

    @pytest.mark.asyncio
    async def test_turn_does_not_dispatch(self, machine, mock_db):
        result = await machine.advance(
            mock_db, "apostille", "diploma", None, subject_id="42",
        )
        assert isinstance(result, Turn)
        assert machine._dispatcher.calls == []

    @pytest.mark.asyncio
    async def test_exhaustion_dispatches(self, machine, mock_db):
        ctx = {"step": 3, "answers": {"documents_needed": ["diploma"]}}
        result = await machine.advance(
            mock_db, "apostille", "asap", ctx, {"first_name": "Jane"},
            identity="Jane", subject_id="42",
        )
        assert isinstance(result, GenerationOutcome)
        request, subject = machine._dispatcher.calls[0]
        assert subject == "42"
        assert request.flow_type is FlowType.APOSTILLE
        assert request.answers == {"documents_needed": ["diploma"], "urgency": "asap"}
        assert request.identity == "Jane"
        assert request.profile == {"first_name": "Jane"}

    @pytest.mark.asyncio
    async def test_no_dispatcher_configured(self, registry, mock_db):
        m = ConversationMachine(registry)
        ctx = {"step": 3, "answers": {"documents_needed": ["diploma"]}}
        with pytest.raises(RuntimeError):
            await m.advance(mock_db, "apostille", "asap", ctx, subject_id="42")
