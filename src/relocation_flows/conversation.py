"""ConversationMachine — stateless step function over a flow's questions.

The machine holds no per-conversation state.  Each call receives the flow
type, the caller's ``ConversationContext`` (step + answers) and the
member's profile, and returns what to show next:

    START ──► Q(0) ──► Q(next visible j > i) ──► ... ──► COMPLETE
                          ▲
                          └── ConditionEvaluator guards every candidate

On COMPLETE the machine builds a ``GenerationRequest`` and hands it to the
``GenerationDispatcher``, returning its ``GenerationOutcome`` instead of a
``Turn``.

The next visible question is always recomputed from the registry, never
stored, so a question set that changes between turns cannot leave a
conversation pointing at stale state.

Usage::

    machine = ConversationMachine(registry, dispatcher=dispatcher)

    turn = machine.start("cover-letter", profile, identity="Alex")
    result = await machine.advance(
        db, "cover-letter", "visitor", turn.context(), profile,
        identity="Alex", subject_id="42",
    )
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import AsyncSession

from relocation_flows.constants import (
    DEFAULT_IDENTITY,
    LAST_QUESTION_NOTICE,
    PROFILE_HINT_TEMPLATE,
)
from relocation_flows.errors import ValidationError
from relocation_flows.evaluator import ConditionEvaluator
from relocation_flows.models.conversation import (
    Answer,
    ConversationContext,
    GenerationRequest,
    StepResult,
    Turn,
)
from relocation_flows.models.flow import FlowCategory, FlowType
from relocation_flows.models.question import Question, QuestionSet
from relocation_flows.registry import QuestionSetRegistry

if TYPE_CHECKING:
    from relocation_flows.dispatcher import GenerationDispatcher

logger = logging.getLogger(__name__)


class ConversationMachine:
    """Computes the next turn of a flow from caller-supplied context.

    Args:
        registry: loaded :class:`QuestionSetRegistry`
        evaluator: visibility evaluator; a fresh one is built if omitted
        dispatcher: generation dispatcher used by :meth:`advance` when the
            sequence is exhausted.  May be ``None`` for callers that only
            use :meth:`start` and :meth:`next_step`.
    """

    def __init__(
        self,
        registry: QuestionSetRegistry,
        evaluator: ConditionEvaluator | None = None,
        dispatcher: GenerationDispatcher | None = None,
    ) -> None:
        self._registry = registry
        self._evaluator = evaluator or ConditionEvaluator()
        self._dispatcher = dispatcher

    # ==================================================================
    # Public API
    # ==================================================================

    def start(
        self,
        flow_type: str | FlowType,
        profile: dict[str, Any] | None = None,
        identity: str = "",
    ) -> Turn:
        """Open a flow: greeting, intro, and the first question.

        Pure function of its inputs; calling it twice with the same
        arguments yields identical turns.

        Raises:
            ValidationError: if *flow_type* is empty.
            UnknownFlow: if *flow_type* is not registered.
        """
        qs = self._registry.get(flow_type)
        greeting = self._greeting(qs, identity)
        return self._build_turn(qs, 0, {}, profile or {}, prefix=greeting + "\n\n")

    def next_step(
        self,
        flow_type: str | FlowType,
        message: Answer | None,
        context: ConversationContext | dict | None,
        profile: dict[str, Any] | None = None,
        identity: str = "",
    ) -> Turn | GenerationRequest:
        """Record one answer and decide what comes next, without generating.

        Returns the next ``Turn`` or, when no visible question remains, the
        ``GenerationRequest`` that :meth:`advance` would dispatch.

        All validation happens before the answer is recorded; on failure
        nothing is written and the caller's context is left untouched.
        """
        qs = self._registry.get(flow_type)
        ctx = ConversationContext.from_raw(context)
        self._require_message(message)

        answers: dict[str, Answer] = dict(ctx.answers)
        questions = qs.questions

        # --- Record the answer for the current step ---
        if 0 <= ctx.step < len(questions):
            current = questions[ctx.step]
            answers[current.key] = self._normalize_answer(current, message)
        else:
            logger.warning(
                "Flow %s: step %d is out of range (%d questions); answer not recorded",
                qs.flow_type.value, ctx.step, len(questions),
            )

        # --- Find the next visible question ---
        next_idx = self._evaluator.next_visible(questions, answers, ctx.step + 1)
        if next_idx is None:
            return GenerationRequest(
                flow_type=qs.flow_type,
                answers=answers,
                profile=dict(profile or {}),
                identity=identity or "",
            )
        return self._build_turn(qs, next_idx, answers, profile or {})

    async def advance(
        self,
        db: AsyncSession,
        flow_type: str | FlowType,
        message: Answer | None,
        context: ConversationContext | dict | None,
        profile: dict[str, Any] | None = None,
        *,
        identity: str = "",
        subject_id: str,
    ) -> StepResult:
        """Record one answer and return the next turn or the generated outcome.

        Args:
            db: session passed through to the artifact store
            flow_type: flow identifier
            message: the answer to the question at ``context.step``
            context: caller-held conversation context (validated here)
            profile: member profile used for pre-fill hints and generation
            identity: display name for greetings and titles
            subject_id: owner of any artifact that gets generated

        Returns:
            ``Turn`` while questions remain, otherwise ``GenerationOutcome``.
        """
        step = self.next_step(flow_type, message, context, profile, identity)
        if isinstance(step, Turn):
            return step

        if self._dispatcher is None:
            raise RuntimeError("ConversationMachine has no dispatcher configured")
        logger.info(
            "Flow %s complete for subject=%s with %d answers; dispatching generation",
            step.flow_type.value, subject_id, len(step.answers),
        )
        return await self._dispatcher.generate(db, step, subject_id=subject_id)

    # ==================================================================
    # Turn construction
    # ==================================================================

    def _build_turn(
        self,
        qs: QuestionSet,
        idx: int,
        answers: dict[str, Answer],
        profile: dict[str, Any],
        *,
        prefix: str = "",
    ) -> Turn:
        question = qs.questions[idx]

        # is_last: zero visible questions strictly after this one
        remaining = self._evaluator.count_visible(qs.questions, answers, idx + 1)
        is_last = remaining == 0

        message = prefix + question.prompt + self._profile_hint(question, profile)
        if is_last:
            message += LAST_QUESTION_NOTICE.format(noun=qs.category.value)

        kind = question.input_kind
        return Turn(
            flow_type=qs.flow_type,
            message=message,
            input_kind=kind,
            options=list(question.options) if kind == "single_choice" else None,
            multi_select=list(question.options) if kind == "multi_choice" else None,
            show_input=kind == "free_text",
            placeholder=question.placeholder or "",
            step=idx,
            answers=answers,
            is_last=is_last,
        )

    @staticmethod
    def _greeting(qs: QuestionSet, identity: str) -> str:
        name = identity.strip() if identity and identity.strip() else DEFAULT_IDENTITY
        if qs.category is FlowCategory.DOCUMENT:
            greeting = f"Hi {name}! 👋 I'll help you create your **{qs.title}**."
            return f"{greeting}\n\n{qs.intro}" if qs.intro else greeting
        return f"Hi {name}! {qs.intro}".rstrip()

    @staticmethod
    def _profile_hint(question: Question, profile: dict[str, Any]) -> str:
        """Advisory hint showing the profile value for this question, if any."""
        if not question.profile_field:
            return ""
        value = profile.get(question.profile_field)
        if isinstance(value, (list, tuple)):
            value = ", ".join(str(v) for v in value if v)
        if value is None or str(value).strip() == "":
            return ""
        return PROFILE_HINT_TEMPLATE.format(value=value)

    # ==================================================================
    # Input handling
    # ==================================================================

    @staticmethod
    def _require_message(message: Answer | None) -> None:
        if message is None:
            raise ValidationError("message", "An answer is required")
        if isinstance(message, str):
            if not message.strip():
                raise ValidationError("message", "An answer is required")
            return
        if isinstance(message, list):
            if not any(isinstance(m, str) and m.strip() for m in message):
                raise ValidationError("message", "Select at least one option")
            if not all(isinstance(m, str) for m in message):
                raise ValidationError("message", "Answers must be strings")
            return
        raise ValidationError("message", "Answer must be a string or a list of strings")

    @staticmethod
    def _normalize_answer(question: Question, message: Answer) -> Answer:
        """Multi-choice answers become lists; everything else a trimmed string.

        Chat clients send multi-select picks comma-joined, so a string
        answer to a multi_choice question is split on commas.
        """
        if question.input_kind == "multi_choice":
            parts = message.split(",") if isinstance(message, str) else message
            return [p.strip() for p in parts if p.strip()]
        if isinstance(message, list):
            return ", ".join(m.strip() for m in message if m.strip())
        return message.strip()
