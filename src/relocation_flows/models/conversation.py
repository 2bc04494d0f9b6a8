"""Conversation models — the contract between the state machine and callers.

The server keeps no conversation state: the caller sends the
``ConversationContext`` it received with the previous turn and gets back
either the next ``Turn`` or, once the sequence is exhausted, a
``GenerationOutcome`` pointing at the generated artifact.

Step types:
  - Turn: ask the next question
  - GenerationOutcome: answers are complete and content was generated

The ``StepResult`` union covers both so callers can dispatch on ``type``.
"""

from __future__ import annotations

from typing import Any, Literal, Optional, Union

import pydantic
from pydantic import BaseModel, Field

from relocation_flows.errors import ValidationError
from relocation_flows.models.flow import FlowType
from relocation_flows.models.question import InputKind, Option

Answer = Union[str, list[str]]


class ConversationContext(BaseModel):
    """Caller-held conversation state.

    ``step`` indexes the *raw* question sequence (not the visible one) and
    always points at the question the caller is answering now.
    """

    step: int = Field(0, ge=0)
    answers: dict[str, Answer] = Field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: Any) -> ConversationContext:
        """Validate an untrusted context payload.

        ``None`` means a fresh conversation.  Anything malformed (negative
        step, non-mapping answers, non-string values) is rejected with the
        SDK's ``ValidationError`` rather than trusted.
        """
        if raw is None:
            return cls()
        if isinstance(raw, cls):
            return raw.model_copy(deep=True)
        if not isinstance(raw, dict):
            raise ValidationError("context", "must be an object with step and answers")
        try:
            return cls.model_validate(raw)
        except pydantic.ValidationError as exc:
            first = exc.errors()[0]
            loc = ".".join(str(p) for p in first.get("loc", ())) or "context"
            raise ValidationError(f"context.{loc}", first.get("msg", "invalid value")) from None


class Turn(BaseModel):
    """Machine step: show the next question and wait for the answer."""

    type: Literal["turn"] = "turn"
    flow_type: FlowType
    message: str
    input_kind: InputKind
    # Populated for single_choice questions
    options: Optional[list[Option]] = None
    # Populated for multi_choice questions
    multi_select: Optional[list[Option]] = None
    # True for free_text questions
    show_input: bool = False
    placeholder: str = ""
    step: int
    answers: dict[str, Answer] = Field(default_factory=dict)
    is_last: bool = False

    def context(self) -> ConversationContext:
        """The context the caller should send back with its next answer."""
        return ConversationContext(step=self.step, answers=dict(self.answers))


class GenerationRequest(BaseModel):
    """Everything a generator needs, built once the questions run out."""

    flow_type: FlowType
    answers: dict[str, Answer]
    profile: dict[str, Any] = Field(default_factory=dict)
    # Display name used in greetings and titles
    identity: str = ""


class GenerationOutcome(BaseModel):
    """Machine step: content was generated and stored under a handle."""

    type: Literal["generated"] = "generated"
    flow_type: FlowType
    artifact_handle: str
    title: str
    ai_generated: bool
    message: str = ""


# Callers can match on result.type to dispatch rendering logic.
StepResult = Turn | GenerationOutcome
