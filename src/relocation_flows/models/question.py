"""Question and QuestionSet models for conversational flows.

Each question maps to one chat turn and one input widget:

    - single_choice: pick one option (rendered as buttons)
    - multi_choice: pick one or more options (rendered as checkboxes)
    - free_text: open-ended text input

A question may carry a ``condition`` — a mapping from an earlier
question's key to the answer values that make this question visible.
Conditions with several keys are OR-combined (see ``evaluator``).

A question may also name a ``profile_field``; when the member's profile
has a value for it, the prompt shows that value as an advisory hint.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from relocation_flows.models.flow import FlowCategory, FlowType

InputKind = Literal["single_choice", "multi_choice", "free_text"]

# key of an earlier question -> accepted answer values
Condition = dict[str, list[str]]


class Option(BaseModel):
    """A selectable option with a stored value and display label."""

    model_config = ConfigDict(frozen=True)

    value: str
    label: str


class Question(BaseModel):
    """One step of a flow.  Immutable once loaded."""

    model_config = ConfigDict(frozen=True)

    key: str
    prompt: str
    input_kind: InputKind
    options: list[Option] = Field(default_factory=list)
    placeholder: Optional[str] = None
    profile_field: Optional[str] = None
    condition: Optional[Condition] = None

    @model_validator(mode="after")
    def _chk_options(self):
        if self.input_kind == "free_text":
            if self.options:
                raise ValueError(f"{self.key}: free_text questions take no options")
        elif not self.options:
            raise ValueError(f"{self.key}: {self.input_kind} questions require options")
        if self.condition is not None and not self.condition:
            raise ValueError(f"{self.key}: condition must not be empty")
        return self

    @property
    def is_conditional(self) -> bool:
        return bool(self.condition)

    def option_values(self) -> list[str]:
        return [opt.value for opt in self.options]


class QuestionSet(BaseModel):
    """Ordered question sequence for one flow, plus its title and intro."""

    model_config = ConfigDict(frozen=True)

    flow_type: FlowType
    title: str
    intro: str = ""
    questions: list[Question]

    @model_validator(mode="after")
    def _chk_questions(self):
        if not self.questions:
            raise ValueError(f"{self.flow_type.value}: a flow needs at least one question")
        # start() always shows questions[0], so it must never be hidden
        if self.questions[0].is_conditional:
            raise ValueError(f"{self.flow_type.value}: the first question cannot be conditional")
        seen: set[str] = set()
        for q in self.questions:
            # Visibility is decided from answers already given
            forward = sorted(set(q.condition or {}) - seen)
            if forward:
                raise ValueError(
                    f"{self.flow_type.value}: {q.key} is conditioned on {forward}, "
                    "which are not asked before it"
                )
            seen.add(q.key)
        return self

    @property
    def category(self) -> FlowCategory:
        return self.flow_type.category

    def __len__(self) -> int:
        return len(self.questions)
