"""ConditionEvaluator — decides whether a conditional question is visible.

A condition maps earlier question keys to the answer values that reveal
the question::

    condition:
      accommodation: [purchased, purchasing, renting]

Semantics:

  - no condition → always visible
  - per key: a multi-choice answer (list) must *intersect* the accepted
    values; a scalar answer must be *one of* them
  - across keys: **OR** — any satisfied key reveals the question
  - a missing answer never satisfies its key (no exception)

There is no recursive resolution: a key whose own question was skipped is
simply absent from ``answers``.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from relocation_flows.models.question import Condition, Question

logger = logging.getLogger(__name__)


class ConditionEvaluator:
    """Evaluates question visibility against the accumulated answers."""

    def is_visible(self, condition: Condition | None, answers: dict[str, Any]) -> bool:
        """Return True if a question with *condition* should be asked.

        Args:
            condition: mapping of question key -> accepted values, or None
            answers: accumulated answers keyed by question key; each value
                is a string or, for multi-choice questions, a list of strings

        Returns:
            True when there is no condition or any key is satisfied.
        """
        if not condition:
            return True
        return any(
            self._key_satisfied(answers.get(key), accepted)
            for key, accepted in condition.items()
        )

    def question_visible(self, question: Question, answers: dict[str, Any]) -> bool:
        return self.is_visible(question.condition, answers)

    # ------------------------------------------------------------------
    # Sequence scanning
    # ------------------------------------------------------------------

    def next_visible(
        self,
        questions: Sequence[Question],
        answers: dict[str, Any],
        start: int,
    ) -> int | None:
        """Index of the first visible question at or after *start*, or None."""
        for idx in range(max(start, 0), len(questions)):
            if self.question_visible(questions[idx], answers):
                return idx
        return None

    def count_visible(
        self,
        questions: Sequence[Question],
        answers: dict[str, Any],
        start: int,
    ) -> int:
        """Number of visible questions at or after *start*."""
        return sum(
            1
            for q in questions[max(start, 0):]
            if self.question_visible(q, answers)
        )

    # ------------------------------------------------------------------
    # Per-key test
    # ------------------------------------------------------------------

    @staticmethod
    def _key_satisfied(answer: Any, accepted: Sequence[str]) -> bool:
        if answer is None or answer == "":
            return False
        if isinstance(answer, (list, tuple, set, frozenset)):
            return any(v in accepted for v in answer)
        if isinstance(answer, dict):
            logger.warning("Condition check against a mapping answer: %r", answer)
            return False
        return answer in accepted
