"""Scoring of single-answer multiple-choice responses.

``grade`` is pure: it only looks at the question's ``points`` and the
``id``/``is_correct`` of its choices, so it can be exercised against
plain objects as well as stored ``Question``/``Choice`` rows.
"""

from __future__ import annotations

from typing import Iterable, Optional, Protocol, Sequence


class GradableChoice(Protocol):
    id: Optional[int]
    is_correct: bool


class GradableQuestion(Protocol):
    points: int
    choices: Sequence[GradableChoice]


def correct_choice_id(question: GradableQuestion) -> Optional[int]:
    """Return the id of the first choice flagged correct, or None if there is none."""
    for choice in question.choices:
        if choice.is_correct:
            return choice.id
    return None


def grade(question: GradableQuestion, selected_choice_ids: Iterable[int]) -> int:
    """Points awarded for a selection.

    Full points only when exactly one choice is selected and it is the
    correct one. Empty, multiple or wrong selections score 0, as does
    any selection on a question without a correct choice.
    """
    selected = list(selected_choice_ids)
    correct_id = correct_choice_id(question)
    if correct_id is None or len(selected) != 1:
        return 0
    return question.points if selected[0] == correct_id else 0
