"""Quiz answer normalization and objective (multiple-choice) auto-grading."""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal, Union

MCQ = "mcq"
TEXT = "text"
QUIZ = "quiz"


@dataclass(frozen=True)
class McqAnswer:
    choices: tuple[int, ...] = ()
    type: Literal["mcq"] = field(default=MCQ, init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "choices": list(self.choices)}


@dataclass(frozen=True)
class TextAnswer:
    value: str = ""
    type: Literal["text"] = field(default=TEXT, init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "value": self.value}


QuizAnswer = Union[McqAnswer, TextAnswer]


@dataclass(frozen=True)
class GradeResult:
    auto_score: float | None
    auto_approve: bool
    correct_count: int
    total_gradable: int


NOT_GRADABLE = GradeResult(auto_score=None, auto_approve=False, correct_count=0, total_gradable=0)


def _to_index(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def normalize_indices(values: Any) -> tuple[int, ...]:
    """Dedupe, keep non-negative integers, sort ascending."""
    if isinstance(values, (str, bytes)) or not isinstance(values, Sequence):
        return ()
    indices = {i for i in (_to_index(v) for v in values) if i is not None and i >= 0}
    return tuple(sorted(indices))


def _normalize_mcq(raw: Any) -> McqAnswer:
    if isinstance(raw, Mapping):
        source = raw.get("choices")
    elif isinstance(raw, (int, str)) and not isinstance(raw, bool):
        source = [raw]
    else:
        source = raw
    return McqAnswer(choices=normalize_indices(source))


def _normalize_text(raw: Any) -> TextAnswer:
    if isinstance(raw, Mapping):
        raw = raw.get("value")
    if isinstance(raw, str):
        return TextAnswer(value=raw)
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return TextAnswer(value=str(raw))
    return TextAnswer()


def normalize_answers(questions: Sequence[Mapping[str, Any]], raw: Any) -> list[QuizAnswer]:
    """Coerce a submitted answer payload into one typed entry per question.

    `raw` may be a list (positional) or a mapping keyed by the question index
    as a string. Each slot takes the type of its question, whatever shape the
    client sent.
    """
    if isinstance(raw, Mapping):
        slots = [raw.get(str(i)) for i in range(len(questions))]
    elif isinstance(raw, Sequence) and not isinstance(raw, (str, bytes)):
        slots = [raw[i] if i < len(raw) else None for i in range(len(questions))]
    else:
        slots = [None] * len(questions)

    answers: list[QuizAnswer] = []
    for question, slot in zip(questions, slots):
        if question.get("type") == MCQ:
            answers.append(_normalize_mcq(slot))
        else:
            answers.append(_normalize_text(slot))
    return answers


def grade(
    assignment_type: str,
    auto_grading: bool,
    questions: Sequence[Mapping[str, Any]],
    answers: Sequence[QuizAnswer],
) -> GradeResult:
    """Score the multiple-choice questions of a quiz.

    A question is correct only when the chosen set is non-empty and equals
    the correct set exactly; there is no partial credit. Any text question
    disables auto-approval but the mcq questions are still counted.
    """
    if assignment_type != QUIZ or not auto_grading or not questions:
        return NOT_GRADABLE

    correct = 0
    gradable = 0
    all_mcq = True
    for idx, question in enumerate(questions):
        if question.get("type") != MCQ:
            all_mcq = False
            continue
        gradable += 1
        expected = normalize_indices(question.get("correctIndices") or question.get("correct_indices") or [])
        entry = answers[idx] if idx < len(answers) else None
        if not isinstance(entry, McqAnswer):
            continue
        chosen = normalize_indices(list(entry.choices))
        if chosen and chosen == expected:
            correct += 1

    return GradeResult(
        auto_score=correct / gradable if gradable else None,
        auto_approve=all_mcq and gradable > 0,
        correct_count=correct,
        total_gradable=gradable,
    )


def points_for(result: GradeResult, max_points: int) -> int:
    """Points earned by an auto-approved quiz, proportional to correct answers."""
    if not result.auto_approve or result.total_gradable == 0 or max_points <= 0:
        return 0
    # half-up, not banker's rounding
    earned = math.floor(result.correct_count * max_points / result.total_gradable + 0.5)
    return max(0, min(max_points, earned))
