"""Pydantic models for assignment endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import Field, model_validator

from mentora.schemas import CamelModel


class QuizQuestion(CamelModel):
    prompt: str = Field(min_length=1)
    type: Literal["mcq", "text"]
    options: list[str] = []
    correct_indices: list[int] = []

    @model_validator(mode="after")
    def _check_mcq(self) -> QuizQuestion:
        if self.type == "mcq":
            if len(self.options) < 2:
                raise ValueError("mcq questions need at least two options")
            if not self.correct_indices:
                raise ValueError("mcq questions need at least one correct index")
            if any(i < 0 or i >= len(self.options) for i in self.correct_indices):
                raise ValueError("correct index out of range")
        return self


class AssignmentCreate(CamelModel):
    title: str = Field(min_length=1, max_length=256)
    type: Literal["task", "quiz"] = "task"
    points: int | None = Field(default=None, ge=0)
    auto_grading: bool = False
    questions: list[QuizQuestion] = []
    course_id: str | None = None


class AssignmentResponse(CamelModel):
    id: str
    title: str
    type: str
    points: int | None = None
    auto_grading: bool
    questions: list[dict[str, Any]]
    course_id: str | None = None


class SubmitRequest(CamelModel):
    answers: Any = None


class SubmitResponse(CamelModel):
    ok: bool = True
    auto_score: float | None = None
    auto_approved: bool
    just_awarded: bool
    awarded_points: int


class ReviewRequest(CamelModel):
    uid: str = Field(min_length=1)
    decision: Literal["approved", "rejected", "needs_correction"]
    awarded_points: int | None = None


class ReviewResponse(CamelModel):
    ok: bool = True
    status: str
    awarded_points: int
    just_awarded: bool


class SubmissionResponse(CamelModel):
    uid: str
    assignment_id: str
    status: str
    awarded_points: int
    auto_score: float | None = None
    answers: Any = None
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    created_at: datetime
