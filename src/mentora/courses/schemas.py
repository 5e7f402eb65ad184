"""Pydantic models for course endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from mentora.schemas import CamelModel


class CourseSummary(CamelModel):
    id: str
    title: str
    description: str
    mentor: str
    image_url: str
    access_type: str | None = None
    is_free: bool
    price: int | None = None
    material_type: str


class ChapterResponse(CamelModel):
    id: str
    title: str
    type: str
    position: int


class CourseDetailResponse(CamelModel):
    course: CourseSummary
    has_access: bool
    chapters: list[ChapterResponse] = []
    completed_chapter_ids: list[str] = []


class ProgressUpdate(CamelModel):
    chapter_id: str = Field(min_length=1)
    action: Literal["add", "remove"]


class ProgressResponse(CamelModel):
    ok: bool = True
    completed_chapter_ids: list[str]
    updated_at: datetime | None = None


class CourseRequestCreate(CamelModel):
    amount: int = Field(ge=0)
    proof_url: str = Field(min_length=1, max_length=2048)


class CourseRequestResponse(CamelModel):
    id: str
    uid: str
    course_id: str
    amount: int
    proof_url: str
    status: str
    decided_by: str | None = None
    decided_at: datetime | None = None
    created_at: datetime


class DecisionRequest(CamelModel):
    decision: Literal["approved", "rejected"]
