"""Pydantic models for the study assistant."""

from __future__ import annotations

from typing import Literal

from pydantic import Field

from mentora.schemas import CamelModel


class Message(CamelModel):
    role: Literal["system", "user", "assistant"]
    content: str = Field(max_length=8000)


class ChatRequest(CamelModel):
    messages: list[Message] = Field(min_length=1, max_length=50)
    course_id: str | None = None


class ChatResponse(CamelModel):
    reply: str
    source: str
