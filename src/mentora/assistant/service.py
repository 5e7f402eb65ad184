"""Study assistant: LLM providers with a rule-based fallback."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Literal, TypedDict

import httpx
import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from mentora.config import Settings, get_settings
from mentora.courses.service import list_chapters
from mentora.db.models import Course

logger = structlog.get_logger()

TOGETHER_URL = "https://api.together.xyz/v1/chat/completions"
HF_URL = "https://api-inference.huggingface.co/models/{model}"

CONTEXT_BUDGET = 2000
FALLBACK_CONTEXT_CHARS = 800

SYSTEM_PROMPT = (
    "You are Mentora's study assistant helping students learn. Explain simply and "
    "step by step, give examples and easy analogies, and finish with 2-3 follow-up "
    "questions. When asked for a quiz, write 3-5 short questions with the answer key "
    "kept separate. Keep a warm, supportive, conversational tone."
)

STUDY_TIP = (
    "Tip: study in 25-minute blocks (Pomodoro), note the key points, and try to explain "
    "the idea again in your own words."
)


class ChatMessage(TypedDict):
    role: Literal["system", "user", "assistant"]
    content: str


class BaseLLMProvider(ABC):
    """A chat completion backend. `complete` returns None when it cannot answer."""

    name = "base"

    @abstractmethod
    async def complete(self, messages: list[ChatMessage]) -> str | None:
        ...


class TogetherProvider(BaseLLMProvider):
    name = "together"

    def __init__(self, api_key: str, model: str, max_tokens: int, timeout: float) -> None:
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.timeout = timeout

    async def complete(self, messages: list[ChatMessage]) -> str | None:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    TOGETHER_URL,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json={
                        "model": self.model,
                        "messages": messages,
                        "temperature": 0.7,
                        "top_p": 0.9,
                        "max_tokens": self.max_tokens,
                    },
                )
                response.raise_for_status()
                body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("assistant_provider_failed", provider=self.name, error=str(e))
            return None
        try:
            reply = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            return None
        return reply.strip() if isinstance(reply, str) and reply.strip() else None


class HuggingFaceProvider(BaseLLMProvider):
    """Text-generation endpoint; the conversation is flattened into one prompt."""

    name = "huggingface"

    def __init__(self, token: str, model: str, max_tokens: int, timeout: float) -> None:
        self.token = token
        self.model = model
        self.max_tokens = max_tokens
        self.timeout = timeout

    @staticmethod
    def build_prompt(messages: list[ChatMessage]) -> str:
        system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
        turns = "\n".join(f"{m['role'].upper()}: {m['content']}" for m in messages if m["role"] != "system")
        return f"{system}\n\nConversation:\n{turns}\n\nASSISTANT:"

    async def complete(self, messages: list[ChatMessage]) -> str | None:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    HF_URL.format(model=self.model),
                    headers={"Authorization": f"Bearer {self.token}"},
                    json={
                        "inputs": self.build_prompt(messages),
                        "parameters": {"max_new_tokens": self.max_tokens, "temperature": 0.7, "top_p": 0.9},
                    },
                )
                response.raise_for_status()
                body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("assistant_provider_failed", provider=self.name, error=str(e))
            return None
        text = body[0].get("generated_text") if isinstance(body, list) and body else None
        if text is None and isinstance(body, dict):
            text = body.get("generated_text")
        if not isinstance(text, str):
            return None
        reply = text.split("ASSISTANT:")[-1].strip()
        return reply or None


def build_providers(settings: Settings) -> list[BaseLLMProvider]:
    """Configured providers in preference order (Together first)."""
    providers: list[BaseLLMProvider] = []
    if settings.together_api_key:
        providers.append(TogetherProvider(
            settings.together_api_key,
            settings.together_model,
            settings.assistant_max_tokens,
            settings.assistant_timeout_seconds,
        ))
    if settings.hf_token:
        providers.append(HuggingFaceProvider(
            settings.hf_token,
            settings.hf_model,
            settings.assistant_max_tokens,
            settings.assistant_timeout_seconds,
        ))
    return providers


def get_providers() -> list[BaseLLMProvider]:
    """FastAPI dependency; overridden in tests."""
    return build_providers(get_settings())


_RULES: list[tuple[tuple[str, ...], list[str], bool]] = [
    (
        ("who made", "who built", "founder", "developer", "about mentora", "what is mentora"),
        [
            "Mentora is a learning platform with courses, quizzes, daily streaks and a study assistant.",
            "Is there something specific about Mentora you would like to know?",
        ],
        False,
    ),
    (
        ("summary", "summarize", "summarise", "recap"),
        [
            "Summary:",
            "- Main topic: (write your topic here)",
            "- Core idea: (1-2 simple sentences)",
            "- Example: (a short, relevant example)",
            "\nNext steps:",
            "1) Explain it back to a friend in 3 sentences.",
            "2) Write 2 questions about the part you do not understand yet.",
            "\nCheck your understanding:",
            "- What is the main goal of this material?",
            "- When is this concept used?",
            "- Can you give one more example?",
        ],
        True,
    ),
    (
        ("example", "sample"),
        [
            "Simple examples:",
            "1) (Example A): walk through the steps",
            "2) (Example B): a variation of A",
            "3) (Example C): an everyday case",
            "\nQuick practice:",
            "- Redo example A with different numbers or variables",
            "- How do B and C differ?",
        ],
        True,
    ),
    (
        ("quiz", "practice questions", "test me"),
        [
            "Short quiz (3 questions):",
            "1) [Multiple choice] ...?",
            "2) [True/False] ...?",
            "3) [Short answer] ...?",
            "\nAnswer key:",
            "1) C | 2) True | 3) (short answer)",
        ],
        True,
    ),
    (
        ("step", "how do i", "how to"),
        [
            "Study steps:",
            "1) Understand the definition in 1-2 simple sentences.",
            "2) Look at a basic example, then a variation.",
            "3) Do 3 short exercises.",
            "4) Summarize the key points in your own words.",
            "5) Test yourself with a small quiz.",
        ],
        True,
    ),
]

_DEFAULT_REPLY = [
    "I can explain material, give examples, or write a short quiz.",
    "Try: 'summarize topic X', 'example of Y', or 'quiz on Z'.",
]


def rule_based_reply(latest: str) -> str:
    """Template answer keyed on words in the latest user message."""
    q = latest.lower()
    for keywords, lines, with_tip in _RULES:
        if any(k in q for k in keywords):
            return "\n".join([*lines, f"\n{STUDY_TIP}"] if with_tip else lines)
    return "\n".join([*_DEFAULT_REPLY, f"\n{STUDY_TIP}"])


async def course_context(db: AsyncSession, course_id: str | None) -> str | None:
    """Course title, description and chapter titles, capped to a character budget."""
    if not course_id:
        return None
    course = await db.get(Course, course_id)
    if course is None:
        return None
    parts = [f"# Course: {course.title}"]
    if course.description:
        parts.append(f"Description: {course.description}")
    used = 0
    for chapter in await list_chapters(db, course_id):
        line = f"- {chapter.title or '(untitled)'}"
        used += len(line)
        if used > CONTEXT_BUDGET:
            break
        parts.append(line)
    return "\n".join(parts)


async def answer(
    db: AsyncSession,
    messages: list[ChatMessage],
    course_id: str | None = None,
    providers: list[BaseLLMProvider] | None = None,
) -> tuple[str, str]:
    """Return (reply, source). Never raises for provider failures."""
    context = await course_context(db, course_id)
    full: list[ChatMessage] = [{"role": "system", "content": SYSTEM_PROMPT}]
    if context:
        full.append({"role": "system", "content": f"Lesson context (course material summary):\n{context}"})
    full.extend(messages)

    for provider in providers if providers is not None else get_providers():
        reply = await provider.complete(full)
        if reply:
            logger.info("assistant_replied", provider=provider.name, course_id=course_id)
            return reply, provider.name

    latest = next((m["content"] for m in reversed(messages) if m["role"] == "user"), "")
    reply = rule_based_reply(latest)
    if context:
        reply = f"{reply}\n\nCourse context notes:\n{context[:FALLBACK_CONTEXT_CHARS]}"
    logger.info("assistant_fallback", course_id=course_id)
    return reply, "fallback"
