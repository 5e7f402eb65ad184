"""Course catalog reads, chapter progress and per-course purchase requests."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mentora.courses.access import user_has_course_access
from mentora.db.models import Chapter, Course, CourseProgress, CourseRequest, User
from mentora.errors import Conflict, Forbidden, InvalidInput, NotFound

logger = structlog.get_logger()

ProgressAction = Literal["add", "remove"]
Decision = Literal["approved", "rejected"]


async def list_courses(db: AsyncSession) -> list[Course]:
    result = await db.execute(select(Course).order_by(Course.created_at.desc()))
    return list(result.scalars())


async def get_course(db: AsyncSession, course_id: str) -> Course:
    course = await db.get(Course, course_id)
    if course is None:
        raise NotFound("Course not found")
    return course


async def list_chapters(db: AsyncSession, course_id: str) -> list[Chapter]:
    result = await db.execute(
        select(Chapter)
        .where(Chapter.course_id == course_id)
        .order_by(Chapter.position.asc(), Chapter.created_at.asc())
    )
    return list(result.scalars())


async def get_progress(db: AsyncSession, user_id: str, course_id: str) -> CourseProgress | None:
    result = await db.execute(
        select(CourseProgress)
        .where(CourseProgress.user_id == user_id, CourseProgress.course_id == course_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def update_progress(
    db: AsyncSession,
    user: User,
    course_id: str,
    chapter_id: str,
    action: ProgressAction,
    now: datetime,
) -> CourseProgress:
    """Mark a chapter done (`add`) or not done (`remove`) for a user with access."""
    if action not in ("add", "remove"):
        raise InvalidInput("action must be 'add' or 'remove'")
    course = await get_course(db, course_id)
    chapter = await db.get(Chapter, chapter_id)
    if chapter is None or chapter.course_id != course_id:
        raise NotFound("Chapter not found")
    if not user_has_course_access(course, user, now):
        raise Forbidden("Access denied")

    result = await db.execute(
        select(CourseProgress)
        .where(CourseProgress.user_id == user.uid, CourseProgress.course_id == course_id)
        .with_for_update()
    )
    progress = result.scalar_one_or_none()
    if progress is None:
        progress = CourseProgress(user_id=user.uid, course_id=course_id, completed_chapter_ids=[])
        db.add(progress)

    completed = [c for c in (progress.completed_chapter_ids or []) if isinstance(c, str)]
    if action == "add" and chapter_id not in completed:
        completed.append(chapter_id)
    elif action == "remove":
        completed = [c for c in completed if c != chapter_id]
    progress.completed_chapter_ids = completed
    progress.updated_at = now

    await db.commit()
    logger.info("course_progress_updated", user_id=user.uid, course_id=course_id, chapter_id=chapter_id, action=action)
    return progress


# ---------------------------------------------------------------------------
# Per-course purchase requests
# ---------------------------------------------------------------------------


async def create_course_request(
    db: AsyncSession,
    user: User,
    course_id: str,
    amount: int,
    proof_url: str,
) -> CourseRequest:
    course = await get_course(db, course_id)
    if course.id in (user.claimed_courses or []):
        raise Conflict("Course already claimed")
    if not proof_url.strip():
        raise InvalidInput("proofUrl is required")
    req = CourseRequest(user_id=user.uid, course_id=course_id, amount=amount, proof_url=proof_url.strip(), status="pending")
    db.add(req)
    await db.commit()
    logger.info("course_request_created", user_id=user.uid, course_id=course_id, request_id=req.id)
    return req


async def list_course_requests(db: AsyncSession, status: str | None = None) -> list[CourseRequest]:
    stmt = select(CourseRequest).order_by(CourseRequest.created_at.desc())
    if status:
        stmt = stmt.where(CourseRequest.status == status)
    return list((await db.execute(stmt)).scalars())


async def decide_course_request(
    db: AsyncSession,
    request_id: str,
    decision: Decision,
    admin_uid: str,
    now: datetime,
) -> CourseRequest:
    """Approve (grant the course) or reject a pending request, exactly once."""
    if decision not in ("approved", "rejected"):
        raise InvalidInput("decision must be 'approved' or 'rejected'")

    result = await db.execute(
        update(CourseRequest)
        .where(CourseRequest.id == request_id, CourseRequest.status == "pending")
        .values(status=decision, decided_by=admin_uid, decided_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        existing = await db.get(CourseRequest, request_id)
        if existing is None:
            raise NotFound("Course request not found")
        raise Conflict(f"Request already {existing.status}")

    req = (
        await db.execute(
            select(CourseRequest)
            .where(CourseRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
    ).scalar_one()

    if decision == "approved":
        user = (
            await db.execute(select(User).where(User.uid == req.user_id).with_for_update())
        ).scalar_one_or_none()
        if user is None:
            raise NotFound("User not found")
        claimed = list(user.claimed_courses or [])
        if req.course_id not in claimed:
            claimed.append(req.course_id)
        user.claimed_courses = claimed
        user.updated_at = now

    await db.commit()
    logger.info("course_request_decided", request_id=request_id, decision=decision, admin=admin_uid)
    return req
