"""Assignment submission and grader review."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

import structlog
from sqlalchemy import and_, not_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mentora.assignments.grading import (
    QUIZ,
    grade,
    normalize_answers,
    points_for,
)
from mentora.db.models import Assignment, Submission
from mentora.errors import Conflict, InvalidInput, NotFound
from mentora.gamification.score_service import grant_score, ledger_entry_exists

logger = structlog.get_logger()

ALREADY_SUBMITTED = "You have already submitted this assignment. Resubmission is not allowed."
DEFAULT_REVIEW_POINTS = 10

ReviewDecision = Literal["approved", "rejected", "needs_correction"]


@dataclass(frozen=True)
class SubmitOutcome:
    auto_score: float | None
    auto_approved: bool
    just_awarded: bool
    awarded_points: int


@dataclass(frozen=True)
class ReviewOutcome:
    status: str
    awarded_points: int
    just_awarded: bool


def award_key(assignment_id: str, user_id: str) -> str:
    return f"submission:{assignment_id}:{user_id}"


async def get_assignment(db: AsyncSession, assignment_id: str) -> Assignment:
    assignment = await db.get(Assignment, assignment_id)
    if assignment is None:
        raise NotFound("Assignment not found")
    return assignment


async def create_assignment(
    db: AsyncSession,
    *,
    title: str,
    assignment_type: str,
    points: int | None,
    auto_grading: bool,
    questions: list[dict[str, Any]],
    course_id: str | None = None,
) -> Assignment:
    if assignment_type == QUIZ and not questions:
        raise InvalidInput("A quiz needs at least one question")
    assignment = Assignment(
        title=title,
        type=assignment_type,
        points=points,
        auto_grading=auto_grading and assignment_type == QUIZ,
        questions=questions if assignment_type == QUIZ else [],
        course_id=course_id,
    )
    db.add(assignment)
    await db.commit()
    logger.info("assignment_created", assignment_id=assignment.id, type=assignment_type)
    return assignment


async def _find_submission(db: AsyncSession, assignment_id: str, user_id: str, *, lock: bool = False) -> Submission | None:
    stmt = select(Submission).where(
        Submission.assignment_id == assignment_id,
        Submission.user_id == user_id,
    ).execution_options(populate_existing=True)
    if lock:
        stmt = stmt.with_for_update()
    return (await db.execute(stmt)).scalar_one_or_none()


async def get_submission(db: AsyncSession, assignment_id: str, user_id: str) -> Submission | None:
    return await _find_submission(db, assignment_id, user_id)


async def list_submissions(db: AsyncSession, assignment_id: str) -> list[Submission]:
    result = await db.execute(
        select(Submission)
        .where(Submission.assignment_id == assignment_id)
        .order_by(Submission.created_at.asc())
    )
    return list(result.scalars())


async def submit_assignment(
    db: AsyncSession,
    assignment_id: str,
    user_id: str,
    raw_answers: Any,
    now: datetime,
) -> SubmitOutcome:
    """Store the user's only submission; auto-approve and award fully-mcq quizzes.

    A second submission for the same (assignment, user) raises Conflict.
    """
    if raw_answers is None or raw_answers == {} or raw_answers == []:
        raise InvalidInput("Missing answers")
    assignment = await get_assignment(db, assignment_id)

    if await _find_submission(db, assignment_id, user_id) is not None:
        raise Conflict(ALREADY_SUBMITTED)

    if assignment.type == QUIZ:
        questions = assignment.questions or []
        answers = normalize_answers(questions, raw_answers)
        result = grade(assignment.type, assignment.auto_grading, questions, answers)
        stored: Any = [a.to_dict() for a in answers]
    else:
        result = grade(assignment.type, assignment.auto_grading, [], [])
        stored = raw_answers

    max_points = max(0, math.floor(assignment.points)) if assignment.points is not None else 0
    awarded = points_for(result, max_points)

    db.add(Submission(
        assignment_id=assignment_id,
        user_id=user_id,
        answers=stored,
        status="approved" if result.auto_approve else "submitted",
        awarded_points=awarded,
        auto_score=result.auto_score,
        created_at=now,
        updated_at=now,
    ))
    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        raise Conflict(ALREADY_SUBMITTED) from e

    just_awarded = False
    if result.auto_approve and awarded > 0:
        just_awarded = await grant_score(
            db,
            user_id,
            awarded,
            source="assignment",
            source_id=assignment_id,
            description=f"Auto-graded: {assignment.title}",
            idempotency_key=award_key(assignment_id, user_id),
            now=now,
        )
    await db.commit()

    logger.info(
        "assignment_submitted",
        assignment_id=assignment_id,
        user_id=user_id,
        auto_score=result.auto_score,
        correct=result.correct_count,
        gradable=result.total_gradable,
        awarded=awarded if just_awarded else 0,
    )
    return SubmitOutcome(
        auto_score=result.auto_score,
        auto_approved=result.auto_approve,
        just_awarded=just_awarded,
        awarded_points=awarded,
    )


def review_points(assignment_points: int | None, requested: int | None) -> int:
    """Requested points (default: the assignment's max) clamped to [0, max]."""
    max_points = assignment_points if assignment_points is not None else DEFAULT_REVIEW_POINTS
    value = requested if requested is not None else max_points
    return max(0, min(max_points, math.floor(value)))


async def review_submission(
    db: AsyncSession,
    assignment_id: str,
    reviewer_uid: str,
    user_id: str,
    decision: ReviewDecision,
    awarded_points: int | None,
    now: datetime,
) -> ReviewOutcome:
    """Record a grader's decision and credit points at most once per submission.

    The approving write only matches a submission that is not already
    approved with points, so two concurrent approvals cannot both credit.
    The ledger idempotency key also blocks re-crediting after a
    reject/re-approve cycle.
    """
    if decision not in ("approved", "rejected", "needs_correction"):
        raise InvalidInput("Invalid decision")
    assignment = await get_assignment(db, assignment_id)
    points = review_points(assignment.points, awarded_points)

    submission = await _find_submission(db, assignment_id, user_id, lock=True)
    if submission is None:
        raise NotFound("Submission not found")

    reviewed = {"reviewed_by": reviewer_uid, "reviewed_at": now, "updated_at": now}
    key = award_key(assignment_id, user_id)
    just_awarded = False

    if decision == "approved" and not await ledger_entry_exists(db, key):
        result = await db.execute(
            update(Submission)
            .where(
                Submission.id == submission.id,
                not_(and_(Submission.status == "approved", Submission.awarded_points > 0)),
            )
            .values(status="approved", awarded_points=points, **reviewed)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1 and points > 0:
            just_awarded = await grant_score(
                db,
                user_id,
                points,
                source="assignment",
                source_id=assignment_id,
                description=f"Reviewed: {assignment.title}",
                idempotency_key=key,
                now=now,
            )
        elif result.rowcount != 1:
            logger.info("submission_already_awarded", assignment_id=assignment_id, user_id=user_id)
            await db.execute(
                update(Submission).where(Submission.id == submission.id).values(**reviewed)
                .execution_options(synchronize_session=False)
            )
    else:
        # Rejections, corrections and re-approvals of an already credited
        # submission change status only; awarded points are never revoked.
        await db.execute(
            update(Submission)
            .where(Submission.id == submission.id)
            .values(status=decision, **reviewed)
            .execution_options(synchronize_session=False)
        )

    await db.commit()
    fresh = await _find_submission(db, assignment_id, user_id)
    logger.info(
        "submission_reviewed",
        assignment_id=assignment_id,
        user_id=user_id,
        reviewer=reviewer_uid,
        decision=decision,
        just_awarded=just_awarded,
        points=points if just_awarded else 0,
    )
    return ReviewOutcome(status=fresh.status, awarded_points=fresh.awarded_points, just_awarded=just_awarded)
