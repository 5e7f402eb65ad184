"""Assignment endpoints: authoring, submission and review."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from mentora.assignments.schemas import (
    AssignmentCreate,
    AssignmentResponse,
    ReviewRequest,
    ReviewResponse,
    SubmissionResponse,
    SubmitRequest,
    SubmitResponse,
)
from mentora.assignments.service import (
    create_assignment,
    get_assignment,
    get_submission,
    list_submissions,
    review_submission,
    submit_assignment,
)
from mentora.auth.dependencies import get_current_user, require_grader
from mentora.db.models import Assignment, Submission, User
from mentora.dependencies import get_db, get_now
from mentora.errors import NotFound

router = APIRouter(prefix="/api/v1/assignments", tags=["Assignments"])


def _assignment_response(a: Assignment, *, reveal_answers: bool) -> AssignmentResponse:
    questions = a.questions or []
    if not reveal_answers:
        questions = [{k: v for k, v in q.items() if k != "correctIndices"} for q in questions]
    return AssignmentResponse(
        id=a.id,
        title=a.title,
        type=a.type,
        points=a.points,
        auto_grading=a.auto_grading,
        questions=questions,
        course_id=a.course_id,
    )


def _submission_response(s: Submission) -> SubmissionResponse:
    return SubmissionResponse(
        uid=s.user_id,
        assignment_id=s.assignment_id,
        status=s.status,
        awarded_points=s.awarded_points,
        auto_score=s.auto_score,
        answers=s.answers,
        reviewed_by=s.reviewed_by,
        reviewed_at=s.reviewed_at,
        created_at=s.created_at,
    )


@router.post("", response_model=AssignmentResponse, status_code=201)
async def create(
    body: AssignmentCreate,
    _grader: User = Depends(require_grader),
    db: AsyncSession = Depends(get_db),
):
    assignment = await create_assignment(
        db,
        title=body.title,
        assignment_type=body.type,
        points=body.points,
        auto_grading=body.auto_grading,
        questions=[q.model_dump(by_alias=True) for q in body.questions],
        course_id=body.course_id,
    )
    return _assignment_response(assignment, reveal_answers=True)


@router.get("/{assignment_id}", response_model=AssignmentResponse)
async def read(
    assignment_id: str,
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Assignment with quiz questions; correct answers are withheld."""
    return _assignment_response(await get_assignment(db, assignment_id), reveal_answers=False)


@router.post("/{assignment_id}/submit", response_model=SubmitResponse)
async def submit(
    assignment_id: str,
    body: SubmitRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """Submit answers once. Fully multiple-choice quizzes are graded immediately."""
    outcome = await submit_assignment(db, assignment_id, user.uid, body.answers, now)
    return SubmitResponse(
        auto_score=outcome.auto_score,
        auto_approved=outcome.auto_approved,
        just_awarded=outcome.just_awarded,
        awarded_points=outcome.awarded_points,
    )


@router.get("/{assignment_id}/submission", response_model=SubmissionResponse)
async def my_submission(
    assignment_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    submission = await get_submission(db, assignment_id, user.uid)
    if submission is None:
        raise NotFound("Submission not found")
    return _submission_response(submission)


@router.get("/{assignment_id}/submissions", response_model=list[SubmissionResponse])
async def all_submissions(
    assignment_id: str,
    _grader: User = Depends(require_grader),
    db: AsyncSession = Depends(get_db),
):
    await get_assignment(db, assignment_id)
    return [_submission_response(s) for s in await list_submissions(db, assignment_id)]


@router.post("/{assignment_id}/review", response_model=ReviewResponse)
async def review(
    assignment_id: str,
    body: ReviewRequest,
    grader: User = Depends(require_grader),
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """Grader decision on one user's submission; points are credited at most once."""
    outcome = await review_submission(
        db, assignment_id, grader.uid, body.uid, body.decision, body.awarded_points, now
    )
    return ReviewResponse(
        status=outcome.status,
        awarded_points=outcome.awarded_points,
        just_awarded=outcome.just_awarded,
    )
