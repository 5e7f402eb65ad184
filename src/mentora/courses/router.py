"""Course catalog, progress and purchase-request endpoints."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from mentora.auth.dependencies import get_current_user, require_admin
from mentora.courses.access import user_has_course_access
from mentora.courses.schemas import (
    ChapterResponse,
    CourseDetailResponse,
    CourseRequestCreate,
    CourseRequestResponse,
    CourseSummary,
    DecisionRequest,
    ProgressResponse,
    ProgressUpdate,
)
from mentora.courses.service import (
    create_course_request,
    decide_course_request,
    get_course,
    get_progress,
    list_chapters,
    list_course_requests,
    list_courses,
    update_progress,
)
from mentora.db.models import Course, CourseRequest, User
from mentora.dependencies import get_db, get_now

router = APIRouter(prefix="/api/v1", tags=["Courses"])


def _summary(c: Course) -> CourseSummary:
    return CourseSummary(
        id=c.id,
        title=c.title,
        description=c.description,
        mentor=c.mentor,
        image_url=c.image_url,
        access_type=c.access_type,
        is_free=c.is_free,
        price=c.price,
        material_type=c.material_type,
    )


def _request_response(r: CourseRequest) -> CourseRequestResponse:
    return CourseRequestResponse(
        id=r.id,
        uid=r.user_id,
        course_id=r.course_id,
        amount=r.amount,
        proof_url=r.proof_url,
        status=r.status,
        decided_by=r.decided_by,
        decided_at=r.decided_at,
        created_at=r.created_at,
    )


@router.get("/courses", response_model=list[CourseSummary])
async def catalog(db: AsyncSession = Depends(get_db)):
    return [_summary(c) for c in await list_courses(db)]


@router.get("/courses/{course_id}", response_model=CourseDetailResponse)
async def course_detail(
    course_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """Course with chapters and progress; chapters are listed only with access."""
    course = await get_course(db, course_id)
    has_access = user_has_course_access(course, user, now)
    if not has_access:
        return CourseDetailResponse(course=_summary(course), has_access=False)

    chapters = await list_chapters(db, course_id)
    progress = await get_progress(db, user.uid, course_id)
    return CourseDetailResponse(
        course=_summary(course),
        has_access=True,
        chapters=[ChapterResponse(id=ch.id, title=ch.title, type=ch.type, position=ch.position) for ch in chapters],
        completed_chapter_ids=list(progress.completed_chapter_ids) if progress else [],
    )


@router.post("/courses/{course_id}/progress", response_model=ProgressResponse)
async def post_progress(
    course_id: str,
    body: ProgressUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    progress = await update_progress(db, user, course_id, body.chapter_id, body.action, now)
    return ProgressResponse(
        completed_chapter_ids=list(progress.completed_chapter_ids),
        updated_at=progress.updated_at,
    )


@router.post("/courses/{course_id}/requests", response_model=CourseRequestResponse, status_code=201)
async def request_course(
    course_id: str,
    body: CourseRequestCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Submit proof of a manual transfer for a single paid course."""
    req = await create_course_request(db, user, course_id, body.amount, body.proof_url)
    return _request_response(req)


@router.get("/admin/course-requests", response_model=list[CourseRequestResponse])
async def admin_list_course_requests(
    status: str | None = Query(None),
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return [_request_response(r) for r in await list_course_requests(db, status)]


@router.post("/admin/course-requests/{request_id}/decision", response_model=CourseRequestResponse)
async def admin_decide_course_request(
    request_id: str,
    body: DecisionRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    req = await decide_course_request(db, request_id, body.decision, admin.uid, now)
    return _request_response(req)
