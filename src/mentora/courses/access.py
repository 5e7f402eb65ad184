"""Who may open a course's material."""

from __future__ import annotations

from datetime import datetime

from mentora.auth.service import is_elevated
from mentora.db.models import Course, User


def course_is_free(course: Course) -> bool:
    return bool(course.is_free) or (course.access_type or "").lower() == "free"


def has_subscription_access(course: Course, user: User, now: datetime) -> bool:
    """Subscription courses open to users with a running subscription."""
    if (course.access_type or "").lower() != "subscription" or not user.subscription_active:
        return False
    return user.subscriber_until is None or user.subscriber_until > now


def has_claimed(course: Course, user: User) -> bool:
    return course.id in (user.claimed_courses or [])


def user_has_course_access(course: Course, user: User, now: datetime) -> bool:
    return (
        course_is_free(course)
        or is_elevated(user)
        or has_subscription_access(course, user, now)
        or has_claimed(course, user)
    )
