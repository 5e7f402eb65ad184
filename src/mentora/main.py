"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from mentora.assignments.router import router as assignments_router
from mentora.assistant.router import router as assistant_router
from mentora.config import get_settings
from mentora.courses.router import router as courses_router
from mentora.database import close_db, init_db
from mentora.gamification.router import router as gamification_router
from mentora.health.router import router as health_router
from mentora.middleware import setup_middleware
from mentora.payments.router import router as payments_router
from mentora.redis_client import close_redis, init_redis
from mentora.subscriptions.router import router as subscriptions_router


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Mentora API",
        description="Backend API for Mentora: courses, quizzes, streaks and subscriptions",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(gamification_router)
    app.include_router(subscriptions_router)
    app.include_router(payments_router)
    app.include_router(courses_router)
    app.include_router(assignments_router)
    app.include_router(assistant_router)

    return app


app = create_app()
