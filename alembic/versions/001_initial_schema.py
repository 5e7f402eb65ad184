"""Initial Mentora schema.

Creates users, billing (subscriptions, payments, subscription_requests),
courses (courses, chapters, course_progress, course_requests), assignments
(assignments, submissions), score_ledger and leaderboard season tables.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Users ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            uid VARCHAR(128) PRIMARY KEY,
            email VARCHAR(320),
            display_name VARCHAR(128),
            role VARCHAR(32),
            roles JSONB NOT NULL DEFAULT '[]',
            streak_count INTEGER NOT NULL DEFAULT 0,
            longest_streak INTEGER NOT NULL DEFAULT 0,
            last_claim_at TIMESTAMPTZ,
            total_score INTEGER NOT NULL DEFAULT 0,
            seasonal_score INTEGER NOT NULL DEFAULT 0,
            total_claims INTEGER NOT NULL DEFAULT 0,
            subscription_active BOOLEAN NOT NULL DEFAULT false,
            subscriber_until TIMESTAMPTZ,
            claimed_courses JSONB NOT NULL DEFAULT '[]',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_users_total_score
        ON users(total_score DESC, created_at)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_users_seasonal_score
        ON users(seasonal_score DESC, created_at)
    """)

    # --- Billing ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS subscriptions (
            user_id VARCHAR(128) PRIMARY KEY REFERENCES users(uid) ON DELETE CASCADE,
            plan_id VARCHAR(64) NOT NULL,
            price INTEGER NOT NULL DEFAULT 0,
            status VARCHAR(32) NOT NULL DEFAULT 'pending',
            method VARCHAR(32),
            current_period_start TIMESTAMPTZ,
            current_period_end TIMESTAMPTZ,
            last_payment_at TIMESTAMPTZ,
            order_id VARCHAR(128),
            request_id VARCHAR(64),
            updated_at TIMESTAMPTZ,
            CHECK (status <> 'active' OR current_period_end > current_period_start)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_subscriptions_active_end
        ON subscriptions(current_period_end)
        WHERE status = 'active'
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS payments (
            order_id VARCHAR(128) PRIMARY KEY,
            user_id VARCHAR(128) REFERENCES users(uid) ON DELETE SET NULL,
            amount INTEGER NOT NULL DEFAULT 0,
            status VARCHAR(32) NOT NULL DEFAULT 'pending',
            payment_type VARCHAR(64),
            fraud_status VARCHAR(32),
            raw JSONB,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS subscription_requests (
            id VARCHAR(64) PRIMARY KEY,
            user_id VARCHAR(128) NOT NULL REFERENCES users(uid) ON DELETE CASCADE,
            amount INTEGER NOT NULL DEFAULT 0,
            proof_url TEXT NOT NULL,
            note TEXT,
            status VARCHAR(16) NOT NULL DEFAULT 'pending',
            decided_by VARCHAR(128),
            decided_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_subscription_requests_status
        ON subscription_requests(status, created_at DESC)
    """)

    # --- Courses ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS courses (
            id VARCHAR(64) PRIMARY KEY,
            title VARCHAR(256) NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            mentor VARCHAR(128) NOT NULL DEFAULT '',
            image_url TEXT NOT NULL DEFAULT '',
            access_type VARCHAR(32),
            is_free BOOLEAN NOT NULL DEFAULT false,
            price INTEGER,
            material_type VARCHAR(32) NOT NULL DEFAULT '',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS chapters (
            id VARCHAR(64) PRIMARY KEY,
            course_id VARCHAR(64) NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
            title VARCHAR(256) NOT NULL,
            type VARCHAR(32) NOT NULL DEFAULT 'module',
            position INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_chapters_course
        ON chapters(course_id, position)
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS course_progress (
            user_id VARCHAR(128) NOT NULL REFERENCES users(uid) ON DELETE CASCADE,
            course_id VARCHAR(64) NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
            completed_chapter_ids JSONB NOT NULL DEFAULT '[]',
            updated_at TIMESTAMPTZ,
            PRIMARY KEY (user_id, course_id)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS course_requests (
            id VARCHAR(64) PRIMARY KEY,
            user_id VARCHAR(128) NOT NULL REFERENCES users(uid) ON DELETE CASCADE,
            course_id VARCHAR(64) NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
            amount INTEGER NOT NULL DEFAULT 0,
            proof_url TEXT NOT NULL,
            status VARCHAR(16) NOT NULL DEFAULT 'pending',
            decided_by VARCHAR(128),
            decided_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ
        )
    """)

    # --- Assignments ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS assignments (
            id VARCHAR(64) PRIMARY KEY,
            course_id VARCHAR(64) REFERENCES courses(id) ON DELETE SET NULL,
            title VARCHAR(256) NOT NULL,
            type VARCHAR(16) NOT NULL DEFAULT 'task',
            points INTEGER,
            auto_grading BOOLEAN NOT NULL DEFAULT false,
            questions JSONB NOT NULL DEFAULT '[]',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS submissions (
            id BIGSERIAL PRIMARY KEY,
            assignment_id VARCHAR(64) NOT NULL REFERENCES assignments(id) ON DELETE CASCADE,
            user_id VARCHAR(128) NOT NULL REFERENCES users(uid) ON DELETE CASCADE,
            answers JSONB,
            status VARCHAR(24) NOT NULL DEFAULT 'submitted',
            awarded_points INTEGER NOT NULL DEFAULT 0,
            auto_score DOUBLE PRECISION,
            reviewed_by VARCHAR(128),
            reviewed_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ,
            CONSTRAINT submissions_assignment_id_user_id_key UNIQUE (assignment_id, user_id)
        )
    """)

    # --- Score ledger ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS score_ledger (
            id BIGSERIAL PRIMARY KEY,
            user_id VARCHAR(128) NOT NULL REFERENCES users(uid) ON DELETE CASCADE,
            amount INTEGER NOT NULL,
            source VARCHAR(32) NOT NULL,
            source_id VARCHAR(128),
            description VARCHAR(256),
            idempotency_key VARCHAR(256) UNIQUE NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_score_ledger_user
        ON score_ledger(user_id, created_at DESC)
    """)

    # --- Leaderboard seasons ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS leaderboard_meta (
            key VARCHAR(32) PRIMARY KEY,
            current_period VARCHAR(7) NOT NULL,
            updated_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS leaderboard_rewards (
            id BIGSERIAL PRIMARY KEY,
            user_id VARCHAR(128) NOT NULL REFERENCES users(uid) ON DELETE CASCADE,
            period VARCHAR(7) NOT NULL,
            rank INTEGER NOT NULL,
            score INTEGER NOT NULL,
            status VARCHAR(16) NOT NULL DEFAULT 'pending',
            subscription_months INTEGER NOT NULL DEFAULT 1,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT leaderboard_rewards_period_user_id_key UNIQUE (period, user_id)
        )
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS leaderboard_rewards CASCADE")
    op.execute("DROP TABLE IF EXISTS leaderboard_meta CASCADE")
    op.execute("DROP TABLE IF EXISTS score_ledger CASCADE")
    op.execute("DROP TABLE IF EXISTS submissions CASCADE")
    op.execute("DROP TABLE IF EXISTS assignments CASCADE")
    op.execute("DROP TABLE IF EXISTS course_requests CASCADE")
    op.execute("DROP TABLE IF EXISTS course_progress CASCADE")
    op.execute("DROP TABLE IF EXISTS chapters CASCADE")
    op.execute("DROP TABLE IF EXISTS courses CASCADE")
    op.execute("DROP TABLE IF EXISTS subscription_requests CASCADE")
    op.execute("DROP TABLE IF EXISTS payments CASCADE")
    op.execute("DROP TABLE IF EXISTS subscriptions CASCADE")
    op.execute("DROP TABLE IF EXISTS users CASCADE")
