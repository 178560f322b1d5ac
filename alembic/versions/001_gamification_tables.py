"""Gamification tables.

Creates users, user_stats, user_platform_stats, xp_transactions,
xp_daily_counters, xp_action_cooldowns, challenges, user_achievements,
user_badges, user_rewards and leaderboard_snapshots.

Revision ID: 001_gamification_tables
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_gamification_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Users ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id BIGSERIAL PRIMARY KEY,
            display_name VARCHAR(64),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- User Stats (denormalized) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_stats (
            user_id BIGINT PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
            total_xp BIGINT NOT NULL DEFAULT 0,
            level INTEGER NOT NULL DEFAULT 1,
            level_title VARCHAR(64) NOT NULL DEFAULT 'Aspiring Creator',
            display_title VARCHAR(64),
            streak_days INTEGER NOT NULL DEFAULT 0,
            longest_streak INTEGER NOT NULL DEFAULT 0,
            last_active_date DATE,
            tasks_completed INTEGER NOT NULL DEFAULT 0,
            content_published INTEGER NOT NULL DEFAULT 0,
            templates_created INTEGER NOT NULL DEFAULT 0,
            ai_interactions INTEGER NOT NULL DEFAULT 0,
            creators_helped INTEGER NOT NULL DEFAULT 0,
            challenges_completed INTEGER NOT NULL DEFAULT 0,
            updated_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_user_stats_total_xp
        ON user_stats(total_xp DESC)
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS user_platform_stats (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            platform VARCHAR(32) NOT NULL,
            content_published INTEGER NOT NULL DEFAULT 0,
            CONSTRAINT uq_user_platform_stats_user_platform UNIQUE(user_id, platform)
        )
    """)

    # --- XP ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS xp_transactions (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            action_id VARCHAR(64) NOT NULL,
            action_name VARCHAR(128) NOT NULL,
            category VARCHAR(32) NOT NULL,
            base_xp INTEGER NOT NULL,
            bonus_xp INTEGER NOT NULL DEFAULT 0,
            xp_awarded INTEGER NOT NULL,
            total_xp_after BIGINT NOT NULL,
            metadata JSONB NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_xp_transactions_user_created
        ON xp_transactions(user_id, created_at)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_xp_transactions_created
        ON xp_transactions(created_at)
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS xp_daily_counters (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            action_id VARCHAR(64) NOT NULL,
            day DATE NOT NULL,
            count INTEGER NOT NULL DEFAULT 0,
            CONSTRAINT uq_xp_daily_counters_user_action_day UNIQUE(user_id, action_id, day)
        )
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS xp_action_cooldowns (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            action_id VARCHAR(64) NOT NULL,
            available_at TIMESTAMPTZ NOT NULL,
            CONSTRAINT uq_xp_action_cooldowns_user_action UNIQUE(user_id, action_id)
        )
    """)

    # --- Challenges ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS challenges (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            template_id VARCHAR(64) NOT NULL,
            title VARCHAR(128) NOT NULL,
            description TEXT NOT NULL,
            category VARCHAR(32) NOT NULL,
            difficulty VARCHAR(16) NOT NULL,
            action_type VARCHAR(64) NOT NULL,
            assigned_date DATE NOT NULL,
            progress_current INTEGER NOT NULL DEFAULT 0,
            progress_target INTEGER NOT NULL,
            xp_reward INTEGER NOT NULL,
            badge_reward VARCHAR(64),
            status VARCHAR(16) NOT NULL DEFAULT 'active',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            completed_at TIMESTAMPTZ,
            claimed_at TIMESTAMPTZ,
            CONSTRAINT uq_challenges_user_date_template UNIQUE(user_id, assigned_date, template_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_challenges_user_date
        ON challenges(user_id, assigned_date)
    """)

    # --- Achievements & Badges ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_achievements (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            achievement_id VARCHAR(64) NOT NULL,
            points INTEGER NOT NULL DEFAULT 0,
            unlocked_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_user_achievements_user_achievement UNIQUE(user_id, achievement_id)
        )
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS user_badges (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            badge_id VARCHAR(64) NOT NULL,
            earned_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            metadata JSONB NOT NULL DEFAULT '{}',
            CONSTRAINT uq_user_badges_user_badge UNIQUE(user_id, badge_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_user_badges_earned
        ON user_badges(earned_at)
    """)

    # --- Rewards ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_rewards (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            reward_id VARCHAR(64) NOT NULL,
            unlocked_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            claimed_at TIMESTAMPTZ,
            CONSTRAINT uq_user_rewards_user_reward UNIQUE(user_id, reward_id)
        )
    """)

    # --- Leaderboard snapshots ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS leaderboard_snapshots (
            id BIGSERIAL PRIMARY KEY,
            board_type VARCHAR(16) NOT NULL,
            timeframe VARCHAR(16) NOT NULL,
            period_key VARCHAR(16) NOT NULL,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            rank INTEGER NOT NULL,
            score DOUBLE PRECISION NOT NULL,
            snapshot_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_lb_snapshots_board_period_user UNIQUE(board_type, timeframe, period_key, user_id)
        )
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS leaderboard_snapshots CASCADE")
    op.execute("DROP TABLE IF EXISTS user_rewards CASCADE")
    op.execute("DROP TABLE IF EXISTS user_badges CASCADE")
    op.execute("DROP TABLE IF EXISTS user_achievements CASCADE")
    op.execute("DROP TABLE IF EXISTS challenges CASCADE")
    op.execute("DROP TABLE IF EXISTS xp_action_cooldowns CASCADE")
    op.execute("DROP TABLE IF EXISTS xp_daily_counters CASCADE")
    op.execute("DROP TABLE IF EXISTS xp_transactions CASCADE")
    op.execute("DROP TABLE IF EXISTS user_platform_stats CASCADE")
    op.execute("DROP TABLE IF EXISTS user_stats CASCADE")
    op.execute("DROP TABLE IF EXISTS users CASCADE")
