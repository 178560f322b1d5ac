"""Integration tests for the action trigger pipeline."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from creatorcompass.db.models import XPTransaction
from creatorcompass.errors import UnknownActionError
from creatorcompass.gamification.catalog import CHALLENGE_TEMPLATES_BY_ID
from creatorcompass.gamification.challenge_engine import ChallengeEngine
from creatorcompass.gamification.stats_service import get_or_create_stats, get_platform_content
from creatorcompass.gamification.trigger_engine import TriggerEngine


async def _action_ids(db_session, user_id: int) -> list[str]:
    result = await db_session.execute(
        select(XPTransaction.action_id).where(XPTransaction.user_id == user_id).order_by(XPTransaction.id)
    )
    return list(result.scalars())


class TestRecordAction:

    @pytest.mark.asyncio
    async def test_complete_task(self, db_session, user, now):
        outcome = await TriggerEngine(db_session).record_action(user.id, "complete_task", now=now)

        assert outcome.xp.xp_awarded == 50
        assert outcome.achievements_unlocked == ["first-task"]
        assert outcome.badges_unlocked == []
        stats = await get_or_create_stats(db_session, user.id)
        assert stats.tasks_completed == 1

    @pytest.mark.asyncio
    async def test_publish_counts_platform_and_badges(self, db_session, user, now, mock_redis):
        outcome = await TriggerEngine(db_session, mock_redis).record_action(
            user.id, "publish_content", {"platform": "YouTube"}, now=now,
        )

        assert outcome.badges_unlocked == ["first-content"]
        assert "first-publish" in outcome.achievements_unlocked
        assert await get_platform_content(db_session, user.id) == {"youtube": 1}
        channels = [call.args[0] for call in mock_redis.publish.await_args_list]
        assert "pubsub:badge_earned" in channels

    @pytest.mark.asyncio
    async def test_counters_advance_past_xp_cap(self, db_session, user, now):
        engine = TriggerEngine(db_session)
        outcomes = [
            await engine.record_action(user.id, "publish_content", now=now + timedelta(minutes=i))
            for i in range(4)
        ]

        assert [o.xp is None for o in outcomes] == [False, False, False, True]
        stats = await get_or_create_stats(db_session, user.id)
        assert stats.content_published == 4

    @pytest.mark.asyncio
    async def test_login_streak_bonus(self, db_session, user, now):
        engine = TriggerEngine(db_session)
        await engine.record_action(user.id, "daily_login", now=now)
        assert await _action_ids(db_session, user.id) == ["daily_login"]

        await engine.record_action(user.id, "daily_login", now=now + timedelta(days=1))
        assert await _action_ids(db_session, user.id) == ["daily_login", "daily_login", "streak_bonus"]
        stats = await get_or_create_stats(db_session, user.id)
        assert stats.streak_days == 2

    @pytest.mark.asyncio
    async def test_completes_challenge(self, db_session, user, now):
        challenges = ChallengeEngine(
            db_session, templates=[CHALLENGE_TEMPLATES_BY_ID["content-scheduler"]], challenge_count=1,
        )
        [challenge] = await challenges.generate_daily_challenges(user.id, now=now)

        outcome = await TriggerEngine(db_session, challenges=challenges).record_action(
            user.id, "schedule_content", now=now,
        )
        assert outcome.challenges_completed == [challenge.id]

    @pytest.mark.asyncio
    async def test_unknown_action_writes_nothing(self, db_session, user, now):
        with pytest.raises(UnknownActionError):
            await TriggerEngine(db_session).record_action(user.id, "go_viral", now=now)

        count = await db_session.execute(select(func.count(XPTransaction.id)))
        assert count.scalar_one() == 0
