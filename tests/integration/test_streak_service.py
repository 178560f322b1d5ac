"""Integration tests for daily activity streaks."""

from __future__ import annotations

from datetime import timedelta

import pytest

from creatorcompass.gamification.stats_service import get_or_create_stats
from creatorcompass.gamification.streak_service import record_activity


class TestRecordActivity:

    @pytest.mark.asyncio
    async def test_first_activity_starts_streak(self, db_session, user, now):
        assert await record_activity(db_session, user.id, now) == 1

        stats = await get_or_create_stats(db_session, user.id)
        assert stats.streak_days == 1
        assert stats.longest_streak == 1
        assert stats.last_active_date == now.date()

    @pytest.mark.asyncio
    async def test_same_day_is_noop(self, db_session, user, now):
        await record_activity(db_session, user.id, now)
        assert await record_activity(db_session, user.id, now + timedelta(hours=3)) == 1

    @pytest.mark.asyncio
    async def test_consecutive_days_extend(self, db_session, user, now):
        for offset in range(4):
            streak = await record_activity(db_session, user.id, now + timedelta(days=offset))
        assert streak == 4

        stats = await get_or_create_stats(db_session, user.id)
        assert stats.longest_streak == 4

    @pytest.mark.asyncio
    async def test_gap_resets_but_keeps_longest(self, db_session, user, now):
        await record_activity(db_session, user.id, now)
        await record_activity(db_session, user.id, now + timedelta(days=1))
        await record_activity(db_session, user.id, now + timedelta(days=2))

        assert await record_activity(db_session, user.id, now + timedelta(days=5)) == 1
        stats = await get_or_create_stats(db_session, user.id)
        assert stats.streak_days == 1
        assert stats.longest_streak == 3
        assert stats.last_active_date == (now + timedelta(days=5)).date()
