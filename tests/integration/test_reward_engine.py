"""Integration tests for reward unlocks, progress, tiers and claims."""

from __future__ import annotations

import pytest
from sqlalchemy import update

from creatorcompass.db.models import UserStats
from creatorcompass.errors import RewardNotFoundError
from creatorcompass.gamification.badge_service import award_badge
from creatorcompass.gamification.reward_engine import (
    claim_reward,
    get_reward_progress,
    get_reward_tiers,
    get_user_active_rewards,
    get_user_unlocked_rewards,
)
from creatorcompass.gamification.stats_service import get_or_create_stats
from creatorcompass.gamification.xp_ledger import XPLedger


async def _set_streak(db_session, user_id: int, days: int) -> None:
    await get_or_create_stats(db_session, user_id)
    await db_session.execute(
        update(UserStats).where(UserStats.user_id == user_id).values(streak_days=days)
    )


class TestClaimReward:

    @pytest.mark.asyncio
    async def test_level_gate_and_single_claim(self, db_session, user, now):
        ledger = XPLedger(db_session)
        await ledger.grant_xp(user.id, 3000, "test", now=now)
        assert (await ledger.get_user_level(user.id)).level == 4

        assert await claim_reward(db_session, None, user.id, "collaboration-tools", now=now) is False

        await ledger.grant_xp(user.id, 2000, "test", now=now)
        assert await claim_reward(db_session, None, user.id, "collaboration-tools", now=now) is True
        assert await claim_reward(db_session, None, user.id, "collaboration-tools", now=now) is False

    @pytest.mark.asyncio
    async def test_claim_grants_milestone_xp(self, db_session, user, now):
        ledger = XPLedger(db_session)
        await ledger.grant_xp(user.id, 5000, "test", now=now)

        await claim_reward(db_session, None, user.id, "profile-frames", now=now)

        assert (await ledger.get_user_level(user.id)).current_xp == 5500
        history = await ledger.get_xp_history(user.id, now=now)
        assert history[0].action_id == "complete_milestone"

    @pytest.mark.asyncio
    async def test_unknown_reward(self, db_session, user):
        with pytest.raises(RewardNotFoundError):
            await claim_reward(db_session, None, user.id, "free-lunch")

    @pytest.mark.asyncio
    async def test_badge_criteria(self, db_session, user, now):
        assert await claim_reward(db_session, None, user.id, "chat-emojis", now=now) is False

        await award_badge(db_session, None, user.id, "community-champion", now=now)
        assert await claim_reward(db_session, None, user.id, "chat-emojis", now=now) is True

    @pytest.mark.asyncio
    async def test_unlock_survives_broken_streak(self, db_session, user, now):
        await _set_streak(db_session, user.id, 30)
        unlocked = await get_user_unlocked_rewards(db_session, user.id, now=now)
        assert "pro-discount-20" in [r.reward_id for r in unlocked]

        await _set_streak(db_session, user.id, 0)
        progress = {p.reward.id: p for p in await get_reward_progress(db_session, user.id)}
        assert progress["pro-discount-20"].is_unlocked is True
        assert progress["pro-discount-20"].can_claim is True

        assert await claim_reward(db_session, None, user.id, "pro-discount-20", now=now) is True


class TestRewardQueries:

    @pytest.mark.asyncio
    async def test_unlocked_rewards_at_level_5(self, db_session, user, now):
        await XPLedger(db_session).grant_xp(user.id, 5000, "test", now=now)

        unlocked = await get_user_unlocked_rewards(db_session, user.id, now=now)
        assert [r.reward_id for r in unlocked] == [
            "advanced-analytics", "ai-content-ideas", "collaboration-tools", "profile-frames",
        ]
        assert all(r.claimed_at is None for r in unlocked)

        # Listing again does not duplicate unlock rows
        again = await get_user_unlocked_rewards(db_session, user.id, now=now)
        assert len(again) == 4

    @pytest.mark.asyncio
    async def test_active_rewards_grouped_by_type(self, db_session, user, now):
        await XPLedger(db_session).grant_xp(user.id, 5000, "test", now=now)
        assert await get_user_active_rewards(db_session, user.id) == {}

        await claim_reward(db_session, None, user.id, "collaboration-tools", now=now)
        await claim_reward(db_session, None, user.id, "profile-frames", now=now)

        active = await get_user_active_rewards(db_session, user.id)
        assert set(active) == {"feature", "cosmetic"}
        assert [r.reward_id for r in active["feature"]] == ["collaboration-tools"]
        assert [r.reward_id for r in active["cosmetic"]] == ["profile-frames"]

    @pytest.mark.asyncio
    async def test_progress_percentages(self, db_session, user, now):
        await XPLedger(db_session).grant_xp(user.id, 5000, "test", now=now)

        progress = {p.reward.id: p for p in await get_reward_progress(db_session, user.id)}
        assert progress["premium-templates"].progress == pytest.approx(500 / 6)
        assert progress["premium-templates"].can_claim is False
        assert progress["exclusive-guides"].progress == pytest.approx(50.0)
        assert progress["collaboration-tools"].progress == 100.0
        assert progress["collaboration-tools"].can_claim is True
        assert progress["beta-features"].progress == 0.0

    @pytest.mark.asyncio
    async def test_tiers(self, db_session, user, now):
        await XPLedger(db_session).grant_xp(user.id, 5000, "test", now=now)

        tiers = await get_reward_tiers(db_session, user.id)
        assert [t.tier.tier for t in tiers] == [1, 2, 3, 4]
        assert [t.is_unlocked for t in tiers] == [True, True, False, False]
        assert tiers[0].progress == 100.0
        assert tiers[2].progress == pytest.approx(500 / 6)
        assert {r.reward.id for r in tiers[3].rewards} == {"masterclass-series", "studio-discount-25"}
