"""Integration tests for daily challenges: generation, progress and claims."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import func, select, update

from creatorcompass.db.models import Challenge, UserStats
from creatorcompass.errors import ChallengeNotFoundError
from creatorcompass.gamification.catalog import CHALLENGE_TEMPLATES_BY_ID
from creatorcompass.gamification.challenge_engine import ChallengeEngine
from creatorcompass.gamification.stats_service import get_or_create_stats
from creatorcompass.gamification.xp_ledger import XPLedger


async def _complete(engine: ChallengeEngine, user_id: int, challenge: Challenge, now) -> None:
    completed = await engine.record_progress(user_id, challenge.action_type, amount=challenge.progress_target, now=now)
    assert challenge.id in [c.id for c in completed]


class TestGenerateDailyChallenges:

    @pytest.mark.asyncio
    async def test_generates_configured_count(self, db_session, user, now):
        challenges = await ChallengeEngine(db_session, challenge_count=3).generate_daily_challenges(user.id, now=now)

        assert len(challenges) == 3
        assert {c.status for c in challenges} == {"active"}
        assert {c.progress_current for c in challenges} == {0}
        assert {c.assigned_date for c in challenges} == {now.date()}
        assert {c.difficulty for c in challenges} == {"easy"}

    @pytest.mark.asyncio
    async def test_idempotent_same_day(self, db_session, user, now):
        engine = ChallengeEngine(db_session, challenge_count=3)
        first = await engine.generate_daily_challenges(user.id, now=now)
        second = await engine.generate_daily_challenges(user.id, now=now + timedelta(hours=5))

        assert [c.id for c in first] == [c.id for c in second]
        count = await db_session.execute(select(func.count(Challenge.id)).where(Challenge.user_id == user.id))
        assert count.scalar_one() == 3

    @pytest.mark.asyncio
    async def test_higher_levels_get_harder_slots(self, db_session, user, now):
        await get_or_create_stats(db_session, user.id)
        await db_session.execute(update(UserStats).where(UserStats.user_id == user.id).values(level=5))

        challenges = await ChallengeEngine(db_session, challenge_count=3).generate_daily_challenges(user.id, now=now)
        assert sorted(c.difficulty for c in challenges) == ["easy", "hard", "medium"]

    @pytest.mark.asyncio
    async def test_avoids_yesterdays_template(self, db_session, user, now):
        engine = ChallengeEngine(db_session, challenge_count=1)
        yesterday = await engine.generate_daily_challenges(user.id, now=now - timedelta(days=1))
        today = await engine.generate_daily_challenges(user.id, now=now)

        assert yesterday[0].template_id != today[0].template_id

    @pytest.mark.asyncio
    async def test_rows_copy_template(self, db_session, user, now):
        challenge = (await ChallengeEngine(db_session, challenge_count=1).generate_daily_challenges(user.id, now=now))[0]
        template = CHALLENGE_TEMPLATES_BY_ID[challenge.template_id]

        assert challenge.title == template.title
        assert challenge.progress_target == template.target
        assert challenge.xp_reward == template.xp_reward
        assert challenge.action_type == template.action_type


class TestActiveChallenges:

    @pytest.mark.asyncio
    async def test_only_today(self, db_session, user, now):
        engine = ChallengeEngine(db_session, challenge_count=2)
        old = await engine.generate_daily_challenges(user.id, now=now - timedelta(days=1))
        today = await engine.generate_daily_challenges(user.id, now=now)

        active = await engine.get_active_challenges(user.id, now=now)
        assert [c.id for c in active] == [c.id for c in today]

        # Yesterday's rows are kept for history, untouched
        history = await engine.get_challenge_history(user.id, days=7, now=now)
        assert {c.id for c in history} == {c.id for c in old} | {c.id for c in today}
        assert {c.status for c in history if c.id in {o.id for o in old}} == {"active"}


class TestRecordProgress:

    @pytest.mark.asyncio
    async def test_progress_and_completion(self, db_session, user, now):
        engine = ChallengeEngine(db_session, challenge_count=3)
        challenges = await engine.generate_daily_challenges(user.id, now=now)
        target = next(c for c in challenges if c.progress_target > 1)

        assert await engine.record_progress(user.id, target.action_type, now=now) == []
        progress = await engine.get_challenge_progress(user.id, target.id)
        assert progress.percentage == pytest.approx(100 / target.progress_target)
        assert progress.is_completed is False

        completed = await engine.record_progress(
            user.id, target.action_type, amount=target.progress_target, now=now,
        )
        assert [c.id for c in completed] == [target.id]
        assert completed[0].status == "completed"
        assert completed[0].progress_current == target.progress_target  # capped
        assert completed[0].completed_at is not None

    @pytest.mark.asyncio
    async def test_completion_happens_once(self, db_session, user, now):
        engine = ChallengeEngine(db_session, challenge_count=1)
        challenge = (await engine.generate_daily_challenges(user.id, now=now))[0]
        await _complete(engine, user.id, challenge, now)

        again = await engine.record_progress(user.id, challenge.action_type, amount=5, now=now)
        assert again == []

    @pytest.mark.asyncio
    async def test_unrelated_action_ignored(self, db_session, user, now):
        engine = ChallengeEngine(db_session, challenge_count=1)
        await engine.generate_daily_challenges(user.id, now=now)
        assert await engine.record_progress(user.id, "watch_webinar", amount=100, now=now) == []

    @pytest.mark.asyncio
    async def test_rejects_non_positive_amount(self, db_session, user, now):
        with pytest.raises(ValueError):
            await ChallengeEngine(db_session).record_progress(user.id, "complete_task", amount=0, now=now)

    @pytest.mark.asyncio
    async def test_progress_unknown_challenge(self, db_session, user):
        assert await ChallengeEngine(db_session).get_challenge_progress(user.id, 12345) is None


class TestClaimChallenge:

    @pytest.mark.asyncio
    async def test_active_challenge_not_claimable(self, db_session, user, now):
        engine = ChallengeEngine(db_session, challenge_count=1)
        challenge = (await engine.generate_daily_challenges(user.id, now=now))[0]

        assert await engine.claim_challenge(user.id, challenge.id, now=now) is None
        active = await engine.get_active_challenges(user.id, now=now)
        assert active[0].status == "active"

    @pytest.mark.asyncio
    async def test_claim_once(self, db_session, user, now):
        engine = ChallengeEngine(db_session, challenge_count=1)
        challenge = (await engine.generate_daily_challenges(user.id, now=now))[0]
        await _complete(engine, user.id, challenge, now)

        result = await engine.claim_challenge(user.id, challenge.id, now=now)
        assert result is not None
        assert result.xp_awarded == challenge.xp_reward
        assert result.badges_unlocked == ["challenge-starter"]

        assert await engine.claim_challenge(user.id, challenge.id, now=now) is None

        progress = await engine.get_challenge_progress(user.id, challenge.id)
        assert progress.is_completed is True
        assert progress.claimed_at is not None

        stats = await get_or_create_stats(db_session, user.id)
        assert stats.challenges_completed == 1
        # Challenge XP plus the challenge-starter badge XP
        level = await XPLedger(db_session).get_user_level(user.id)
        assert level.current_xp == challenge.xp_reward + 50

    @pytest.mark.asyncio
    async def test_template_badge_awarded(self, db_session, user, now):
        template = CHALLENGE_TEMPLATES_BY_ID["productivity-burst"]
        engine = ChallengeEngine(db_session, templates=[template], challenge_count=1)
        challenge = (await engine.generate_daily_challenges(user.id, now=now))[0]
        await _complete(engine, user.id, challenge, now)

        result = await engine.claim_challenge(user.id, challenge.id, now=now)
        assert result.badges_unlocked == ["productive-day", "challenge-starter"]

    @pytest.mark.asyncio
    async def test_expired_challenge_not_claimable(self, db_session, user, now):
        engine = ChallengeEngine(db_session, challenge_count=1)
        yesterday = now - timedelta(days=1)
        challenge = (await engine.generate_daily_challenges(user.id, now=yesterday))[0]
        await _complete(engine, user.id, challenge, yesterday)

        assert await engine.claim_challenge(user.id, challenge.id, now=now) is None

    @pytest.mark.asyncio
    async def test_unknown_challenge(self, db_session, user, now):
        with pytest.raises(ChallengeNotFoundError):
            await ChallengeEngine(db_session).claim_challenge(user.id, 999, now=now)

    @pytest.mark.asyncio
    async def test_other_users_challenge(self, db_session, make_user, user, now):
        other = await make_user("Other")
        engine = ChallengeEngine(db_session, challenge_count=1)
        challenge = (await engine.generate_daily_challenges(user.id, now=now))[0]

        with pytest.raises(ChallengeNotFoundError):
            await engine.claim_challenge(other.id, challenge.id, now=now)
