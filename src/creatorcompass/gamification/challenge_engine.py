"""Daily challenges: generation, progress, completion and claim."""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from datetime import date, datetime, timedelta

from sqlalchemy import case, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from creatorcompass.config import get_settings
from creatorcompass.db.models import Challenge
from creatorcompass.errors import ChallengeNotFoundError, InvalidStateError
from creatorcompass.gamification.badge_service import award_badge, check_badges
from creatorcompass.gamification.catalog import CHALLENGE_TEMPLATES
from creatorcompass.gamification.schemas import ChallengeProgress, ChallengeTemplate, ClaimChallengeResult
from creatorcompass.gamification.stats_service import get_or_create_stats, increment_counters
from creatorcompass.gamification.time_utils import as_utc, utcnow
from creatorcompass.gamification.xp_ledger import XPLedger

logger = logging.getLogger(__name__)

# Minimum level that unlocks a slot of each difficulty
DIFFICULTY_UNLOCK_LEVEL = {"easy": 1, "medium": 2, "hard": 5}


def plan_slots(level: int, count: int) -> list[str]:
    """Difficulty of each challenge slot for a user at `level`.

    One easy slot always, one medium from level 2, one hard from level 5,
    then filled up to count with medium (or easy below level 2).
    """
    slots = [d for d in ("easy", "medium", "hard") if level >= DIFFICULTY_UNLOCK_LEVEL[d]]
    filler = "medium" if level >= DIFFICULTY_UNLOCK_LEVEL["medium"] else "easy"
    while len(slots) < count:
        slots.append(filler)
    return slots[:count]


def select_templates(
    templates: Sequence[ChallengeTemplate],
    slots: Sequence[str],
    seed: str,
    avoid: set[str] | frozenset[str] = frozenset(),
) -> list[ChallengeTemplate]:
    """Pick distinct templates for each slot, skipping `avoid` while the pool allows.

    Deterministic for a given seed, so concurrent generators agree.
    """
    rng = random.Random(seed)
    chosen: list[ChallengeTemplate] = []
    taken: set[str] = set()

    for difficulty in slots:
        pool = [t for t in templates if t.difficulty == difficulty and t.id not in taken]
        if not pool:
            pool = [t for t in templates if t.id not in taken]
        if not pool:
            break
        fresh = [t for t in pool if t.id not in avoid]
        pick = rng.choice(fresh or pool)
        chosen.append(pick)
        taken.add(pick.id)

    return chosen


class ChallengeEngine:
    """Assigns daily challenges and drives them through active, completed, claimed."""

    def __init__(
        self,
        db: AsyncSession,
        redis: object = None,
        templates: Sequence[ChallengeTemplate] = CHALLENGE_TEMPLATES,
        challenge_count: int | None = None,
    ) -> None:
        self.db = db
        self.redis = redis
        self.templates = tuple(templates)
        self.challenge_count = (
            challenge_count if challenge_count is not None else get_settings().daily_challenge_count
        )

    async def _challenges_on(self, user_id: int, day: date) -> list[Challenge]:
        result = await self.db.execute(
            select(Challenge)
            .where(Challenge.user_id == user_id, Challenge.assigned_date == day)
            .order_by(Challenge.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars())

    async def get_active_challenges(self, user_id: int, now: datetime | None = None) -> list[Challenge]:
        """Today's challenges in any status. Earlier days count as expired."""
        return await self._challenges_on(user_id, as_utc(now or utcnow()).date())

    async def generate_daily_challenges(self, user_id: int, now: datetime | None = None) -> list[Challenge]:
        """Assign today's challenges once; later calls return the same rows."""
        now = as_utc(now or utcnow())
        today = now.date()

        existing = await self._challenges_on(user_id, today)
        if existing:
            return existing

        stats = await get_or_create_stats(self.db, user_id)
        yesterday = {c.template_id for c in await self._challenges_on(user_id, today - timedelta(days=1))}
        templates = select_templates(
            self.templates,
            plan_slots(stats.level, self.challenge_count),
            seed=f"{user_id}:{today.isoformat()}",
            avoid=yesterday,
        )

        for template in templates:
            try:
                async with self.db.begin_nested():
                    await self.db.execute(
                        insert(Challenge).values(
                            user_id=user_id,
                            template_id=template.id,
                            title=template.title,
                            description=template.description,
                            category=template.category,
                            difficulty=template.difficulty,
                            action_type=template.action_type,
                            assigned_date=today,
                            progress_current=0,
                            progress_target=template.target,
                            xp_reward=template.xp_reward,
                            badge_reward=template.badge_reward,
                            status="active",
                            created_at=now,
                        )
                    )
            except IntegrityError:
                # A concurrent generator already assigned this template
                logger.debug("Challenge %s already assigned to %s on %s", template.id, user_id, today)

        logger.info("Generated %d challenges for user %s", len(templates), user_id)
        return await self._challenges_on(user_id, today)

    async def record_progress(
        self,
        user_id: int,
        action_type: str,
        amount: int = 1,
        now: datetime | None = None,
    ) -> list[Challenge]:
        """Advance today's active challenges for action_type.

        Returns the challenges this call moved to completed.
        """
        if amount <= 0:
            raise ValueError("Progress amount must be positive")
        now = as_utc(now or utcnow())
        matching = (
            Challenge.user_id == user_id,
            Challenge.assigned_date == now.date(),
            Challenge.action_type == action_type,
            Challenge.status == "active",
        )

        await self.db.execute(
            update(Challenge)
            .where(*matching)
            .values(progress_current=case(
                (Challenge.progress_current + amount >= Challenge.progress_target, Challenge.progress_target),
                else_=Challenge.progress_current + amount,
            ))
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(
            update(Challenge)
            .where(*matching, Challenge.progress_current >= Challenge.progress_target)
            .values(status="completed", completed_at=now)
            .returning(Challenge.id)
            .execution_options(synchronize_session=False)
        )
        completed_ids = list(result.scalars())
        if not completed_ids:
            return []

        logger.info("User %s completed challenges %s", user_id, completed_ids)
        rows = await self.db.execute(
            select(Challenge)
            .where(Challenge.id.in_(completed_ids))
            .order_by(Challenge.id)
            .execution_options(populate_existing=True)
        )
        return list(rows.scalars())

    async def _get(self, user_id: int, challenge_id: int) -> Challenge | None:
        result = await self.db.execute(
            select(Challenge)
            .where(Challenge.id == challenge_id, Challenge.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_challenge_progress(self, user_id: int, challenge_id: int) -> ChallengeProgress | None:
        challenge = await self._get(user_id, challenge_id)
        if challenge is None:
            return None
        target = challenge.progress_target
        percentage = 100.0 if target <= 0 else min(100.0, challenge.progress_current / target * 100)
        return ChallengeProgress(
            challenge_id=challenge.id,
            percentage=percentage,
            is_completed=challenge.status in ("completed", "claimed"),
            completed_at=challenge.completed_at,
            claimed_at=challenge.claimed_at,
        )

    async def claim_challenge(
        self,
        user_id: int,
        challenge_id: int,
        now: datetime | None = None,
    ) -> ClaimChallengeResult | None:
        """Claim a completed challenge from today.

        Returns None when the challenge is not claimable (still active,
        already claimed, or expired). Raises ChallengeNotFoundError for an
        id the user does not own.
        """
        now = as_utc(now or utcnow())
        challenge = await self._get(user_id, challenge_id)
        if challenge is None:
            raise ChallengeNotFoundError(challenge_id)

        try:
            await self._mark_claimed(challenge, now)
        except InvalidStateError as exc:
            logger.debug("Claim rejected for user %s: %s", user_id, exc)
            return None

        ledger = XPLedger(self.db, self.redis)
        await ledger.grant_xp(
            user_id, challenge.xp_reward, f"challenge:{challenge.template_id}",
            metadata={"challenge_id": challenge.id}, now=now,
        )
        await increment_counters(self.db, user_id, now=now, challenges_completed=1)

        badges: list[str] = []
        if challenge.badge_reward and await award_badge(
            self.db, self.redis, user_id, challenge.badge_reward,
            metadata={"challenge_id": challenge.id}, now=now,
        ):
            badges.append(challenge.badge_reward)
        badges += await check_badges(self.db, self.redis, user_id, now=now)

        return ClaimChallengeResult(xp_awarded=challenge.xp_reward, badges_unlocked=badges)

    async def _mark_claimed(self, challenge: Challenge, now: datetime) -> None:
        """completed -> claimed, only for today's rows. Raises InvalidStateError otherwise."""
        result = await self.db.execute(
            update(Challenge)
            .where(
                Challenge.id == challenge.id,
                Challenge.status == "completed",
                Challenge.assigned_date == now.date(),
            )
            .values(status="claimed", claimed_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidStateError(f"Challenge {challenge.id} is {challenge.status}, not claimable")

    async def get_challenge_history(
        self,
        user_id: int,
        days: int = 7,
        now: datetime | None = None,
    ) -> list[Challenge]:
        """Challenges assigned in the last `days` days, newest first."""
        since = as_utc(now or utcnow()).date() - timedelta(days=days)
        result = await self.db.execute(
            select(Challenge)
            .where(Challenge.user_id == user_id, Challenge.assigned_date >= since)
            .order_by(Challenge.assigned_date.desc(), Challenge.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars())
