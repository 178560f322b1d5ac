"""Trigger engine: fans a creator action out to XP, counters, challenges and unlocks."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from creatorcompass.gamification.achievement_service import check_achievements
from creatorcompass.gamification.badge_service import check_badges, get_earned_badge_ids
from creatorcompass.gamification.catalog import BADGES
from creatorcompass.gamification.challenge_engine import ChallengeEngine
from creatorcompass.gamification.schemas import ActionOutcome
from creatorcompass.gamification.stats_service import increment_counters, increment_platform_content
from creatorcompass.gamification.streak_service import record_activity
from creatorcompass.gamification.time_utils import as_utc, utcnow
from creatorcompass.gamification.xp_ledger import XPLedger
from creatorcompass.logging_config import bind_user_context

logger = logging.getLogger(__name__)

# XP action -> user_stats counter it bumps
ACTION_COUNTERS: dict[str, str] = {
    "complete_task": "tasks_completed",
    "publish_content": "content_published",
    "create_template": "templates_created",
    "ai_interaction": "ai_interactions",
    "help_creator": "creators_helped",
}


class TriggerEngine:
    """Evaluates every gamification consequence of one creator action."""

    def __init__(
        self,
        db: AsyncSession,
        redis: object = None,
        ledger: XPLedger | None = None,
        challenges: ChallengeEngine | None = None,
    ) -> None:
        self.db = db
        self.redis = redis
        self.ledger = ledger or XPLedger(db, redis)
        self.challenges = challenges or ChallengeEngine(db, redis)

    async def record_action(
        self,
        user_id: int,
        action_id: str,
        metadata: Mapping[str, Any] | None = None,
        now: datetime | None = None,
    ) -> ActionOutcome:
        """Record an action and return everything it earned.

        Counters and challenge progress advance even when the XP award is
        capped; the cap limits XP only. Raises UnknownActionError first.
        """
        bind_user_context(user_id)
        self.ledger.get_action(action_id)
        now = as_utc(now or utcnow())
        metadata = metadata or {}
        badges_before = await get_earned_badge_ids(self.db, user_id)

        streak = None
        if action_id == "daily_login":
            streak = await record_activity(self.db, user_id, now)

        xp = await self.ledger.award_xp(user_id, action_id, metadata, now=now)
        if streak is not None and streak > 1:
            await self.ledger.award_xp(user_id, "streak_bonus", {"streak_days": streak}, now=now)

        await self._update_counters(user_id, action_id, metadata, now)
        completed = await self.challenges.record_progress(user_id, action_id, now=now)

        await check_badges(self.db, self.redis, user_id, now=now)
        achievements = await check_achievements(self.db, self.redis, user_id, now=now)

        badges_after = await get_earned_badge_ids(self.db, user_id)
        new_badges = [b.id for b in BADGES if b.id in badges_after - badges_before]

        if new_badges or achievements or completed:
            logger.info(
                "Action %s by %s: challenges=%s badges=%s achievements=%s",
                action_id, user_id, [c.id for c in completed], new_badges, achievements,
            )

        return ActionOutcome(
            action_id=action_id,
            xp=xp,
            challenges_completed=[c.id for c in completed],
            badges_unlocked=new_badges,
            achievements_unlocked=achievements,
        )

    async def _update_counters(
        self, user_id: int, action_id: str, metadata: Mapping[str, Any], now: datetime,
    ) -> None:
        """Update denormalized counters on user_stats."""
        counter = ACTION_COUNTERS.get(action_id)
        if counter is None:
            return
        await increment_counters(self.db, user_id, now=now, **{counter: 1})

        platform = metadata.get("platform")
        if action_id == "publish_content" and platform:
            await increment_platform_content(self.db, user_id, str(platform))
