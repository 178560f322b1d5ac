"""XP ledger: capped action awards, running totals and level-up detection."""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from datetime import date, datetime, timedelta
from typing import Any

from sqlalchemy import func, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from creatorcompass.db.models import UserStats, XPActionCooldown, XPDailyCounter, XPTransaction
from creatorcompass.errors import LimitReachedError, PersistenceError, UnknownActionError
from creatorcompass.gamification.catalog import index_by_id
from creatorcompass.gamification.level_thresholds import LEVEL_THRESHOLDS, compute_level, validate_levels
from creatorcompass.gamification.schemas import (
    DailyXPProgress,
    LevelDefinition,
    UserLevel,
    XPAction,
    XPActionAvailability,
    XPAwardResult,
    XPHistoryEntry,
)
from creatorcompass.gamification.stats_service import get_or_create_stats, get_stats
from creatorcompass.gamification.time_utils import as_utc, start_of_day, utcnow
from creatorcompass.gamification.xp_actions import XP_ACTIONS, metadata_multiplier, streak_bonus_fraction
from creatorcompass.redis_client import LEVEL_UP_CHANNEL, publish_event

logger = logging.getLogger(__name__)


class XPLedger:
    """Awards XP for actions and keeps user_stats.total_xp in step with the ledger."""

    def __init__(
        self,
        db: AsyncSession,
        redis: object = None,
        actions: Sequence[XPAction] = XP_ACTIONS,
        levels: Sequence[LevelDefinition] = LEVEL_THRESHOLDS,
    ) -> None:
        validate_levels(levels)
        self.db = db
        self.redis = redis
        self.actions = index_by_id(actions)
        self.levels = tuple(levels)

    def get_action(self, action_id: str) -> XPAction:
        action = self.actions.get(action_id)
        if action is None:
            logger.warning("Unknown XP action: %s", action_id)
            raise UnknownActionError(action_id)
        return action

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def award_xp(
        self,
        user_id: int,
        action_id: str,
        metadata: Mapping[str, Any] | None = None,
        now: datetime | None = None,
    ) -> XPAwardResult | None:
        """Award XP for an action.

        Returns None when the daily cap or the cooldown blocks the award;
        in that case nothing is written.
        """
        action = self.get_action(action_id)
        now = as_utc(now or utcnow())

        stats = await get_or_create_stats(self.db, user_id)
        base_xp = math.floor(action.xp_reward * metadata_multiplier(action, metadata))
        bonus_xp = math.floor(base_xp * streak_bonus_fraction(stats.streak_days))

        try:
            async with self.db.begin_nested():
                if action.daily_limit is not None:
                    await self._reserve_daily_slot(user_id, action, now.date())
                if action.cooldown_minutes is not None:
                    await self._reserve_cooldown(user_id, action, now)
                return await self._append(
                    user_id,
                    action_id=action.id,
                    action_name=action.name,
                    category=action.category,
                    base_xp=base_xp,
                    bonus_xp=bonus_xp,
                    metadata=metadata,
                    now=now,
                )
        except LimitReachedError as exc:
            logger.debug("XP award for %s blocked: %s", user_id, exc)
            return None

    async def grant_xp(
        self,
        user_id: int,
        amount: int,
        source: str,
        metadata: Mapping[str, Any] | None = None,
        now: datetime | None = None,
    ) -> XPAwardResult:
        """Uncapped grant for challenge claims, badge rewards and other internal sources."""
        if amount < 0:
            raise ValueError("XP grants cannot be negative")
        await get_or_create_stats(self.db, user_id)
        return await self._append(
            user_id,
            action_id=source,
            action_name=source.replace("_", " ").replace(":", " ").title(),
            category="reward",
            base_xp=amount,
            bonus_xp=0,
            metadata=metadata,
            now=as_utc(now or utcnow()),
        )

    async def _reserve_daily_slot(self, user_id: int, action: XPAction, day: date) -> None:
        """Take one of today's capped slots or raise LimitReachedError."""
        try:
            async with self.db.begin_nested():
                await self.db.execute(
                    insert(XPDailyCounter).values(user_id=user_id, action_id=action.id, day=day, count=1)
                )
            return
        except IntegrityError:
            pass

        result = await self.db.execute(
            update(XPDailyCounter)
            .where(
                XPDailyCounter.user_id == user_id,
                XPDailyCounter.action_id == action.id,
                XPDailyCounter.day == day,
                XPDailyCounter.count < action.daily_limit,
            )
            .values(count=XPDailyCounter.count + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise LimitReachedError(f"{action.id} daily limit of {action.daily_limit} reached")

    async def _reserve_cooldown(self, user_id: int, action: XPAction, now: datetime) -> None:
        """Push the next allowed time forward or raise LimitReachedError while cooling down."""
        available_at = now + timedelta(minutes=action.cooldown_minutes)
        result = await self.db.execute(
            update(XPActionCooldown)
            .where(
                XPActionCooldown.user_id == user_id,
                XPActionCooldown.action_id == action.id,
                XPActionCooldown.available_at <= now,
            )
            .values(available_at=available_at)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return

        try:
            async with self.db.begin_nested():
                await self.db.execute(
                    insert(XPActionCooldown).values(
                        user_id=user_id, action_id=action.id, available_at=available_at,
                    )
                )
        except IntegrityError:
            raise LimitReachedError(f"{action.id} is cooling down") from None

    async def _append(
        self,
        user_id: int,
        *,
        action_id: str,
        action_name: str,
        category: str,
        base_xp: int,
        bonus_xp: int,
        metadata: Mapping[str, Any] | None,
        now: datetime,
    ) -> XPAwardResult:
        """Add XP to the running total and write the ledger row."""
        xp = base_xp + bonus_xp
        result = await self.db.execute(
            update(UserStats)
            .where(UserStats.user_id == user_id)
            .values(total_xp=UserStats.total_xp + xp, updated_at=now)
            .returning(UserStats.total_xp)
            .execution_options(synchronize_session=False)
        )
        total_xp = result.scalar_one_or_none()
        if total_xp is None:
            raise PersistenceError(f"No stats row for user {user_id}")

        old_level = compute_level(total_xp - xp, self.levels)["level"]
        level_info = compute_level(total_xp, self.levels)
        new_level = level_info["level"]
        if new_level != old_level:
            await self.db.execute(
                update(UserStats)
                .where(UserStats.user_id == user_id)
                .values(level=new_level, level_title=level_info["title"])
                .execution_options(synchronize_session=False)
            )

        self.db.add(XPTransaction(
            user_id=user_id,
            action_id=action_id,
            action_name=action_name,
            category=category,
            base_xp=base_xp,
            bonus_xp=bonus_xp,
            xp_awarded=xp,
            total_xp_after=total_xp,
            tx_metadata=dict(metadata or {}),
            created_at=now,
        ))
        await self.db.flush()

        level_up = new_level > old_level
        if level_up:
            logger.info("User %s reached level %s (%s)", user_id, new_level, level_info["title"])
            await self._emit_level_up(user_id, old_level, new_level, level_info["title"])

        return XPAwardResult(
            action_id=action_id,
            xp_awarded=xp,
            bonus_xp=bonus_xp,
            total_xp=total_xp,
            level_up=level_up,
            new_level=new_level if level_up else None,
        )

    async def _emit_level_up(self, user_id: int, old_level: int, new_level: int, title: str) -> None:
        """Broadcast a level-up event for activity feeds."""
        await publish_event(self.redis, LEVEL_UP_CHANNEL, {
            "user_id": user_id,
            "old_level": old_level,
            "new_level": new_level,
            "title": title,
        })

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_user_level(self, user_id: int) -> UserLevel:
        stats = await get_stats(self.db, user_id)
        total_xp = stats.total_xp if stats is not None else 0
        info = compute_level(total_xp, self.levels)
        return UserLevel(current_xp=total_xp, **info)

    async def _today_counts(self, user_id: int, day: date) -> dict[str, int]:
        result = await self.db.execute(
            select(XPDailyCounter.action_id, XPDailyCounter.count).where(
                XPDailyCounter.user_id == user_id,
                XPDailyCounter.day == day,
            )
        )
        return {row.action_id: row.count for row in result}

    async def _cooldowns(self, user_id: int) -> dict[str, datetime]:
        result = await self.db.execute(
            select(XPActionCooldown.action_id, XPActionCooldown.available_at).where(
                XPActionCooldown.user_id == user_id,
            )
        )
        return {row.action_id: as_utc(row.available_at) for row in result}

    async def get_available_xp_actions(
        self, user_id: int, now: datetime | None = None,
    ) -> list[XPActionAvailability]:
        """Every action with the awards left today.

        remaining is None when uncapped and 0 while a cooldown is running,
        in which case available_at says when the action pays out again.
        """
        now = as_utc(now or utcnow())
        counts = await self._today_counts(user_id, now.date())
        cooldowns = await self._cooldowns(user_id)
        available = []
        for action in self.actions.values():
            remaining = None
            if action.daily_limit is not None:
                remaining = max(action.daily_limit - counts.get(action.id, 0), 0)
            available_at = cooldowns.get(action.id)
            if available_at is not None and available_at > now:
                remaining = 0
            else:
                available_at = None
            available.append(XPActionAvailability(
                id=action.id,
                name=action.name,
                xp_reward=action.xp_reward,
                category=action.category,
                daily_limit=action.daily_limit,
                remaining=remaining,
                available_at=available_at,
            ))
        return available

    async def get_xp_history(
        self,
        user_id: int,
        days: int = 30,
        limit: int = 100,
        now: datetime | None = None,
    ) -> list[XPHistoryEntry]:
        """Ledger rows from the last `days` days, newest first."""
        since = as_utc(now or utcnow()) - timedelta(days=days)
        result = await self.db.execute(
            select(XPTransaction)
            .where(XPTransaction.user_id == user_id, XPTransaction.created_at >= since)
            .order_by(XPTransaction.created_at.desc(), XPTransaction.id.desc())
            .limit(limit)
        )
        return [
            XPHistoryEntry(
                action_id=tx.action_id,
                action_name=tx.action_name,
                xp_awarded=tx.xp_awarded,
                total_xp_after=tx.total_xp_after,
                created_at=tx.created_at,
            )
            for tx in result.scalars()
        ]

    async def get_daily_xp_progress(self, user_id: int, now: datetime | None = None) -> DailyXPProgress:
        now = as_utc(now or utcnow())
        earned = await self.db.execute(
            select(func.coalesce(func.sum(XPTransaction.xp_awarded), 0)).where(
                XPTransaction.user_id == user_id,
                XPTransaction.created_at >= start_of_day(now.date()),
            )
        )
        return DailyXPProgress(
            earned_today=int(earned.scalar_one()),
            available_actions=await self.get_available_xp_actions(user_id, now),
        )
