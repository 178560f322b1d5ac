"""Achievements: requirement evaluation and one-time unlocks."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from creatorcompass.db.models import UserAchievement, UserStats
from creatorcompass.gamification.badge_service import award_badge
from creatorcompass.gamification.catalog import ACHIEVEMENTS, ACHIEVEMENTS_BY_ID
from creatorcompass.gamification.schemas import (
    AchievementDefinition,
    AchievementProgressEntry,
    UserAchievementResponse,
)
from creatorcompass.gamification.stats_service import get_or_create_stats, get_platform_content, requirement_value
from creatorcompass.gamification.time_utils import as_utc, utcnow

logger = logging.getLogger(__name__)


def get_achievements(include_hidden: bool = False) -> list[AchievementDefinition]:
    """Catalog entries; hidden ones only on request."""
    return [a for a in ACHIEVEMENTS if include_hidden or not a.hidden]


async def get_unlocked_achievement_ids(db: AsyncSession, user_id: int) -> set[str]:
    result = await db.execute(
        select(UserAchievement.achievement_id).where(UserAchievement.user_id == user_id)
    )
    return set(result.scalars())


async def get_user_achievements(db: AsyncSession, user_id: int) -> list[UserAchievementResponse]:
    """Unlocked achievements, newest first."""
    result = await db.execute(
        select(UserAchievement)
        .where(UserAchievement.user_id == user_id)
        .order_by(UserAchievement.unlocked_at.desc(), UserAchievement.id.desc())
    )
    unlocked = []
    for row in result.scalars():
        definition = ACHIEVEMENTS_BY_ID.get(row.achievement_id)
        unlocked.append(UserAchievementResponse(
            achievement_id=row.achievement_id,
            title=definition.title if definition else row.achievement_id,
            points=row.points,
            unlocked_at=row.unlocked_at,
        ))
    return unlocked


async def get_achievement_progress(db: AsyncSession, user_id: int) -> list[AchievementProgressEntry]:
    """Progress toward every visible achievement.

    Hidden achievements are listed once unlocked. Percentage is clamped to 0..100.
    """
    stats = await get_or_create_stats(db, user_id)
    platform_content = await get_platform_content(db, user_id)
    unlocked = await get_unlocked_achievement_ids(db, user_id)

    entries = []
    for achievement in ACHIEVEMENTS:
        is_unlocked = achievement.id in unlocked
        if achievement.hidden and not is_unlocked:
            continue
        req = achievement.requirement
        current = requirement_value(stats, req.type, req.platform, platform_content)
        percentage = 100.0 if req.value <= 0 else min(100.0, max(0.0, current / req.value * 100))
        entries.append(AchievementProgressEntry(
            achievement_id=achievement.id,
            current=current,
            target=req.value,
            percentage=percentage,
            unlocked=is_unlocked,
        ))
    return entries


async def check_achievements(
    db: AsyncSession,
    redis: object,
    user_id: int,
    now: datetime | None = None,
) -> list[str]:
    """Unlock every achievement whose requirement is met.

    Each unlock is an insert guarded by UNIQUE(user_id, achievement_id), so
    concurrent checks unlock at most once. Returns ids unlocked by this call.
    """
    now = as_utc(now or utcnow())
    stats = await get_or_create_stats(db, user_id)
    platform_content = await get_platform_content(db, user_id)
    unlocked = await get_unlocked_achievement_ids(db, user_id)
    newly_unlocked: list[str] = []

    for achievement in ACHIEVEMENTS:
        if achievement.id in unlocked:
            continue
        req = achievement.requirement
        if requirement_value(stats, req.type, req.platform, platform_content) < req.value:
            continue
        if not await _unlock(db, user_id, achievement, now):
            continue

        newly_unlocked.append(achievement.id)
        logger.info("User %s unlocked achievement %s", user_id, achievement.id)

        if achievement.reward.title:
            await db.execute(
                update(UserStats)
                .where(UserStats.user_id == user_id)
                .values(display_title=achievement.reward.title, updated_at=now)
                .execution_options(synchronize_session=False)
            )
        if achievement.reward.badge:
            await award_badge(
                db, redis, user_id, achievement.reward.badge,
                metadata={"achievement_id": achievement.id}, now=now,
            )

    return newly_unlocked


async def _unlock(db: AsyncSession, user_id: int, achievement: AchievementDefinition, now: datetime) -> bool:
    try:
        async with db.begin_nested():
            await db.execute(
                insert(UserAchievement).values(
                    user_id=user_id,
                    achievement_id=achievement.id,
                    points=achievement.reward.points,
                    unlocked_at=now,
                )
            )
    except IntegrityError:
        logger.debug("Achievement %s already unlocked for %s", achievement.id, user_id)
        return False
    return True
