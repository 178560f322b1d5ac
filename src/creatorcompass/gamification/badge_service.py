"""Badge award service with duplicate prevention and notification."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from sqlalchemy import insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from creatorcompass.db.models import UserBadge
from creatorcompass.gamification.catalog import BADGES, BADGES_BY_ID
from creatorcompass.gamification.schemas import BadgeDefinition, BadgeProgressEntry, EarnedBadgeResponse
from creatorcompass.gamification.stats_service import get_or_create_stats, requirement_value
from creatorcompass.gamification.time_utils import as_utc, utcnow
from creatorcompass.gamification.xp_ledger import XPLedger
from creatorcompass.redis_client import BADGE_EARNED_CHANNEL, publish_event

logger = logging.getLogger(__name__)


def get_badges() -> list[BadgeDefinition]:
    """The full badge catalog."""
    return list(BADGES)


async def get_earned_badge_ids(db: AsyncSession, user_id: int) -> set[str]:
    result = await db.execute(select(UserBadge.badge_id).where(UserBadge.user_id == user_id))
    return set(result.scalars())


async def has_badge(db: AsyncSession, user_id: int, badge_id: str) -> bool:
    """Check if user already has a specific badge."""
    result = await db.execute(
        select(UserBadge.id).where(
            UserBadge.user_id == user_id,
            UserBadge.badge_id == badge_id,
        )
    )
    return result.scalar_one_or_none() is not None


async def award_badge(
    db: AsyncSession,
    redis: object,
    user_id: int,
    badge_id: str,
    metadata: Mapping[str, Any] | None = None,
    now: datetime | None = None,
) -> bool:
    """Award a badge to a user.

    Returns True if awarded, False if already earned or badge not found.
    Only the winning insert grants the badge XP and emits the event.
    """
    badge = BADGES_BY_ID.get(badge_id)
    if badge is None:
        logger.warning("Badge not found: %s", badge_id)
        return False

    now = as_utc(now or utcnow())
    await get_or_create_stats(db, user_id)

    try:
        async with db.begin_nested():
            await db.execute(
                insert(UserBadge).values(
                    user_id=user_id,
                    badge_id=badge.id,
                    earned_at=now,
                    badge_metadata=dict(metadata or {}),
                )
            )
    except IntegrityError:
        return False  # Already earned, possibly by a concurrent request

    if badge.xp_reward:
        await XPLedger(db, redis).grant_xp(
            user_id, badge.xp_reward, f"badge:{badge.id}", metadata={"badge_id": badge.id}, now=now,
        )

    logger.info("User %s earned badge %s", user_id, badge.id)
    await _emit_badge_earned(redis, user_id, badge)
    return True


async def _emit_badge_earned(redis: object, user_id: int, badge: BadgeDefinition) -> None:
    """Broadcast a badge-earned event."""
    await publish_event(redis, BADGE_EARNED_CHANNEL, {
        "user_id": user_id,
        "badge_id": badge.id,
        "badge_name": badge.name,
        "rarity": badge.rarity,
        "xp_reward": badge.xp_reward,
    })


async def check_badges(
    db: AsyncSession,
    redis: object,
    user_id: int,
    now: datetime | None = None,
) -> list[str]:
    """Award every requirement badge the user's counters now satisfy.

    Returns the badge ids awarded by this call.
    """
    stats = await get_or_create_stats(db, user_id)
    earned = await get_earned_badge_ids(db, user_id)
    awarded: list[str] = []

    for badge in BADGES:
        if badge.requirement is None or badge.id in earned:
            continue
        if requirement_value(stats, badge.requirement.type) < badge.requirement.value:
            continue
        if await award_badge(db, redis, user_id, badge.id, now=now):
            awarded.append(badge.id)

    return awarded


async def get_user_badges(db: AsyncSession, user_id: int) -> list[EarnedBadgeResponse]:
    """Badges earned by a user, newest first."""
    result = await db.execute(
        select(UserBadge)
        .where(UserBadge.user_id == user_id)
        .order_by(UserBadge.earned_at.desc(), UserBadge.id.desc())
    )
    earned = []
    for row in result.scalars():
        badge = BADGES_BY_ID.get(row.badge_id)
        if badge is None:
            # Retired from the catalog
            continue
        earned.append(EarnedBadgeResponse(
            badge_id=badge.id, name=badge.name, rarity=badge.rarity, earned_at=row.earned_at,
        ))
    return earned


async def get_badge_progress(db: AsyncSession, user_id: int) -> list[BadgeProgressEntry]:
    """Progress toward every badge, closest to earned first.

    Earned badges report 100. Badges without a requirement are awarded by
    name only, so they sit at 0 until earned.
    """
    stats = await get_or_create_stats(db, user_id)
    earned = await get_earned_badge_ids(db, user_id)

    entries = []
    for badge in BADGES:
        is_earned = badge.id in earned
        if badge.requirement is None:
            current, target = int(is_earned), 1
        else:
            current = requirement_value(stats, badge.requirement.type)
            target = badge.requirement.value
        if is_earned or target <= 0:
            percentage = 100.0
        else:
            percentage = min(100.0, max(0.0, current / target * 100))
        entries.append(BadgeProgressEntry(
            badge_id=badge.id,
            name=badge.name,
            current=current,
            target=target,
            percentage=percentage,
            earned=is_earned,
        ))

    # Stable sort keeps catalog order among ties
    entries.sort(key=lambda entry: entry.percentage, reverse=True)
    return entries
