"""Reward tiers: unlock criteria, progress and one-time claims."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from creatorcompass.config import get_settings
from creatorcompass.db.models import UserReward, UserStats
from creatorcompass.errors import InvalidStateError, RewardNotFoundError
from creatorcompass.gamification.achievement_service import get_unlocked_achievement_ids
from creatorcompass.gamification.badge_service import get_earned_badge_ids
from creatorcompass.gamification.catalog import REWARD_TIERS, REWARDS, REWARDS_BY_ID
from creatorcompass.gamification.schemas import (
    RewardDefinition,
    RewardProgressEntry,
    RewardTierProgress,
    UnlockCriteria,
    UnlockedRewardResponse,
)
from creatorcompass.gamification.stats_service import get_or_create_stats
from creatorcompass.gamification.time_utils import as_utc, utcnow
from creatorcompass.gamification.xp_ledger import XPLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Standing:
    """What reward criteria are evaluated against."""

    stats: UserStats
    achievements: frozenset[str]
    badges: frozenset[str]


def criteria_progress(criteria: UnlockCriteria, standing: _Standing) -> float:
    """Percent (0..100) of the way to meeting criteria."""
    if criteria.type == "achievement":
        return 100.0 if criteria.target in standing.achievements else 0.0
    if criteria.type == "badge":
        return 100.0 if criteria.target in standing.badges else 0.0

    current = {
        "level": standing.stats.level,
        "xp": standing.stats.total_xp,
        "achievement_count": len(standing.achievements),
        "streak": standing.stats.streak_days,
    }[criteria.type]
    target = int(criteria.target)
    if target <= 0:
        return 100.0
    return min(100.0, max(0.0, current / target * 100))


def criteria_met(criteria: UnlockCriteria, standing: _Standing) -> bool:
    return criteria_progress(criteria, standing) >= 100.0


async def _standing(db: AsyncSession, user_id: int) -> _Standing:
    return _Standing(
        stats=await get_or_create_stats(db, user_id),
        achievements=frozenset(await get_unlocked_achievement_ids(db, user_id)),
        badges=frozenset(await get_earned_badge_ids(db, user_id)),
    )


async def _user_rewards(db: AsyncSession, user_id: int) -> dict[str, UserReward]:
    result = await db.execute(
        select(UserReward)
        .where(UserReward.user_id == user_id)
        .order_by(UserReward.unlocked_at, UserReward.id)
        .execution_options(populate_existing=True)
    )
    return {row.reward_id: row for row in result.scalars()}


async def _unlock(db: AsyncSession, user_id: int, reward: RewardDefinition, now: datetime) -> bool:
    """Insert the unlock row if absent. True when this call created it."""
    try:
        async with db.begin_nested():
            await db.execute(
                insert(UserReward).values(user_id=user_id, reward_id=reward.id, unlocked_at=now)
            )
    except IntegrityError:
        return False
    logger.info("User %s unlocked reward %s", user_id, reward.id)
    return True


def _to_response(row: UserReward) -> UnlockedRewardResponse | None:
    reward = REWARDS_BY_ID.get(row.reward_id)
    if reward is None:
        return None
    return UnlockedRewardResponse(
        reward_id=reward.id,
        name=reward.name,
        type=reward.type,
        unlocked_at=row.unlocked_at,
        claimed_at=row.claimed_at,
    )


async def get_user_unlocked_rewards(
    db: AsyncSession,
    user_id: int,
    now: datetime | None = None,
) -> list[UnlockedRewardResponse]:
    """Record unlocks for every reward whose criteria are met and list them all."""
    now = as_utc(now or utcnow())
    standing = await _standing(db, user_id)
    existing = await _user_rewards(db, user_id)

    for reward in REWARDS:
        if reward.id not in existing and criteria_met(reward.criteria, standing):
            await _unlock(db, user_id, reward, now)

    rows = await _user_rewards(db, user_id)
    return [resp for resp in map(_to_response, rows.values()) if resp is not None]


async def get_user_active_rewards(db: AsyncSession, user_id: int) -> dict[str, list[UnlockedRewardResponse]]:
    """Claimed rewards grouped by reward type."""
    grouped: dict[str, list[UnlockedRewardResponse]] = defaultdict(list)
    for row in (await _user_rewards(db, user_id)).values():
        if row.claimed_at is None:
            continue
        resp = _to_response(row)
        if resp is not None:
            grouped[resp.type].append(resp)
    return dict(grouped)


async def get_reward_progress(db: AsyncSession, user_id: int) -> list[RewardProgressEntry]:
    standing = await _standing(db, user_id)
    rows = await _user_rewards(db, user_id)
    return [_progress_entry(reward, standing, rows.get(reward.id)) for reward in REWARDS]


def _progress_entry(reward: RewardDefinition, standing: _Standing, row: UserReward | None) -> RewardProgressEntry:
    progress = criteria_progress(reward.criteria, standing)
    # An unlock row outlives criteria that can lapse, e.g. a broken streak
    is_unlocked = row is not None or progress >= 100.0
    is_claimed = row is not None and row.claimed_at is not None
    return RewardProgressEntry(
        reward=reward,
        progress=100.0 if is_unlocked else progress,
        is_unlocked=is_unlocked,
        is_claimed=is_claimed,
        can_claim=is_unlocked and not is_claimed,
    )


async def get_reward_tiers(db: AsyncSession, user_id: int) -> list[RewardTierProgress]:
    """Tier unlock state by level, each with its member rewards."""
    standing = await _standing(db, user_id)
    rows = await _user_rewards(db, user_id)
    level = standing.stats.level

    tiers = []
    for tier in REWARD_TIERS:
        progress = 100.0 if tier.required_level <= 0 else min(100.0, level / tier.required_level * 100)
        tiers.append(RewardTierProgress(
            tier=tier,
            is_unlocked=level >= tier.required_level,
            progress=progress,
            rewards=[
                _progress_entry(reward, standing, rows.get(reward.id))
                for reward in REWARDS
                if reward.tier == tier.tier
            ],
        ))
    return tiers


async def claim_reward(
    db: AsyncSession,
    redis: object,
    user_id: int,
    reward_id: str,
    now: datetime | None = None,
) -> bool:
    """Claim a reward once.

    False when criteria are unmet or the reward was already claimed.
    Raises RewardNotFoundError for an id outside the catalog.
    """
    reward = REWARDS_BY_ID.get(reward_id)
    if reward is None:
        raise RewardNotFoundError(reward_id)
    now = as_utc(now or utcnow())

    try:
        await _mark_claimed(db, user_id, reward, now)
    except InvalidStateError as exc:
        logger.debug("Reward claim rejected for user %s: %s", user_id, exc)
        return False

    bonus = await XPLedger(db, redis).award_xp(
        user_id, get_settings().reward_claim_bonus_action, metadata={"reward_id": reward.id}, now=now,
    )
    logger.info(
        "User %s claimed reward %s (+%s XP)", user_id, reward.id, bonus.xp_awarded if bonus else 0,
    )
    return True


async def _mark_claimed(db: AsyncSession, user_id: int, reward: RewardDefinition, now: datetime) -> None:
    """Unlock if eligible, then stamp claimed_at where it is still NULL."""
    rows = await _user_rewards(db, user_id)
    if reward.id not in rows:
        if not criteria_met(reward.criteria, await _standing(db, user_id)):
            raise InvalidStateError(f"Reward {reward.id} criteria not met")
        await _unlock(db, user_id, reward, now)

    result = await db.execute(
        update(UserReward)
        .where(
            UserReward.user_id == user_id,
            UserReward.reward_id == reward.id,
            UserReward.claimed_at.is_(None),
        )
        .values(claimed_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InvalidStateError(f"Reward {reward.id} already claimed")
