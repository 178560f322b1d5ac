"""Leaderboards: ranked metrics over rolling windows.

Rankings are aggregated in SQL and cached in Redis as JSON for a short
TTL. Snapshots (Redis hash + leaderboard_snapshots) feed rank_change.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime

from sqlalchemy import Select, func, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from creatorcompass.config import get_settings
from creatorcompass.db.models import (
    Challenge,
    LeaderboardSnapshot,
    User,
    UserAchievement,
    UserBadge,
    UserStats,
    XPTransaction,
)
from creatorcompass.gamification.schemas import LeaderboardEntry, LeaderboardPosition, LeaderboardResponse
from creatorcompass.gamification.time_utils import as_utc, period_key, utcnow, window_start

logger = logging.getLogger(__name__)

# (board_type, timeframe) -> display name
LEADERBOARD_CONFIGS: dict[tuple[str, str], str] = {
    ("xp", "daily"): "Today's Top Creators",
    ("xp", "weekly"): "This Week's XP Leaders",
    ("xp", "monthly"): "Monthly XP Champions",
    ("xp", "all-time"): "All-Time XP Legends",
    ("badges", "all-time"): "Badge Collectors",
    ("achievements", "all-time"): "Achievement Hunters",
    ("challenges", "weekly"): "Weekly Challenge Masters",
    ("challenges", "monthly"): "Monthly Challenge Champions",
}

SNAPSHOT_TTL_SECONDS = 86400 * 7

# (user_id, display_name, metric_value), best first
Ranking = list[tuple[int, str, float]]


def cache_key(board_type: str, timeframe: str) -> str:
    return f"leaderboard:{board_type}:{timeframe}"


def snapshot_key(board_type: str, timeframe: str) -> str:
    return f"leaderboard:snapshot:prev:{board_type}:{timeframe}"


def _check_board(board_type: str, timeframe: str) -> str:
    name = LEADERBOARD_CONFIGS.get((board_type, timeframe))
    if name is None:
        raise ValueError(f"Unknown leaderboard: {board_type}/{timeframe}")
    return name


def _metric_query(board_type: str, timeframe: str, now: datetime) -> Select:
    """SELECT user_id, metric for every user with a non-zero metric in the window."""
    since = window_start(timeframe, now)

    if board_type == "xp" and since is None:
        return select(UserStats.user_id.label("user_id"), UserStats.total_xp.label("metric")).where(
            UserStats.total_xp > 0
        )
    if board_type == "xp":
        return (
            select(XPTransaction.user_id.label("user_id"), func.sum(XPTransaction.xp_awarded).label("metric"))
            .where(XPTransaction.created_at >= since)
            .group_by(XPTransaction.user_id)
        )
    if board_type == "badges":
        return (
            select(UserBadge.user_id.label("user_id"), func.count(UserBadge.id).label("metric"))
            .group_by(UserBadge.user_id)
        )
    if board_type == "achievements":
        return (
            select(UserAchievement.user_id.label("user_id"), func.sum(UserAchievement.points).label("metric"))
            .group_by(UserAchievement.user_id)
        )
    if board_type == "challenges":
        stmt = (
            select(Challenge.user_id.label("user_id"), func.count(Challenge.id).label("metric"))
            .where(Challenge.status == "claimed")
            .group_by(Challenge.user_id)
        )
        if since is not None:
            stmt = stmt.where(Challenge.claimed_at >= since)
        return stmt
    raise ValueError(f"Unknown leaderboard type: {board_type}")


async def compute_ranking(db: AsyncSession, board_type: str, timeframe: str, now: datetime | None = None) -> Ranking:
    """Full ranking: metric desc, then account age, then user id."""
    _check_board(board_type, timeframe)
    metrics = _metric_query(board_type, timeframe, as_utc(now or utcnow())).subquery()
    result = await db.execute(
        select(User.id, User.display_name, metrics.c.metric)
        .join(metrics, metrics.c.user_id == User.id)
        .where(metrics.c.metric > 0)
        .order_by(metrics.c.metric.desc(), User.created_at.asc(), User.id.asc())
    )
    return [
        (row.id, row.display_name or f"Creator-{row.id}", float(row.metric))
        for row in result
    ]


async def _cached_ranking(
    db: AsyncSession, redis: object, board_type: str, timeframe: str, now: datetime | None,
) -> Ranking:
    key = cache_key(board_type, timeframe)
    if redis is not None:
        try:
            cached = await redis.get(key)  # type: ignore[attr-defined]
            if cached:
                return [(int(uid), name, float(value)) for uid, name, value in json.loads(cached)]
        except Exception:
            logger.warning("Failed to read leaderboard cache %s", key, exc_info=True)

    ranking = await compute_ranking(db, board_type, timeframe, now)

    if redis is not None:
        try:
            await redis.setex(  # type: ignore[attr-defined]
                key, get_settings().leaderboard_cache_ttl_seconds, json.dumps(ranking),
            )
        except Exception:
            logger.warning("Failed to write leaderboard cache %s", key, exc_info=True)

    return ranking


async def _previous_ranks(db: AsyncSession, redis: object, board_type: str, timeframe: str) -> dict[int, int]:
    """Ranks from the last snapshot: Redis hash first, then the latest persisted snapshot."""
    if redis is not None:
        try:
            prev = await redis.hgetall(snapshot_key(board_type, timeframe))  # type: ignore[attr-defined]
            if prev:
                return {int(uid): int(rank) for uid, rank in prev.items()}
        except Exception:
            logger.warning("Failed to read leaderboard snapshot hash", exc_info=True)

    latest = (
        select(func.max(LeaderboardSnapshot.snapshot_at))
        .where(LeaderboardSnapshot.board_type == board_type, LeaderboardSnapshot.timeframe == timeframe)
        .scalar_subquery()
    )
    result = await db.execute(
        select(LeaderboardSnapshot.user_id, LeaderboardSnapshot.rank).where(
            LeaderboardSnapshot.board_type == board_type,
            LeaderboardSnapshot.timeframe == timeframe,
            LeaderboardSnapshot.snapshot_at == latest,
        )
    )
    return {row.user_id: row.rank for row in result}


async def get_leaderboard(
    db: AsyncSession,
    redis: object,
    board_type: str,
    timeframe: str,
    limit: int | None = None,
    requesting_user_id: int | None = None,
    now: datetime | None = None,
) -> LeaderboardResponse:
    """Top `limit` entries plus the requester's own entry when ranked.

    Raises ValueError for an untracked (board_type, timeframe).
    """
    name = _check_board(board_type, timeframe)
    if limit is None:
        limit = get_settings().leaderboard_default_limit
    if limit < 1:
        raise ValueError("limit must be positive")

    ranking = await _cached_ranking(db, redis, board_type, timeframe, now)
    prev_ranks = await _previous_ranks(db, redis, board_type, timeframe)

    def entry(rank: int, user_id: int, display_name: str, value: float) -> LeaderboardEntry:
        return LeaderboardEntry(
            rank=rank,
            user_id=user_id,
            display_name=display_name,
            metric_value=value,
            rank_change=prev_ranks.get(user_id, rank) - rank,  # Positive = moved up
            is_current_user=user_id == requesting_user_id,
        )

    entries = [entry(i, *row) for i, row in enumerate(ranking[:limit], start=1)]

    current_user = None
    if requesting_user_id is not None:
        for i, row in enumerate(ranking, start=1):
            if row[0] == requesting_user_id:
                current_user = entry(i, *row)
                break

    return LeaderboardResponse(
        board_type=board_type,
        timeframe=timeframe,
        name=name,
        entries=entries,
        current_user=current_user,
        total=len(ranking),
        generated_at=as_utc(now or utcnow()),
    )


async def get_user_leaderboard_positions(
    db: AsyncSession,
    redis: object,
    user_id: int,
    now: datetime | None = None,
) -> list[LeaderboardPosition]:
    """The user's rank on every tracked board (0 when unranked)."""
    positions = []
    for board_type, timeframe in LEADERBOARD_CONFIGS:
        ranking = await _cached_ranking(db, redis, board_type, timeframe, now)
        position = LeaderboardPosition(board_type=board_type, timeframe=timeframe, rank=0, total=len(ranking))
        for i, (uid, _name, value) in enumerate(ranking, start=1):
            if uid == user_id:
                position.rank = i
                position.metric_value = value
                break
        positions.append(position)
    return positions


async def save_snapshot(
    db: AsyncSession,
    redis: object,
    board_type: str,
    timeframe: str,
    now: datetime | None = None,
) -> int:
    """Save current leaderboard state as a snapshot for rank_change calculation."""
    _check_board(board_type, timeframe)
    now = as_utc(now or utcnow())
    ranking = await compute_ranking(db, board_type, timeframe, now)
    if not ranking:
        return 0

    if redis is not None:
        prev_key = snapshot_key(board_type, timeframe)
        try:
            pipe = redis.pipeline()  # type: ignore[attr-defined]
            pipe.delete(prev_key)
            pipe.hset(prev_key, mapping={str(uid): rank for rank, (uid, _n, _v) in enumerate(ranking, start=1)})
            pipe.expire(prev_key, SNAPSHOT_TTL_SECONDS)
            await pipe.execute()
        except Exception:
            logger.warning("Failed to write leaderboard snapshot hash %s", prev_key, exc_info=True)

    key = period_key(timeframe, now)
    for rank, (uid, _name, value) in enumerate(ranking[:get_settings().leaderboard_snapshot_size], start=1):
        try:
            async with db.begin_nested():
                await db.execute(
                    insert(LeaderboardSnapshot).values(
                        board_type=board_type, timeframe=timeframe, period_key=key,
                        user_id=uid, rank=rank, score=value, snapshot_at=now,
                    )
                )
        except IntegrityError:
            await db.execute(
                update(LeaderboardSnapshot)
                .where(
                    LeaderboardSnapshot.board_type == board_type,
                    LeaderboardSnapshot.timeframe == timeframe,
                    LeaderboardSnapshot.period_key == key,
                    LeaderboardSnapshot.user_id == uid,
                )
                .values(rank=rank, score=value, snapshot_at=now)
                .execution_options(synchronize_session=False)
            )

    await db.flush()
    logger.info("Saved %s/%s snapshot with %d entries", board_type, timeframe, len(ranking))
    return len(ranking)
