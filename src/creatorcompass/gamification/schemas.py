"""Pydantic models: static catalog definitions and service results."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Difficulty = Literal["easy", "medium", "hard"]


class _Definition(BaseModel):
    """Immutable catalog entry."""

    model_config = ConfigDict(frozen=True)


# --- Catalog definitions ---


class LevelDefinition(_Definition):
    level: int
    title: str
    xp_required: int  # cumulative
    badge: str
    perks: tuple[str, ...] = ()


class XPAction(_Definition):
    id: str
    name: str
    xp_reward: int
    category: str
    daily_limit: int | None = None
    cooldown_minutes: int | None = None
    # metadata key -> metadata value -> multiplier
    multipliers: dict[str, dict[str, float]] = Field(default_factory=dict)


class ChallengeTemplate(_Definition):
    id: str
    title: str
    description: str
    difficulty: Difficulty
    category: str
    action_type: str
    target: int
    xp_reward: int
    badge_reward: str | None = None


class AchievementRequirement(_Definition):
    type: str
    value: int
    platform: str | None = None


class AchievementReward(_Definition):
    points: int
    badge: str | None = None
    title: str | None = None


class AchievementDefinition(_Definition):
    id: str
    title: str
    description: str
    requirement: AchievementRequirement
    reward: AchievementReward
    rarity: str
    hidden: bool = False


class BadgeRequirement(_Definition):
    type: str
    value: int


class BadgeDefinition(_Definition):
    id: str
    name: str
    description: str
    category: str
    tier: str
    rarity: str
    xp_reward: int
    requirement: BadgeRequirement | None = None  # None: awarded only by name


class UnlockCriteria(_Definition):
    type: Literal["level", "xp", "achievement_count", "achievement", "badge", "streak"]
    target: int | str


class RewardDefinition(_Definition):
    id: str
    name: str
    description: str
    type: Literal["feature", "cosmetic", "template", "perk", "content", "discount"]
    tier: int
    criteria: UnlockCriteria


class RewardTier(_Definition):
    tier: int
    name: str
    required_level: int


# --- XP ---


class XPAwardResult(BaseModel):
    action_id: str
    xp_awarded: int
    bonus_xp: int = 0
    total_xp: int
    level_up: bool = False
    new_level: int | None = None


class UserLevel(BaseModel):
    level: int
    title: str
    current_xp: int
    required_xp: int
    next_level_xp: int
    next_title: str
    progress: float  # 0..1 toward the next level
    badge: str
    perks: list[str] = []


class XPActionAvailability(BaseModel):
    id: str
    name: str
    xp_reward: int
    category: str
    daily_limit: int | None = None
    remaining: int | None = None  # None: uncapped; 0 while cooling down
    available_at: datetime | None = None  # set while cooling down


class XPHistoryEntry(BaseModel):
    action_id: str
    action_name: str
    xp_awarded: int
    total_xp_after: int
    created_at: datetime


class DailyXPProgress(BaseModel):
    earned_today: int
    available_actions: list[XPActionAvailability]


# --- Challenges ---


class ChallengeProgress(BaseModel):
    challenge_id: int
    percentage: float
    is_completed: bool
    completed_at: datetime | None = None
    claimed_at: datetime | None = None


class ClaimChallengeResult(BaseModel):
    xp_awarded: int
    badges_unlocked: list[str] = []


# --- Achievements & Badges ---


class UserAchievementResponse(BaseModel):
    achievement_id: str
    title: str
    points: int
    unlocked_at: datetime


class AchievementProgressEntry(BaseModel):
    achievement_id: str
    current: int
    target: int
    percentage: float
    unlocked: bool = False


class EarnedBadgeResponse(BaseModel):
    badge_id: str
    name: str
    rarity: str
    earned_at: datetime


class BadgeProgressEntry(BaseModel):
    badge_id: str
    name: str
    current: int
    target: int
    percentage: float
    earned: bool = False


# --- Leaderboards ---


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: int
    display_name: str
    metric_value: float
    rank_change: int = 0
    is_current_user: bool = False


class LeaderboardResponse(BaseModel):
    board_type: str
    timeframe: str
    name: str
    entries: list[LeaderboardEntry]
    current_user: LeaderboardEntry | None = None
    total: int
    generated_at: datetime


class LeaderboardPosition(BaseModel):
    board_type: str
    timeframe: str
    rank: int  # 0 when unranked
    metric_value: float = 0
    total: int = 0


# --- Rewards ---


class UnlockedRewardResponse(BaseModel):
    reward_id: str
    name: str
    type: str
    unlocked_at: datetime
    claimed_at: datetime | None = None


class RewardProgressEntry(BaseModel):
    reward: RewardDefinition
    progress: float
    is_unlocked: bool
    is_claimed: bool
    can_claim: bool


class RewardTierProgress(BaseModel):
    tier: RewardTier
    is_unlocked: bool
    progress: float
    rewards: list[RewardProgressEntry]


# --- Trigger engine ---


class ActionOutcome(BaseModel):
    action_id: str
    xp: XPAwardResult | None = None
    challenges_completed: list[int] = []
    badges_unlocked: list[str] = []
    achievements_unlocked: list[str] = []
