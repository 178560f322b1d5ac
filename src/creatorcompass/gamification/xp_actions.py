"""XP action table: base rewards, daily caps, cooldowns and metadata multipliers."""

from __future__ import annotations

from collections.abc import Mapping

from creatorcompass.gamification.schemas import XPAction

XP_ACTIONS: tuple[XPAction, ...] = (
    # Content
    XPAction(id="complete_task", name="Complete Task", xp_reward=50, category="content",
             multipliers={"difficulty": {"easy": 1.0, "medium": 1.5, "hard": 2.0}}),
    XPAction(id="publish_content", name="Publish Content", xp_reward=100, category="content", daily_limit=3,
             multipliers={"format": {"short": 1.0, "long": 1.5, "live": 2.0}}),
    XPAction(id="schedule_content", name="Schedule Content", xp_reward=25, category="content"),
    XPAction(id="create_template", name="Create Template", xp_reward=75, category="content"),
    # Engagement
    XPAction(id="daily_login", name="Daily Login", xp_reward=10, category="engagement", daily_limit=1),
    XPAction(id="streak_bonus", name="Streak Bonus", xp_reward=20, category="consistency", daily_limit=1),
    XPAction(id="weekly_review", name="Weekly Review", xp_reward=150, category="engagement",
             cooldown_minutes=7 * 24 * 60),
    XPAction(id="ai_interaction", name="AI Interaction", xp_reward=5, category="engagement", daily_limit=20),
    # Learning
    XPAction(id="complete_tutorial", name="Complete Tutorial", xp_reward=100, category="learning"),
    XPAction(id="read_guide", name="Read Guide", xp_reward=25, category="learning", daily_limit=5),
    XPAction(id="watch_webinar", name="Watch Webinar", xp_reward=200, category="learning"),
    XPAction(id="take_quiz", name="Take Quiz", xp_reward=50, category="learning",
             multipliers={"score": {"perfect": 2.0}}),
    # Community
    XPAction(id="share_achievement", name="Share Achievement", xp_reward=30, category="community", daily_limit=3),
    XPAction(id="help_creator", name="Help Another Creator", xp_reward=100, category="community"),
    XPAction(id="join_challenge", name="Join Challenge", xp_reward=50, category="community"),
    # Achievement
    XPAction(id="unlock_badge", name="Unlock Badge", xp_reward=200, category="achievement"),
    XPAction(id="complete_milestone", name="Complete Milestone", xp_reward=500, category="achievement"),
    XPAction(id="perfect_week", name="Perfect Week", xp_reward=1000, category="achievement"),
)

# Streak length (days) -> extra fraction of base XP, highest tier first
STREAK_BONUS_TIERS: tuple[tuple[int, float], ...] = (
    (30, 0.30),
    (14, 0.20),
    (7, 0.10),
    (3, 0.05),
)


def metadata_multiplier(action: XPAction, metadata: Mapping[str, object] | None) -> float:
    """Product of every multiplier whose metadata key/value matches."""
    if not metadata or not action.multipliers:
        return 1.0
    factor = 1.0
    for key, by_value in action.multipliers.items():
        value = metadata.get(key)
        if value is None:
            continue
        factor *= by_value.get(str(value), 1.0)
    return factor


def streak_bonus_fraction(streak_days: int) -> float:
    """Extra fraction of base XP earned for an active daily streak."""
    for min_days, fraction in STREAK_BONUS_TIERS:
        if streak_days >= min_days:
            return fraction
    return 0.0
