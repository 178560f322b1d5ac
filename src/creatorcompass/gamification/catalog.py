"""Static catalogs: challenge templates, achievements, badges, rewards.

Loaded once at import and never mutated. Per-user state lives in the
database and is always derived against these entries.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Protocol, TypeVar

from creatorcompass.gamification.schemas import (
    AchievementDefinition,
    AchievementRequirement,
    AchievementReward,
    BadgeDefinition,
    BadgeRequirement,
    ChallengeTemplate,
    RewardDefinition,
    RewardTier,
    UnlockCriteria,
)


class _HasId(Protocol):
    @property
    def id(self) -> str: ...


_T = TypeVar("_T", bound=_HasId)


def index_by_id(entries: Iterable[_T]) -> Mapping[str, _T]:
    """Read-only id -> entry map; duplicate ids are a catalog bug."""
    table: dict[str, _T] = {}
    for entry in entries:
        if entry.id in table:
            raise ValueError(f"Duplicate catalog id: {entry.id}")
        table[entry.id] = entry
    return MappingProxyType(table)


# ---------------------------------------------------------------------------
# Daily challenge templates
# ---------------------------------------------------------------------------

CHALLENGE_TEMPLATES: tuple[ChallengeTemplate, ...] = (
    # Easy
    ChallengeTemplate(
        id="morning-motivation", title="Morning Motivation",
        description="Start your day right by completing 3 tasks",
        difficulty="easy", category="content", action_type="complete_task", target=3, xp_reward=100,
    ),
    ChallengeTemplate(
        id="content-scheduler", title="Content Scheduler",
        description="Create and schedule 1 piece of content",
        difficulty="easy", category="content", action_type="schedule_content", target=1, xp_reward=150,
    ),
    ChallengeTemplate(
        id="ai-explorer", title="AI Explorer",
        description="Have 5 meaningful conversations with your AI assistant",
        difficulty="easy", category="learning", action_type="ai_interaction", target=5, xp_reward=75,
    ),
    ChallengeTemplate(
        id="guide-reader", title="Guide Reader",
        description="Read 2 creator guides",
        difficulty="easy", category="learning", action_type="read_guide", target=2, xp_reward=60,
    ),
    # Medium
    ChallengeTemplate(
        id="productivity-burst", title="Productivity Burst",
        description="Complete 5 tasks in a single day",
        difficulty="medium", category="content", action_type="complete_task", target=5, xp_reward=300,
        badge_reward="productive-day",
    ),
    ChallengeTemplate(
        id="template-builder", title="Template Builder",
        description="Create 2 templates",
        difficulty="medium", category="content", action_type="create_template", target=2, xp_reward=250,
    ),
    ChallengeTemplate(
        id="helping-hand", title="Helping Hand",
        description="Help 2 other creators",
        difficulty="medium", category="community", action_type="help_creator", target=2, xp_reward=250,
    ),
    # Hard
    ChallengeTemplate(
        id="content-marathon", title="Content Marathon",
        description="Publish 3 pieces of content",
        difficulty="hard", category="content", action_type="publish_content", target=3, xp_reward=500,
    ),
    ChallengeTemplate(
        id="schedule-sprint", title="Schedule Sprint",
        description="Schedule 5 pieces of content",
        difficulty="hard", category="content", action_type="schedule_content", target=5, xp_reward=450,
    ),
)


# ---------------------------------------------------------------------------
# Badges
# ---------------------------------------------------------------------------

BADGES: tuple[BadgeDefinition, ...] = (
    # Milestone
    BadgeDefinition(
        id="first-content", name="First Steps", description="Publish your first piece of content",
        category="milestone", tier="bronze", rarity="common", xp_reward=100,
        requirement=BadgeRequirement(type="content_published", value=1),
    ),
    BadgeDefinition(
        id="content-10", name="Content Creator", description="Publish 10 pieces of content",
        category="milestone", tier="silver", rarity="uncommon", xp_reward=250,
        requirement=BadgeRequirement(type="content_published", value=10),
    ),
    BadgeDefinition(
        id="content-100", name="Prolific Publisher", description="Publish 100 pieces of content",
        category="milestone", tier="gold", rarity="rare", xp_reward=1000,
        requirement=BadgeRequirement(type="content_published", value=100),
    ),
    # Skill
    BadgeDefinition(
        id="template-master", name="Template Master", description="Create 5 custom templates",
        category="skill", tier="silver", rarity="uncommon", xp_reward=300,
        requirement=BadgeRequirement(type="templates_created", value=5),
    ),
    BadgeDefinition(
        id="ai-whisperer", name="AI Whisperer", description="Have 100 AI interactions",
        category="skill", tier="silver", rarity="uncommon", xp_reward=200,
        requirement=BadgeRequirement(type="ai_interactions", value=100),
    ),
    # Community
    BadgeDefinition(
        id="helpful-creator", name="Helpful Creator", description="Help 10 other creators",
        category="community", tier="silver", rarity="uncommon", xp_reward=400,
        requirement=BadgeRequirement(type="creators_helped", value=10),
    ),
    # Challenges
    BadgeDefinition(
        id="challenge-starter", name="Challenge Accepted", description="Claim your first daily challenge",
        category="challenge", tier="bronze", rarity="common", xp_reward=50,
        requirement=BadgeRequirement(type="challenges_completed", value=1),
    ),
    BadgeDefinition(
        id="challenge-regular", name="Challenge Regular", description="Claim 10 daily challenges",
        category="challenge", tier="silver", rarity="uncommon", xp_reward=250,
        requirement=BadgeRequirement(type="challenges_completed", value=10),
    ),
    BadgeDefinition(
        id="challenge-master", name="Challenge Master", description="Claim 50 daily challenges",
        category="challenge", tier="gold", rarity="rare", xp_reward=750,
        requirement=BadgeRequirement(type="challenges_completed", value=50),
    ),
    BadgeDefinition(
        id="productive-day", name="Productive Day", description="Finish a Productivity Burst challenge",
        category="challenge", tier="bronze", rarity="common", xp_reward=100,
    ),
    # Special
    BadgeDefinition(
        id="perfect-week", name="Perfect Week", description="Keep a 7-day activity streak",
        category="special", tier="gold", rarity="rare", xp_reward=1000,
        requirement=BadgeRequirement(type="streak_days", value=7),
    ),
    BadgeDefinition(
        id="community-champion", name="Community Champion", description="Help 50 other creators",
        category="community", tier="gold", rarity="rare", xp_reward=750,
        requirement=BadgeRequirement(type="creators_helped", value=50),
    ),
    BadgeDefinition(
        id="creator-legend", name="Creator Legend", description="Reach level 10",
        category="special", tier="diamond", rarity="legendary", xp_reward=5000,
        requirement=BadgeRequirement(type="level", value=10),
    ),
    BadgeDefinition(
        id="viral-creator", name="Viral Creator", description="Awarded with the Gone Viral achievement",
        category="special", tier="gold", rarity="epic", xp_reward=500,
    ),
)


# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------

ACHIEVEMENTS: tuple[AchievementDefinition, ...] = (
    AchievementDefinition(
        id="first-task", title="Getting Started", description="Complete your first task",
        requirement=AchievementRequirement(type="tasks_completed", value=1),
        reward=AchievementReward(points=10), rarity="common",
    ),
    AchievementDefinition(
        id="task-50", title="Task Crusher", description="Complete 50 tasks",
        requirement=AchievementRequirement(type="tasks_completed", value=50),
        reward=AchievementReward(points=50), rarity="uncommon",
    ),
    AchievementDefinition(
        id="task-500", title="Unstoppable", description="Complete 500 tasks",
        requirement=AchievementRequirement(type="tasks_completed", value=500),
        reward=AchievementReward(points=200, title="The Unstoppable"), rarity="epic",
    ),
    AchievementDefinition(
        id="first-publish", title="Hello World", description="Publish your first piece of content",
        requirement=AchievementRequirement(type="content_published", value=1),
        reward=AchievementReward(points=10), rarity="common",
    ),
    AchievementDefinition(
        id="consistency-king", title="Consistency King", description="Stay active 30 days in a row",
        requirement=AchievementRequirement(type="streak_days", value=30),
        reward=AchievementReward(points=200, title="The Consistent"), rarity="rare",
    ),
    AchievementDefinition(
        id="week-warrior", title="Week Warrior", description="Stay active 7 days in a row",
        requirement=AchievementRequirement(type="streak_days", value=7),
        reward=AchievementReward(points=50), rarity="uncommon",
    ),
    AchievementDefinition(
        id="youtube-starter", title="YouTube Starter", description="Publish 5 videos on YouTube",
        requirement=AchievementRequirement(type="platform_content", value=5, platform="youtube"),
        reward=AchievementReward(points=50), rarity="common",
    ),
    AchievementDefinition(
        id="tiktok-trendsetter", title="TikTok Trendsetter", description="Publish 25 TikToks",
        requirement=AchievementRequirement(type="platform_content", value=25, platform="tiktok"),
        reward=AchievementReward(points=100), rarity="uncommon",
    ),
    AchievementDefinition(
        id="gone-viral", title="Gone Viral", description="Publish 100 pieces of content",
        requirement=AchievementRequirement(type="content_published", value=100),
        reward=AchievementReward(points=100, badge="viral-creator"), rarity="rare",
    ),
    AchievementDefinition(
        id="rising-star", title="Rising Star", description="Reach level 2",
        requirement=AchievementRequirement(type="level", value=2),
        reward=AchievementReward(points=25), rarity="common",
    ),
    AchievementDefinition(
        id="platform-master", title="Platform Master", description="Reach level 7",
        requirement=AchievementRequirement(type="level", value=7),
        reward=AchievementReward(points=300, title="Platform Master"), rarity="epic",
    ),
    AchievementDefinition(
        id="xp-10k", title="Ten Thousand Strong", description="Earn 10,000 XP",
        requirement=AchievementRequirement(type="total_xp", value=10000),
        reward=AchievementReward(points=150), rarity="rare",
    ),
    AchievementDefinition(
        id="challenge-streak", title="Challenge Seeker", description="Claim 25 daily challenges",
        requirement=AchievementRequirement(type="challenges_completed", value=25),
        reward=AchievementReward(points=150), rarity="rare",
    ),
    AchievementDefinition(
        id="night-owl", title="Night Owl", description="Have 250 AI conversations",
        requirement=AchievementRequirement(type="ai_interactions", value=250),
        reward=AchievementReward(points=50), rarity="uncommon", hidden=True,
    ),
)


# ---------------------------------------------------------------------------
# Rewards
# ---------------------------------------------------------------------------

REWARDS: tuple[RewardDefinition, ...] = (
    RewardDefinition(
        id="advanced-analytics", name="Advanced Analytics Dashboard",
        description="Unlock detailed analytics and insights for your content",
        type="feature", tier=2, criteria=UnlockCriteria(type="level", target=3),
    ),
    RewardDefinition(
        id="ai-content-ideas", name="AI Content Ideas Generator",
        description="Get unlimited AI-powered content ideas",
        type="feature", tier=2, criteria=UnlockCriteria(type="level", target=4),
    ),
    RewardDefinition(
        id="collaboration-tools", name="Collaboration Tools",
        description="Invite team members and collaborate on content",
        type="feature", tier=2, criteria=UnlockCriteria(type="level", target=5),
    ),
    RewardDefinition(
        id="profile-frames", name="Profile Frame Collection",
        description="Decorative frames for your profile",
        type="cosmetic", tier=1, criteria=UnlockCriteria(type="xp", target=5000),
    ),
    RewardDefinition(
        id="chat-emojis", name="Exclusive Emoji Pack",
        description="Special emojis for AI chat and comments",
        type="cosmetic", tier=1, criteria=UnlockCriteria(type="badge", target="community-champion"),
    ),
    RewardDefinition(
        id="theme-pack", name="Premium Theme Pack",
        description="Unlock 5 exclusive theme variations",
        type="cosmetic", tier=1, criteria=UnlockCriteria(type="achievement_count", target=5),
    ),
    RewardDefinition(
        id="premium-templates", name="Premium Template Library",
        description="Access to 50+ premium content templates",
        type="template", tier=3, criteria=UnlockCriteria(type="level", target=6),
    ),
    RewardDefinition(
        id="ai-template-customizer", name="AI Template Customizer",
        description="Create custom templates with AI assistance",
        type="template", tier=2, criteria=UnlockCriteria(type="badge", target="template-master"),
    ),
    RewardDefinition(
        id="priority-support", name="Priority Support Access",
        description="Get faster response times and dedicated support",
        type="perk", tier=3, criteria=UnlockCriteria(type="level", target=7),
    ),
    RewardDefinition(
        id="beta-features", name="Beta Feature Access",
        description="Try new features before everyone else",
        type="perk", tier=3, criteria=UnlockCriteria(type="achievement", target="platform-master"),
    ),
    RewardDefinition(
        id="monthly-coaching", name="Monthly Coaching Call",
        description="Get a 30-minute monthly coaching session",
        type="perk", tier=3, criteria=UnlockCriteria(type="level", target=8),
    ),
    RewardDefinition(
        id="exclusive-guides", name="Exclusive Creator Guides",
        description="Access to advanced growth strategies and case studies",
        type="content", tier=3, criteria=UnlockCriteria(type="xp", target=10000),
    ),
    RewardDefinition(
        id="masterclass-series", name="Creator Masterclass Series",
        description="Video tutorials from successful creators",
        type="content", tier=4, criteria=UnlockCriteria(type="level", target=9),
    ),
    RewardDefinition(
        id="pro-discount-20", name="20% Pro Plan Discount",
        description="Get 20% off Pro plan for life",
        type="discount", tier=3, criteria=UnlockCriteria(type="streak", target=30),
    ),
    RewardDefinition(
        id="studio-discount-25", name="25% Studio Plan Discount",
        description="Get 25% off Studio plan for life",
        type="discount", tier=4, criteria=UnlockCriteria(type="level", target=10),
    ),
)

REWARD_TIERS: tuple[RewardTier, ...] = (
    RewardTier(tier=1, name="Starter Rewards", required_level=1),
    RewardTier(tier=2, name="Growth Rewards", required_level=3),
    RewardTier(tier=3, name="Pro Rewards", required_level=6),
    RewardTier(tier=4, name="Elite Rewards", required_level=9),
)


CHALLENGE_TEMPLATES_BY_ID = index_by_id(CHALLENGE_TEMPLATES)
BADGES_BY_ID = index_by_id(BADGES)
ACHIEVEMENTS_BY_ID = index_by_id(ACHIEVEMENTS)
REWARDS_BY_ID = index_by_id(REWARDS)
