"""Level thresholds and computation.

Thresholds are cumulative XP. The table must start at level 1 / 0 XP and
grow strictly; validate_levels() enforces that for injected tables too.
"""

from __future__ import annotations

from bisect import bisect_right
from collections.abc import Sequence

from creatorcompass.errors import InvalidStateError
from creatorcompass.gamification.schemas import LevelDefinition

LEVEL_THRESHOLDS: tuple[LevelDefinition, ...] = (
    LevelDefinition(level=1, title="Aspiring Creator", xp_required=0, badge="🌱",
                    perks=("Basic Templates", "AI Assistant")),
    LevelDefinition(level=2, title="Rising Star", xp_required=500, badge="⭐",
                    perks=("Custom Templates", "Advanced AI")),
    LevelDefinition(level=3, title="Content Creator", xp_required=1500, badge="🎬",
                    perks=("Analytics Access", "Priority Support")),
    LevelDefinition(level=4, title="Established Creator", xp_required=3000, badge="🏆",
                    perks=("Collaboration Tools", "Beta Features")),
    LevelDefinition(level=5, title="Professional Creator", xp_required=5000, badge="💎",
                    perks=("Advanced Analytics", "Custom Branding")),
    LevelDefinition(level=6, title="Influencer", xp_required=8000, badge="🌟",
                    perks=("VIP Support", "Exclusive Content")),
    LevelDefinition(level=7, title="Content Expert", xp_required=12000, badge="🎯",
                    perks=("Mentorship Program", "Speaking Opportunities")),
    LevelDefinition(level=8, title="Platform Leader", xp_required=17000, badge="👑",
                    perks=("Advisory Board", "Revenue Share")),
    LevelDefinition(level=9, title="Industry Pioneer", xp_required=25000, badge="🚀",
                    perks=("Custom Features", "Partnership Opportunities")),
    LevelDefinition(level=10, title="Creator Legend", xp_required=35000, badge="🌈",
                    perks=("Lifetime Benefits", "Legacy Badge")),
)


def validate_levels(levels: Sequence[LevelDefinition]) -> None:
    """Raise InvalidStateError unless levels are contiguous from 1 with rising thresholds."""
    if not levels:
        raise InvalidStateError("Level table is empty")
    if levels[0].xp_required != 0:
        raise InvalidStateError("Level 1 must start at 0 XP")
    for expected, entry in enumerate(levels, start=1):
        if entry.level != expected:
            raise InvalidStateError(f"Level {entry.level} out of sequence, expected {expected}")
    for prev, entry in zip(levels, levels[1:]):
        if entry.xp_required <= prev.xp_required:
            raise InvalidStateError(
                f"Level {entry.level} threshold {entry.xp_required} does not exceed "
                f"level {prev.level} threshold {prev.xp_required}"
            )


def compute_level(total_xp: int, levels: Sequence[LevelDefinition] = LEVEL_THRESHOLDS) -> dict:
    """Compute level info from total XP.

    The last level whose threshold is <= total_xp wins. Past the final
    threshold the level is capped and progress is 1.0.
    """
    thresholds = [entry.xp_required for entry in levels]
    index = max(bisect_right(thresholds, total_xp) - 1, 0)
    current = levels[index]

    if index == len(levels) - 1:
        return {
            "level": current.level,
            "title": current.title,
            "badge": current.badge,
            "perks": list(current.perks),
            "required_xp": current.xp_required,
            "next_level_xp": current.xp_required,
            "next_title": current.title,
            "progress": 1.0,
        }

    next_level = levels[index + 1]
    span = next_level.xp_required - current.xp_required
    progress = (total_xp - current.xp_required) / span

    return {
        "level": current.level,
        "title": current.title,
        "badge": current.badge,
        "perks": list(current.perks),
        "required_xp": current.xp_required,
        "next_level_xp": next_level.xp_required,
        "next_title": next_level.title,
        "progress": min(1.0, max(0.0, progress)),
    }
