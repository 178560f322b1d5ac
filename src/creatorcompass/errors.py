"""Error taxonomy for the gamification engine.

Expected outcomes (daily limit reached, claim not yet eligible, duplicate
claim) are returned as ``None``/``False`` by the services. The exceptions
below are for cases the caller has to handle differently from a normal
"no" answer.
"""

from __future__ import annotations


class GamificationError(Exception):
    """Base class for all engine errors."""


class NotFoundError(GamificationError):
    """A referenced action, challenge, reward or achievement does not exist."""


class UnknownActionError(NotFoundError):
    def __init__(self, action_id: str) -> None:
        super().__init__(f"Unknown XP action: {action_id}")
        self.action_id = action_id


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: int) -> None:
        super().__init__(f"User not found: {user_id}")
        self.user_id = user_id


class ChallengeNotFoundError(NotFoundError):
    def __init__(self, challenge_id: int) -> None:
        super().__init__(f"Challenge not found: {challenge_id}")
        self.challenge_id = challenge_id


class RewardNotFoundError(NotFoundError):
    def __init__(self, reward_id: str) -> None:
        super().__init__(f"Reward not found: {reward_id}")
        self.reward_id = reward_id


class InvalidStateError(GamificationError):
    """A state transition was requested from a state that does not allow it."""


class LimitReachedError(GamificationError):
    """A daily cap or cooldown blocks the action."""


class PersistenceError(GamificationError):
    """An atomic write could not be applied by the store."""
