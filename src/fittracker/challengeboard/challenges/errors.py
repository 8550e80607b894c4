"""Exceptions raised by challenge operations.

All of them are returned synchronously to the caller and none are retried.
Awarding a reward twice is not an error and has no exception here.
"""

from typing import Optional


class ChallengeError(Exception):
    """Base exception for challenge engine errors."""

    def __init__(
        self,
        message: str,
        challenge_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.challenge_id = challenge_id
        self.user_id = user_id


class InvalidChallenge(ChallengeError):
    """Raised when a challenge definition is rejected."""

    pass


class UnknownChallenge(ChallengeError):
    """Raised when no challenge exists with the given id."""

    def __init__(self, challenge_id: str):
        super().__init__(f"Challenge not found: {challenge_id}", challenge_id=challenge_id)


class DuplicateParticipant(ChallengeError):
    """Raised when a user joins a challenge they are already in."""

    def __init__(self, challenge_id: str, user_id: str):
        super().__init__(
            f"User {user_id} already joined challenge {challenge_id}",
            challenge_id=challenge_id,
            user_id=user_id,
        )


class CapacityExceeded(ChallengeError):
    """Raised when a challenge already has max_participants members."""

    def __init__(self, challenge_id: str, max_participants: int):
        super().__init__(
            f"Challenge {challenge_id} is full ({max_participants} participants)",
            challenge_id=challenge_id,
        )
        self.max_participants = max_participants


class ChallengeClosed(ChallengeError):
    """Raised when writing to a completed or cancelled challenge."""

    def __init__(self, challenge_id: str, status: str):
        super().__init__(
            f"Challenge {challenge_id} is {status}",
            challenge_id=challenge_id,
        )
        self.status = status


class UnknownParticipant(ChallengeError):
    """Raised when a user is not on the challenge roster."""

    def __init__(self, challenge_id: str, user_id: str):
        super().__init__(
            f"User {user_id} has not joined challenge {challenge_id}",
            challenge_id=challenge_id,
            user_id=user_id,
        )


class UnknownRequirement(ChallengeError):
    """Raised when a requirement id does not belong to the challenge."""

    def __init__(self, challenge_id: str, requirement_id: str):
        super().__init__(
            f"Challenge {challenge_id} has no requirement {requirement_id}",
            challenge_id=challenge_id,
        )
        self.requirement_id = requirement_id


class InvalidProgressDelta(ChallengeError):
    """Raised for negative or non-finite progress deltas."""

    def __init__(self, delta: float, challenge_id: Optional[str] = None):
        super().__init__(
            f"Progress delta must be a finite non-negative number, got {delta}",
            challenge_id=challenge_id,
        )
        self.delta = delta


class UnknownTeam(ChallengeError):
    """Raised when no team exists with the given id."""

    def __init__(self, team_id: str):
        super().__init__(f"Team not found: {team_id}")
        self.team_id = team_id


class DuplicateTeam(ChallengeError):
    """Raised when creating a team with an id that is already taken."""

    def __init__(self, team_id: str):
        super().__init__(f"Team id already exists: {team_id}")
        self.team_id = team_id
