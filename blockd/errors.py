"""
Error taxonomy shared by every Blockd component.

None of these is fatal: the orchestrator turns each into a
``{"success": False, "error": ...}`` command response.
"""

from __future__ import annotations

import math


class BlockdError(Exception):
    """Base class for all engine errors."""


class ValidationError(BlockdError):
    """Malformed input rejected before any state changed."""


class PersistenceFailure(BlockdError):
    """The durable store could not be read or written."""


class RuleInstallFailure(BlockdError):
    """The rule installer refused or failed to apply a rule set."""


class NotFoundError(BlockdError):
    """The referenced object does not exist (or no longer does)."""


class ChallengeNotFound(NotFoundError):
    def __init__(self, challenge_id: str, reason: str = "not found or already resolved"):
        self.challenge_id = challenge_id
        super().__init__(f"Challenge {challenge_id!r} {reason}")


class NoActiveGrant(NotFoundError):
    def __init__(self, domain: str):
        self.domain = domain
        super().__init__(f"No active temporary access to extend for {domain}")


class CooldownActive(BlockdError):
    """A new challenge was requested before the post-failure cooldown elapsed."""

    def __init__(self, remaining_seconds: float):
        self.remaining_seconds = remaining_seconds
        super().__init__(
            f"Too many incorrect answers. Try again in {math.ceil(remaining_seconds)} seconds."
        )
