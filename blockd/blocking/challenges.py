"""
Challenge Gate — issues math challenges and verifies submitted answers.

A challenge is a precondition for a sensitive transition (temporary access to
a blocked domain, ending focus mode early). The gate only verifies; applying
the effect and enforcing any cooldown after exhaustion is the caller's job.
Exhausting one challenge also fails every other pending challenge for the
same purpose and subject, so a spare one cannot outlive the cooldown.

Challenges live in memory only. A restart invalidates everything pending,
which is fine for a short-lived UI interaction.
"""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from ..core.clock import Clock
from ..errors import ChallengeNotFound, ValidationError
from .problems import Difficulty, Problem, ProblemSupplier

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3


class ChallengePurpose(str, Enum):
    UNBLOCK = "unblock"
    FOCUS_DEACTIVATION = "focus_deactivation"


class ChallengeStatus(str, Enum):
    PENDING = "pending"
    SOLVED = "solved"
    FAILED = "failed"
    EXPIRED = "expired"


class SubmitOutcome(str, Enum):
    SOLVED = "solved"
    INCORRECT = "incorrect"      # wrong, attempts remain
    EXHAUSTED = "exhausted"      # wrong, no attempts remain; challenge is gone


@dataclass
class Challenge:
    id: str
    purpose: ChallengePurpose
    problems: List[Problem]
    created_at: float
    attempts_remaining: int
    subject_domain: Optional[str] = None
    status: ChallengeStatus = ChallengeStatus.PENDING

    def public(self) -> dict:
        return {
            "challengeId": self.id,
            "problems": [p.public() for p in self.problems],
            "attemptsRemaining": self.attempts_remaining,
            "domain": self.subject_domain,
        }


@dataclass
class ChallengeResult:
    outcome: SubmitOutcome
    challenge_id: str
    purpose: ChallengePurpose
    subject_domain: Optional[str] = None
    attempts_remaining: int = 0
    wrong_indexes: List[int] = field(default_factory=list)

    @property
    def solved(self) -> bool:
        return self.outcome == SubmitOutcome.SOLVED


def parse_answer(raw: Any) -> float:
    """
    Accept ints, integral floats and their string forms ("12", " 12 ", "12.0").
    Non-integral numbers pass through unchanged and simply never match.
    Anything else is a ValidationError.
    """
    if isinstance(raw, bool):
        raise ValidationError("Answer must be a number")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            raise ValidationError("Answer must not be empty")
        try:
            return int(text)
        except ValueError:
            try:
                raw = float(text)
            except ValueError:
                raise ValidationError(f"Answer is not a number: {raw!r}") from None
    if isinstance(raw, float):
        if not math.isfinite(raw):
            raise ValidationError("Answer must be finite")
        return int(raw) if raw.is_integer() else raw
    raise ValidationError(f"Answer is not a number: {raw!r}")


class ChallengeGate:

    def __init__(self, clock: Clock, supplier: ProblemSupplier, ttl_s: float = 600.0):
        self._clock = clock
        self._supplier = supplier
        self._ttl_s = ttl_s
        self._challenges: Dict[str, Challenge] = {}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create_challenge(
        self,
        problem_count: int,
        subject_domain: Optional[str] = None,
        purpose: ChallengePurpose = ChallengePurpose.UNBLOCK,
        difficulty: Difficulty = Difficulty.MEDIUM,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> Challenge:
        if problem_count < 1:
            raise ValidationError("A challenge needs at least one problem")
        if max_attempts < 1:
            raise ValidationError("A challenge needs at least one attempt")

        self.purge_expired()
        challenge = Challenge(
            id=uuid.uuid4().hex,
            purpose=purpose,
            problems=list(self._supplier.generate(problem_count, difficulty)),
            created_at=self._clock.now(),
            attempts_remaining=max_attempts,
            subject_domain=subject_domain,
        )
        self._challenges[challenge.id] = challenge
        logger.info(
            f"Challenge {challenge.id} created ({purpose.value}, "
            f"{problem_count} problems, subject={subject_domain})"
        )
        return challenge

    def submit(
        self,
        challenge_id: str,
        answers: Sequence[Any],
        purpose: Optional[ChallengePurpose] = None,
    ) -> ChallengeResult:
        """
        Check *answers* against the challenge. When *purpose* is given, a
        challenge issued for another purpose is reported as not found and
        left untouched.
        """
        challenge = self._challenges.get(challenge_id)
        if challenge is None or (purpose is not None and challenge.purpose != purpose):
            raise ChallengeNotFound(challenge_id)
        if self._is_expired(challenge):
            challenge.status = ChallengeStatus.EXPIRED
            del self._challenges[challenge_id]
            raise ChallengeNotFound(challenge_id, "has expired")

        parsed = [parse_answer(a) for a in answers]

        wrong = [
            i for i, problem in enumerate(challenge.problems)
            if i >= len(parsed) or parsed[i] != problem.answer
        ]
        if len(parsed) != len(challenge.problems) and not wrong:
            wrong = list(range(len(challenge.problems), len(parsed)))

        if not wrong:
            challenge.status = ChallengeStatus.SOLVED
            del self._challenges[challenge_id]
            logger.info(f"Challenge {challenge_id} solved")
            return ChallengeResult(
                outcome=SubmitOutcome.SOLVED,
                challenge_id=challenge_id,
                purpose=challenge.purpose,
                subject_domain=challenge.subject_domain,
                attempts_remaining=challenge.attempts_remaining,
            )

        challenge.attempts_remaining -= 1
        if challenge.attempts_remaining > 0:
            logger.info(
                f"Challenge {challenge_id}: incorrect, "
                f"{challenge.attempts_remaining} attempts left"
            )
            outcome = SubmitOutcome.INCORRECT
        else:
            challenge.status = ChallengeStatus.FAILED
            del self._challenges[challenge_id]
            dropped = self._drop_siblings(challenge)
            logger.info(
                f"Challenge {challenge_id}: attempts exhausted"
                + (f", dropped {dropped} sibling challenges" if dropped else "")
            )
            outcome = SubmitOutcome.EXHAUSTED

        return ChallengeResult(
            outcome=outcome,
            challenge_id=challenge_id,
            purpose=challenge.purpose,
            subject_domain=challenge.subject_domain,
            attempts_remaining=challenge.attempts_remaining,
            wrong_indexes=wrong,
        )

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    def get(self, challenge_id: str) -> Optional[Challenge]:
        return self._challenges.get(challenge_id)

    def pending(self) -> List[Challenge]:
        return list(self._challenges.values())

    def purge_expired(self) -> int:
        expired = [c for c in self._challenges.values() if self._is_expired(c)]
        for c in expired:
            c.status = ChallengeStatus.EXPIRED
            del self._challenges[c.id]
        return len(expired)

    def clear(self) -> None:
        self._challenges.clear()

    def _drop_siblings(self, challenge: Challenge) -> int:
        """Fail every other pending challenge for the same purpose and subject."""
        siblings = [
            c for c in self._challenges.values()
            if c.purpose == challenge.purpose and c.subject_domain == challenge.subject_domain
        ]
        for c in siblings:
            c.status = ChallengeStatus.FAILED
            del self._challenges[c.id]
        return len(siblings)

    def _is_expired(self, challenge: Challenge) -> bool:
        return self._clock.now() - challenge.created_at >= self._ttl_s
