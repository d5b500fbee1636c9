"""
Focus Mode — a time-boxed group block over the focus domain set.

Activation is immediate. Ending it early requires a solved challenge, which
the caller obtains from the ChallengeGate before calling deactivate(); this
module performs no verification itself. Expiry happens through a scheduled
callback and, should that timer be lost, lazily on the next status read or
on the next start.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from ..core import store as keys
from ..core.clock import CancellableHandle, Clock, Scheduler
from ..core.store import PersistenceAdapter
from ..errors import PersistenceFailure, ValidationError

logger = logging.getLogger(__name__)

MAX_FOCUS_MINUTES = 24 * 60


@dataclass
class FocusState:
    active: bool = False
    end_time: Optional[float] = None

    def remaining_seconds(self, now: float) -> float:
        if not self.active or self.end_time is None:
            return 0.0
        return max(0.0, self.end_time - now)

    def is_stale(self, now: float) -> bool:
        return self.active and self.end_time is not None and now >= self.end_time

    def to_record(self) -> dict:
        return {"active": self.active, "endTime": self.end_time}

    @classmethod
    def from_record(cls, record: Optional[dict]) -> "FocusState":
        if not record or not record.get("active"):
            return cls()
        end_time = record.get("endTime")
        return cls(active=True, end_time=float(end_time) if end_time is not None else None)


class FocusModeController:

    def __init__(self, clock: Clock, scheduler: Scheduler, store: PersistenceAdapter):
        self._clock = clock
        self._scheduler = scheduler
        self._store = store
        self._timer: Optional[CancellableHandle] = None
        self._listeners: List[Callable[[], None]] = []
        self.state = FocusState()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def activate(self, duration_minutes: float) -> FocusState:
        if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, (int, float)):
            raise ValidationError("Focus duration must be a number of minutes")
        if not 0 < duration_minutes <= MAX_FOCUS_MINUTES:
            raise ValidationError(f"Focus duration must be between 0 and {MAX_FOCUS_MINUTES} minutes")

        now = self._clock.now()
        end_time = now + duration_minutes * 60
        if self.is_active() and self.state.end_time >= end_time:
            # shortening would be an unchallenged early exit
            logger.info("Focus mode already active until a later time; keeping it")
            return self.state

        self.state = FocusState(active=True, end_time=end_time)
        self._arm(end_time - now)
        self._save()
        logger.info(f"Focus mode activated for {duration_minutes:g} minutes")
        self._notify()
        return self.state

    def deactivate(self) -> FocusState:
        """End focus mode. Callers must have obtained a solved challenge first."""
        if not self.state.active:
            self._disarm()
            return self.state
        self._to_inactive()
        logger.info("Focus mode deactivated")
        return self.state

    def auto_expire(self) -> None:
        """Scheduled end of the focus window; unconditional."""
        self._timer = None
        if self.state.active:
            self._to_inactive()
            logger.info("Focus mode expired")

    def reset(self) -> None:
        """Drop in-memory state and the timer; the store is cleared by the caller."""
        self._disarm()
        self.state = FocusState()

    def is_active(self) -> bool:
        """Pure read: a window whose end time has passed counts as inactive."""
        return self.state.active and not self.state.is_stale(self._clock.now())

    def status(self) -> FocusState:
        """Current state, correcting a stale active window first."""
        if self.state.is_stale(self._clock.now()):
            logger.info("Focus mode window passed without its timer firing; ending it")
            self._to_inactive()
        return self.state

    # ------------------------------------------------------------------
    # Restart recovery
    # ------------------------------------------------------------------

    def load(self) -> FocusState:
        try:
            record = self._store.get([keys.FOCUS_MODE_STATUS]).get(keys.FOCUS_MODE_STATUS)
        except PersistenceFailure as e:
            logger.error(f"Could not load focus mode status: {e}")
            return self.state

        try:
            self.state = FocusState.from_record(record)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring malformed focus mode status {record!r}")
            self.state = FocusState()

        now = self._clock.now()
        if self.state.active and self.state.end_time is None:
            logger.warning("Active focus mode without an end time; ending it")
            self.state = FocusState()
            self._save()
        elif self.state.is_stale(now):
            logger.info("Focus mode expired while the engine was down")
            self.state = FocusState()
            self._save()
        elif self.state.active:
            self._arm(self.state.end_time - now)
            logger.info(f"Restored focus mode ({int(self.state.end_time - now)}s remaining)")
        return self.state

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def register_listener(self, fn: Callable[[], None]) -> None:
        self._listeners.append(fn)

    def _notify(self) -> None:
        for listener in self._listeners:
            try:
                listener()
            except Exception:
                logger.exception("Focus mode listener failed")

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def has_pending_timer(self) -> bool:
        return self._timer is not None

    def _to_inactive(self) -> None:
        self._disarm()
        self.state = FocusState()
        self._save()
        self._notify()

    def _arm(self, delay_s: float) -> None:
        self._disarm()
        self._timer = self._scheduler.after(delay_s, self.auto_expire)

    def _disarm(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _save(self) -> None:
        try:
            self._store.set({keys.FOCUS_MODE_STATUS: self.state.to_record()})
        except PersistenceFailure as e:
            logger.error(f"Could not persist focus mode status: {e}")
