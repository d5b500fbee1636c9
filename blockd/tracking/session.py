"""
Time Tracker — attributes foreground browsing time to domains.

State is either idle or tracking one open accounting window
(domain, start_time, is_new_session). Time leaves the window only through
_commit(), which writes whole seconds to the usage store and advances
start_time by exactly what it wrote, so a flush followed by a stop never
counts a second twice and fractional seconds carry over.

Window blur pauses: progress is saved and accrual stops, but the domain is
remembered so that regaining focus on the same site continues the same
session entry instead of opening a new one.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

from ..core.clock import Clock
from ..core.domains import extract_domain
from ..errors import PersistenceFailure
from .usage import UsageStore

logger = logging.getLogger(__name__)


@dataclass
class TrackingSession:
    domain: str
    start_time: float
    is_new_session: bool = True


class TimeTracker:

    def __init__(self, clock: Clock, usage: UsageStore):
        self._clock = clock
        self._usage = usage
        self.session: Optional[TrackingSession] = None
        self._paused_domain: Optional[str] = None
        self._paused_is_new = False

    @property
    def is_tracking(self) -> bool:
        return self.session is not None

    @property
    def current_domain(self) -> Optional[str]:
        if self.session is not None:
            return self.session.domain
        return self._paused_domain

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start_tracking(self, url: Optional[str]) -> Optional[str]:
        """
        Switch accounting to the site behind *url*. Internal and blank pages
        leave the tracker idle. Returns the domain now being tracked.
        """
        domain = extract_domain(url)
        # a window that has not committed yet keeps its new-session flag
        is_new_session = domain != self.current_domain or self._pending_new_session()

        self.stop_tracking()

        if domain is None:
            logger.debug(f"Not tracking {url!r}")
            return None

        self.session = TrackingSession(
            domain=domain,
            start_time=self._clock.now(),
            is_new_session=is_new_session,
        )
        logger.debug(
            f"Started tracking {domain}{' (new session)' if is_new_session else ' (continuing)'}"
        )
        return domain

    def stop_tracking(self) -> int:
        """Commit the open window and go idle. Returns the seconds committed."""
        committed = self._commit()
        if self.session is not None:
            logger.debug(f"Stopped tracking {self.session.domain}")
        self.session = None
        self._paused_domain = None
        self._paused_is_new = False
        return committed

    def flush(self) -> int:
        """Save progress of the open window without ending the session."""
        return self._commit()

    def pause(self) -> int:
        """Window lost focus: save progress, stop accruing, remember the domain."""
        if self.session is None:
            return 0
        committed = self._commit()
        self._paused_domain = self.session.domain
        self._paused_is_new = self.session.is_new_session
        self.session = None
        logger.debug(f"Paused tracking {self._paused_domain}")
        return committed

    def reset(self) -> None:
        """Forget the open window without committing it."""
        self.session = None
        self._paused_domain = None
        self._paused_is_new = False

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def get_current_status(self) -> dict:
        if self.session is None:
            return {
                "isTracking": False,
                "currentDomain": self._paused_domain,
                "sessionDuration": 0,
                "sessionStartTime": None,
            }
        return {
            "isTracking": True,
            "currentDomain": self.session.domain,
            "sessionDuration": self.live_seconds(),
            "sessionStartTime": self.session.start_time,
        }

    def live_seconds(self) -> int:
        if self.session is None:
            return 0
        return max(0, math.floor(self._clock.now() - self.session.start_time))

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _pending_new_session(self) -> bool:
        if self.session is not None:
            return self.session.is_new_session
        return self._paused_domain is not None and self._paused_is_new

    def _commit(self) -> int:
        session = self.session
        if session is None:
            return 0
        elapsed = self.live_seconds()
        if elapsed <= 0:
            return 0
        try:
            self._usage.commit(session.domain, elapsed, new_session=session.is_new_session)
        except PersistenceFailure as e:
            # keep the window open so the next commit retries these seconds
            logger.error(f"Could not save {elapsed}s for {session.domain}: {e}")
            return 0
        session.start_time += elapsed
        session.is_new_session = False
        return elapsed
