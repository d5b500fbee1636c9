"""
Daily usage records — per local date, per domain, total time and sessions.

Layout of the persisted ``timeData`` record:

    {
        "2024-05-01": {
            "reddit.com": {
                "totalTime": 95,
                "sessions": [{"timestamp": 1714550000.0, "duration": 95}]
            }
        }
    }

Within a day, records only grow: a commit either appends a session or adds
to the duration of the most recent one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List

from ..core import store as keys
from ..core.clock import Clock, local_date, local_date_days_ago
from ..core.store import PersistenceAdapter
from ..errors import PersistenceFailure

logger = logging.getLogger(__name__)


@dataclass
class SiteUsage:
    domain: str
    total_seconds: int
    session_count: int


class UsageStore:

    def __init__(self, clock: Clock, store: PersistenceAdapter):
        self._clock = clock
        self._store = store

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def commit(self, domain: str, seconds: int, new_session: bool) -> None:
        """
        Add *seconds* for *domain* under today's date. Raises
        PersistenceFailure if the record cannot be read or written.
        """
        now = self._clock.now()
        today = local_date(now)
        time_data = self._load_all()

        day = time_data.setdefault(today, {})
        site = day.setdefault(domain, {"totalTime": 0, "sessions": []})
        site["totalTime"] = site.get("totalTime", 0) + seconds
        sessions = site.setdefault("sessions", [])

        if new_session or not sessions:
            sessions.append({"timestamp": now, "duration": seconds})
        else:
            sessions[-1]["duration"] = sessions[-1].get("duration", 0) + seconds

        self._store.set({keys.TIME_DATA: time_data})
        logger.debug(
            f"Updated {domain}: +{seconds}s (total {site['totalTime']}s, "
            f"{len(sessions)} sessions)"
        )

    def cleanup(self, retention_days: int) -> int:
        """Drop days older than *retention_days*; returns how many were removed."""
        try:
            time_data = self._load_all()
        except PersistenceFailure as e:
            logger.error(f"Skipping usage cleanup: {e}")
            return 0
        cutoff = local_date_days_ago(self._clock.now(), retention_days)
        stale = [day for day in time_data if day < cutoff]
        if not stale:
            return 0
        for day in stale:
            del time_data[day]
        try:
            self._store.set({keys.TIME_DATA: time_data})
        except PersistenceFailure as e:
            logger.error(f"Could not persist usage cleanup: {e}")
            return 0
        logger.info(f"Removed usage data for {len(stale)} days older than {cutoff}")
        return len(stale)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def day(self, date: str) -> Dict[str, Any]:
        return self._load_all().get(date, {})

    def today(self) -> Dict[str, Any]:
        return self.day(local_date(self._clock.now()))

    def days(self) -> List[str]:
        return sorted(self._load_all())

    def today_total(self) -> int:
        return sum(site.get("totalTime", 0) for site in self.today().values())

    def top_sites(self, limit: int = 5) -> List[SiteUsage]:
        usage = [
            SiteUsage(
                domain=domain,
                total_seconds=site.get("totalTime", 0),
                session_count=len(site.get("sessions", [])),
            )
            for domain, site in self.today().items()
        ]
        usage.sort(key=lambda u: (-u.total_seconds, u.domain))
        return usage[:max(0, limit)]

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _load_all(self) -> Dict[str, Any]:
        return self._store.get([keys.TIME_DATA]).get(keys.TIME_DATA) or {}
