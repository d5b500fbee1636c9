"""
Temporary Access Store — time-boxed exceptions for otherwise blocked domains.

The stored expiry timestamp is authoritative. The revoke timer attached to
each grant is only a prompt to act on time; ``has_valid_access`` always
compares against the clock, and ``load()`` rebuilds timers from the stored
timestamps after a restart.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional

from ..core import store as keys
from ..core.clock import CancellableHandle, Clock, Scheduler
from ..core.domains import normalize_domain
from ..core.store import PersistenceAdapter
from ..errors import NoActiveGrant, PersistenceFailure, ValidationError

logger = logging.getLogger(__name__)

MAX_GRANT_MINUTES = 24 * 60


def _check_minutes(minutes: float) -> float:
    if isinstance(minutes, bool) or not isinstance(minutes, (int, float)):
        raise ValidationError("Minutes must be a number")
    if not 0 < minutes <= MAX_GRANT_MINUTES:
        raise ValidationError(f"Minutes must be between 0 and {MAX_GRANT_MINUTES}")
    return float(minutes)


class TemporaryAccessStore:

    def __init__(self, clock: Clock, scheduler: Scheduler, store: PersistenceAdapter):
        self._clock = clock
        self._scheduler = scheduler
        self._store = store
        self._grants: Dict[str, float] = {}              # domain -> expiry (unix s)
        self._timers: Dict[str, CancellableHandle] = {}
        self._listeners: List[Callable[[], None]] = []

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_valid_access(self, domain: str) -> bool:
        expiry = self._grants.get(normalize_domain(domain))
        return expiry is not None and expiry > self._clock.now()

    def expiry_for(self, domain: str) -> Optional[float]:
        expiry = self._grants.get(normalize_domain(domain))
        if expiry is None or expiry <= self._clock.now():
            return None
        return expiry

    def active_grants(self) -> Dict[str, float]:
        now = self._clock.now()
        return {d: exp for d, exp in self._grants.items() if exp > now}

    def timer_count(self) -> int:
        return len(self._timers)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def grant(self, domain: str, minutes: float) -> float:
        """Grant (or re-grant) access for *minutes*; returns the new expiry."""
        domain = normalize_domain(domain)
        duration_s = _check_minutes(minutes) * 60
        expiry = self._clock.now() + duration_s

        self._grants[domain] = expiry
        self._schedule(domain, duration_s)
        self._save()
        logger.info(f"Granted {minutes:g} minutes of access to {domain}")
        self._notify()
        return expiry

    def extend(self, domain: str, minutes: float) -> float:
        """Push an existing, still valid grant further out; returns the new expiry."""
        domain = normalize_domain(domain)
        extra_s = _check_minutes(minutes) * 60
        now = self._clock.now()
        current = self._grants.get(domain)
        if current is None or current <= now:
            raise NoActiveGrant(domain)

        expiry = current + extra_s
        self._grants[domain] = expiry
        self._schedule(domain, expiry - now)
        self._save()
        logger.info(f"Extended access to {domain} by {minutes:g} minutes")
        self._notify()
        return expiry

    def revoke(self, domain: str) -> bool:
        """Remove any grant for *domain*. Returns False when there was none."""
        domain = normalize_domain(domain)
        self._cancel_timer(domain)
        if self._grants.pop(domain, None) is None:
            return False
        self._save()
        logger.info(f"Revoked temporary access for {domain}")
        self._notify()
        return True

    def clear(self) -> None:
        for domain in list(self._timers):
            self._cancel_timer(domain)
        self._grants.clear()

    # ------------------------------------------------------------------
    # Restart recovery
    # ------------------------------------------------------------------

    def load(self) -> None:
        """
        Rebuild grants and timers from the store. Expired entries are dropped
        and the cleaned map written back. Entries persisted under a "www."
        key are folded into their canonical domain, keeping the later expiry.
        """
        try:
            saved = self._store.get([keys.TEMP_ACCESS]).get(keys.TEMP_ACCESS) or {}
        except PersistenceFailure as e:
            logger.error(f"Could not load temporary access grants: {e}")
            return

        now = self._clock.now()
        self.clear()
        dirty = False
        for raw_domain, expiry in saved.items():
            try:
                domain = normalize_domain(raw_domain)
                expiry = float(expiry)
            except (ValidationError, TypeError, ValueError):
                logger.warning(f"Dropping malformed temporary access entry {raw_domain!r}")
                dirty = True
                continue
            if domain != raw_domain:
                dirty = True
            if expiry <= now:
                logger.info(f"Dropping expired temporary access for {domain}")
                dirty = True
                continue
            self._grants[domain] = max(expiry, self._grants.get(domain, 0.0))

        for domain, expiry in self._grants.items():
            self._schedule(domain, expiry - now)
            logger.info(f"Restored temporary access for {domain} ({int(expiry - now)}s remaining)")

        if dirty:
            self._save()

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def register_listener(self, fn: Callable[[], None]) -> None:
        """Register a callback invoked after every change to the grant set."""
        self._listeners.append(fn)

    def _notify(self) -> None:
        for listener in self._listeners:
            try:
                listener()
            except Exception:
                logger.exception("Temporary access listener failed")

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _schedule(self, domain: str, delay_s: float) -> None:
        self._cancel_timer(domain)
        self._timers[domain] = self._scheduler.after(delay_s, lambda: self._on_expired(domain))

    def _cancel_timer(self, domain: str) -> None:
        handle = self._timers.pop(domain, None)
        if handle is not None:
            handle.cancel()

    def _on_expired(self, domain: str) -> None:
        self._timers.pop(domain, None)
        expiry = self._grants.get(domain)
        if expiry is not None and expiry > self._clock.now():
            # extended after this timer was armed; honour the stored expiry
            self._schedule(domain, expiry - self._clock.now())
            return
        logger.info(f"Temporary access for {domain} expired")
        self.revoke(domain)

    def _save(self) -> None:
        try:
            self._store.set({keys.TEMP_ACCESS: dict(self._grants)})
        except PersistenceFailure as e:
            logger.error(f"Could not persist temporary access grants: {e}")
