"""
Block lists — the individually blocked domains and the focus mode group.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Set

from ..core import store as keys
from ..core.domains import normalize_domain
from ..core.store import PersistenceAdapter
from ..errors import PersistenceFailure, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_FOCUS_DOMAINS = (
    "facebook.com",
    "twitter.com",
    "instagram.com",
    "tiktok.com",
    "youtube.com",
    "netflix.com",
    "reddit.com",
    "twitch.tv",
)


def _normalized_set(values: Iterable[str], label: str) -> Set[str]:
    result: Set[str] = set()
    for value in values:
        try:
            result.add(normalize_domain(value))
        except ValidationError:
            logger.warning(f"Dropping malformed {label} entry {value!r}")
    return result


class BlockList:

    def __init__(self, store: PersistenceAdapter,
                 focus_defaults: Iterable[str] = DEFAULT_FOCUS_DOMAINS):
        self._store = store
        self._focus_defaults = tuple(focus_defaults)
        self.blocked: Set[str] = set()
        self.focus: Set[str] = set(self._focus_defaults)
        self._listeners: List[Callable[[], None]] = []

    # ------------------------------------------------------------------
    # Individually blocked domains
    # ------------------------------------------------------------------

    def block(self, domain: str) -> bool:
        """Returns False when the domain was already blocked."""
        domain = normalize_domain(domain)
        if domain in self.blocked:
            return False
        self.blocked.add(domain)
        self._save(keys.BLOCKED_SITES)
        logger.info(f"Blocked website: {domain}")
        self._notify()
        return True

    def unblock(self, domain: str) -> bool:
        domain = normalize_domain(domain)
        if domain not in self.blocked:
            return False
        self.blocked.discard(domain)
        self._save(keys.BLOCKED_SITES)
        logger.info(f"Unblocked website: {domain}")
        self._notify()
        return True

    # ------------------------------------------------------------------
    # Focus mode group
    # ------------------------------------------------------------------

    def toggle_focus_domain(self, domain: str) -> bool:
        """Add or remove *domain* from the focus group; returns True if now a member."""
        domain = normalize_domain(domain)
        if domain in self.focus:
            self.focus.discard(domain)
            member = False
        else:
            self.focus.add(domain)
            member = True
        self._save(keys.FOCUS_MODE_SITES)
        logger.info(f"{'Added' if member else 'Removed'} focus mode site: {domain}")
        self._notify()
        return member

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> None:
        try:
            saved = self._store.get([keys.BLOCKED_SITES, keys.FOCUS_MODE_SITES])
        except PersistenceFailure as e:
            logger.error(f"Could not load block lists: {e}")
            return
        self.blocked = _normalized_set(saved.get(keys.BLOCKED_SITES) or [], "blocked site")
        if keys.FOCUS_MODE_SITES in saved:
            self.focus = _normalized_set(saved[keys.FOCUS_MODE_SITES] or [], "focus site")
        else:
            self.focus = set(self._focus_defaults)
        logger.info(
            f"Block lists loaded: {len(self.blocked)} blocked, {len(self.focus)} focus sites"
        )

    def reset(self) -> None:
        self.blocked = set()
        self.focus = set(self._focus_defaults)

    def _save(self, key: str) -> None:
        values = self.blocked if key == keys.BLOCKED_SITES else self.focus
        try:
            self._store.set({key: sorted(values)})
        except PersistenceFailure as e:
            logger.error(f"Could not persist {key}: {e}")

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
                logger.exception("Block list listener failed")
