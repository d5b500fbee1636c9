"""
Blocking Rule Engine — turns the current blocking inputs into a rule set.

A domain is blocked iff it is individually blocked, or focus mode is active
and it belongs to the focus group, and it holds no valid temporary access
grant. The engine keeps no state of its own: every recompute() reads the
block lists, the focus status and the live grants afresh, so two calls with
nothing changed in between produce equal rule sets.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple
from urllib.parse import quote

from ..core.domains import normalize_domain
from ..errors import RuleInstallFailure
from .blocklist import BlockList
from .focus_mode import FocusModeController
from .temporary_access import TemporaryAccessStore

logger = logging.getLogger(__name__)


class BlockReason(str, Enum):
    INDIVIDUAL = "individual"
    FOCUS = "focus"


# Informational: both kinds redirect, either alone is enough to block.
PRIORITY = {BlockReason.INDIVIDUAL: 1, BlockReason.FOCUS: 2}


@dataclass(frozen=True)
class BlockRule:
    """One redirect rule, shaped for the extension's declarative rule API."""
    id: int
    domain: str
    reason: BlockReason
    priority: int
    redirect_url: str

    @property
    def url_filter(self) -> str:
        return f"||{self.domain}^"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "priority": self.priority,
            "action": {"type": "redirect", "redirect": {"url": self.redirect_url}},
            "condition": {"urlFilter": self.url_filter, "resourceTypes": ["main_frame"]},
            "domain": self.domain,
            "reason": self.reason.value,
        }


@dataclass(frozen=True)
class RuleSet:
    rules: Tuple[BlockRule, ...] = ()

    @property
    def domains(self) -> Tuple[str, ...]:
        return tuple(r.domain for r in self.rules)

    def __len__(self) -> int:
        return len(self.rules)

    def __contains__(self, domain: object) -> bool:
        return domain in self.domains

    def to_list(self) -> list:
        return [r.to_dict() for r in self.rules]


class BlockingRuleEngine:

    def __init__(
        self,
        blocklist: BlockList,
        focus: FocusModeController,
        access: TemporaryAccessStore,
        installer,
        block_page_url: str,
    ):
        self._blocklist = blocklist
        self._focus = focus
        self._access = access
        self._installer = installer
        self._block_page_url = block_page_url
        self.current: RuleSet = RuleSet()
        self.recompute_count = 0

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def block_reason(self, domain: str) -> Optional[BlockReason]:
        """Why *domain* (already normalised) is blocked right now, or None."""
        if domain in self._blocklist.blocked:
            reason = BlockReason.INDIVIDUAL
        elif self._focus.is_active() and domain in self._blocklist.focus:
            reason = BlockReason.FOCUS
        else:
            return None
        if self._access.has_valid_access(domain):
            return None
        return reason

    def is_blocked(self, domain: str) -> bool:
        return self.block_reason(normalize_domain(domain)) is not None

    def evaluate(self) -> RuleSet:
        """Compute the rule set for the current inputs without installing it."""
        candidates = set(self._blocklist.blocked)
        if self._focus.is_active():
            candidates |= self._blocklist.focus

        rules = []
        for domain in sorted(candidates):
            reason = self.block_reason(domain)
            if reason is None:
                logger.debug(f"Skipping rule for {domain}: temporary access")
                continue
            rules.append(BlockRule(
                id=len(rules) + 1,
                domain=domain,
                reason=reason,
                priority=PRIORITY[reason],
                redirect_url=self._redirect_url(domain, reason),
            ))
        return RuleSet(tuple(rules))

    # ------------------------------------------------------------------
    # Installation
    # ------------------------------------------------------------------

    def recompute(self) -> RuleSet:
        """Evaluate and install; the installer swaps the whole set at once."""
        rule_set = self.evaluate()
        self.recompute_count += 1
        try:
            self._installer.install(rule_set)
        except RuleInstallFailure as e:
            logger.error(f"Rule installation failed, {len(rule_set)} rules pending: {e}")
        self.current = rule_set
        logger.info(f"Updated blocking rules: {len(rule_set)} active")
        return rule_set

    def _redirect_url(self, domain: str, reason: BlockReason) -> str:
        url = f"{self._block_page_url}?site={quote(domain, safe='')}"
        if reason == BlockReason.FOCUS:
            url += "&focus=true"
        return url
