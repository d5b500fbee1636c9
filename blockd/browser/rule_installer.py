"""
Rule installer — hands the computed rule set to the browser extension.

The extension owns the declarative network rule API, so the engine cannot
install rules itself. PolledRuleInstaller keeps the latest rule set behind a
version counter; the extension polls GET /rules and replaces its dynamic
rules whenever the version moves. Swapping one immutable RuleSet reference
means a poll sees either the old set or the new one, never a mix.
"""

from __future__ import annotations

import logging
from typing import Protocol

from ..blocking.rules import RuleSet

logger = logging.getLogger(__name__)


class RuleInstaller(Protocol):
    def install(self, rule_set: RuleSet) -> None: ...


class PolledRuleInstaller:

    def __init__(self):
        self.rule_set = RuleSet()
        self.version = 0

    def install(self, rule_set: RuleSet) -> None:
        if rule_set == self.rule_set and self.version:
            return
        self.rule_set = rule_set
        self.version += 1
        logger.debug(f"Rule set v{self.version} published ({len(rule_set)} rules)")

    def snapshot(self) -> dict:
        return {"version": self.version, "rules": self.rule_set.to_list()}
