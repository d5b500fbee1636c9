"""Tests for the blocking rule engine, block lists and the polled rule installer."""

import itertools

import pytest

from blockd.blocking.blocklist import DEFAULT_FOCUS_DOMAINS, BlockList
from blockd.blocking.focus_mode import FocusModeController
from blockd.blocking.rules import BlockingRuleEngine, BlockReason, RuleSet
from blockd.blocking.temporary_access import TemporaryAccessStore
from blockd.browser.rule_installer import PolledRuleInstaller
from blockd.core import store as keys
from blockd.errors import RuleInstallFailure

BLOCK_PAGE = "chrome-extension://blockd/blocked-redirect.html"


@pytest.fixture
def parts(clock, store, installer):
    blocklist = BlockList(store, focus_defaults=("youtube.com", "reddit.com"))
    focus = FocusModeController(clock, clock, store)
    access = TemporaryAccessStore(clock, clock, store)
    engine = BlockingRuleEngine(blocklist, focus, access, installer, BLOCK_PAGE)
    return blocklist, focus, access, engine


# ── BlockList ───────────────────────────────────────────────────────────────

class TestBlockList:
    def test_block_is_idempotent(self, store):
        bl = BlockList(store)
        assert bl.block("www.Reddit.com") is True
        assert bl.block("reddit.com") is False
        assert store.snapshot()[keys.BLOCKED_SITES] == ["reddit.com"]

    def test_unblock(self, store):
        bl = BlockList(store)
        bl.block("reddit.com")
        assert bl.unblock("https://reddit.com/r/x") is True
        assert bl.unblock("reddit.com") is False
        assert store.snapshot()[keys.BLOCKED_SITES] == []

    def test_toggle_focus_domain(self, store):
        bl = BlockList(store, focus_defaults=())
        assert bl.toggle_focus_domain("news.ycombinator.com") is True
        assert bl.toggle_focus_domain("news.ycombinator.com") is False
        assert store.snapshot()[keys.FOCUS_MODE_SITES] == []

    def test_load_defaults_and_normalises(self, store):
        store.set({keys.BLOCKED_SITES: ["www.reddit.com", "reddit.com", "not valid!"]})
        bl = BlockList(store)
        bl.load()
        assert bl.blocked == {"reddit.com"}
        assert bl.focus == set(DEFAULT_FOCUS_DOMAINS)

    def test_load_keeps_saved_focus_set(self, store):
        store.set({keys.FOCUS_MODE_SITES: ["twitch.tv"]})
        bl = BlockList(store)
        bl.load()
        assert bl.focus == {"twitch.tv"}


# ── Rule engine ─────────────────────────────────────────────────────────────

class TestRuleEngine:
    def test_no_inputs_no_rules(self, parts):
        *_, engine = parts
        assert engine.evaluate() == RuleSet()

    def test_individual_block_rule_shape(self, parts):
        blocklist, _, _, engine = parts
        blocklist.block("twitter.com")
        (rule,) = engine.evaluate().rules
        assert rule.id == 1
        assert rule.domain == "twitter.com"
        assert rule.reason == BlockReason.INDIVIDUAL
        assert rule.priority == 1
        assert rule.redirect_url == f"{BLOCK_PAGE}?site=twitter.com"
        d = rule.to_dict()
        assert d["condition"]["urlFilter"] == "||twitter.com^"
        assert d["condition"]["resourceTypes"] == ["main_frame"]
        assert d["action"] == {"type": "redirect", "redirect": {"url": rule.redirect_url}}

    def test_focus_rules_only_while_active(self, parts):
        _, focus, _, engine = parts
        assert engine.evaluate().domains == ()
        focus.activate(30)
        rules = engine.evaluate().rules
        assert [r.domain for r in rules] == ["reddit.com", "youtube.com"]
        assert all(r.reason == BlockReason.FOCUS for r in rules)
        assert all(r.redirect_url.endswith("&focus=true") for r in rules)

    def test_individual_wins_over_focus(self, parts):
        blocklist, focus, _, engine = parts
        blocklist.block("reddit.com")
        focus.activate(30)
        reasons = {r.domain: r.reason for r in engine.evaluate().rules}
        assert reasons == {"reddit.com": BlockReason.INDIVIDUAL, "youtube.com": BlockReason.FOCUS}

    def test_temporary_access_suppresses_both_kinds(self, parts):
        blocklist, focus, access, engine = parts
        blocklist.block("reddit.com")
        focus.activate(30)
        access.grant("reddit.com", 5)
        access.grant("youtube.com", 5)
        assert engine.evaluate().domains == ()

    def test_ids_are_dense_and_ordered(self, parts):
        blocklist, _, _, engine = parts
        for d in ("c.com", "a.com", "b.com"):
            blocklist.block(d)
        rules = engine.evaluate().rules
        assert [r.id for r in rules] == [1, 2, 3]
        assert [r.domain for r in rules] == ["a.com", "b.com", "c.com"]

    def test_evaluate_is_deterministic(self, parts):
        blocklist, focus, _, engine = parts
        blocklist.block("x.com")
        focus.activate(5)
        assert engine.evaluate() == engine.evaluate()

    @pytest.mark.parametrize(
        "individual, in_focus_set, focus_on, granted",
        list(itertools.product([False, True], repeat=4)),
    )
    def test_blocking_predicate(self, parts, individual, in_focus_set, focus_on, granted):
        blocklist, focus, access, engine = parts
        domain = "example.org"
        if individual:
            blocklist.block(domain)
        if in_focus_set:
            blocklist.toggle_focus_domain(domain)
        if focus_on:
            focus.activate(10)
        if granted:
            access.grant(domain, 10)
        expected = (individual or (focus_on and in_focus_set)) and not granted
        assert engine.is_blocked(domain) is expected
        assert (domain in engine.evaluate()) is expected

    def test_recompute_installs_and_counts(self, parts, installer):
        blocklist, _, _, engine = parts
        blocklist.block("reddit.com")
        rule_set = engine.recompute()
        assert engine.current == rule_set
        assert engine.recompute_count == 1
        assert installer.rule_set == rule_set

    def test_install_failure_is_logged_not_raised(self, clock, store):
        class BrokenInstaller:
            def install(self, rule_set):
                raise RuleInstallFailure("extension refused")

        blocklist = BlockList(store)
        blocklist.block("reddit.com")
        engine = BlockingRuleEngine(
            blocklist,
            FocusModeController(clock, clock, store),
            TemporaryAccessStore(clock, clock, store),
            BrokenInstaller(),
            BLOCK_PAGE,
        )
        rule_set = engine.recompute()
        assert rule_set.domains == ("reddit.com",)


# ── PolledRuleInstaller ─────────────────────────────────────────────────────

class TestPolledRuleInstaller:
    def test_version_moves_only_on_change(self, parts):
        blocklist, _, _, engine = parts
        installer = PolledRuleInstaller()
        installer.install(engine.evaluate())
        assert installer.version == 1
        installer.install(engine.evaluate())
        assert installer.version == 1
        blocklist.block("reddit.com")
        installer.install(engine.evaluate())
        snap = installer.snapshot()
        assert snap["version"] == 2
        assert [r["domain"] for r in snap["rules"]] == ["reddit.com"]
