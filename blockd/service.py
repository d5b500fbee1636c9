"""
Blockd Service — composition root for the blocking and tracking engine.

Builds every component around one injected clock, scheduler, store and set
of browser collaborators, restores state on start, routes browser events to
the time tracker and dispatches commands. Each command type maps to exactly
one handler; the mapping is checked against the command union at import.

All methods are synchronous and expected to run on a single thread (the
API process's event loop), so handlers never interleave.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple, Union
from urllib.parse import parse_qs, urlparse

import pydantic

from . import commands as cmd
from .blocking.blocklist import BlockList
from .blocking.challenges import ChallengeGate, ChallengePurpose, ChallengeResult, SubmitOutcome
from .blocking.focus_mode import FocusModeController
from .blocking.problems import Difficulty, MathProblemGenerator, ProblemSupplier
from .blocking.rules import BlockingRuleEngine
from .blocking.temporary_access import TemporaryAccessStore
from .browser.events import BrowserEvent, BrowserEventType
from .browser.rule_installer import RuleInstaller
from .browser.tabs import TabDirectory
from .config import config
from .core.clock import Clock, Scheduler
from .core.domains import normalize_domain
from .core.store import PersistenceAdapter
from .errors import BlockdError, CooldownActive, ValidationError
from .settings import get_settings
from .tracking.session import TimeTracker
from .tracking.usage import UsageStore

logger = logging.getLogger(__name__)

_FOCUS_COOLDOWN_KEY = ("focus", "")


class BlockdService:
    """
    Usage:
        service = BlockdService(clock, scheduler, store, tabs, installer)
        service.start()
        service.handle({"action": "BLOCK_DOMAIN", "domain": "reddit.com"})
    """

    def __init__(
        self,
        clock: Clock,
        scheduler: Scheduler,
        store: PersistenceAdapter,
        tabs: TabDirectory,
        installer: RuleInstaller,
        supplier: Optional[ProblemSupplier] = None,
        block_page_url: str = config.block_page_url,
        challenge_ttl_s: float = config.challenge_ttl_s,
        usage_retention_days: int = config.usage_retention_days,
        settings: Callable[[], Dict[str, Any]] = get_settings,
    ):
        self._clock = clock
        self._store = store
        self._tabs = tabs
        self._block_page_url = block_page_url
        self._usage_retention_days = usage_retention_days
        self._settings = settings

        self.blocklist = BlockList(store)
        self.focus = FocusModeController(clock, scheduler, store)
        self.access = TemporaryAccessStore(clock, scheduler, store)
        self.challenges = ChallengeGate(clock, supplier or MathProblemGenerator(), challenge_ttl_s)
        self.rules = BlockingRuleEngine(
            self.blocklist, self.focus, self.access, installer, block_page_url
        )
        self.usage = UsageStore(clock, store)
        self.tracker = TimeTracker(clock, self.usage)

        self._cooldowns: Dict[Tuple[str, str], float] = {}
        self.started = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Restore persisted state, install rules once, resume tracking."""
        if self.started:
            return
        self.blocklist.load()
        self.focus.load()       # stale focus windows are closed before any rule computation
        self.access.load()
        self.usage.cleanup(self._usage_retention_days)

        for component in (self.blocklist, self.focus, self.access):
            component.register_listener(self._on_blocking_inputs_changed)
        self.rules.recompute()

        active = self._tabs.query_active_tab()
        if active is not None:
            self.tracker.start_tracking(active.url)

        self.started = True
        logger.info("Blockd service started")

    def shutdown(self) -> None:
        self.tracker.stop_tracking()
        logger.info("Blockd service stopped")

    def tick(self) -> int:
        """Periodic housekeeping: save tracking progress, expire stale state."""
        saved = self.tracker.flush()
        self.challenges.purge_expired()
        self.focus.status()
        now = self._clock.now()
        self._cooldowns = {k: until for k, until in self._cooldowns.items() if until > now}
        return saved

    def _on_blocking_inputs_changed(self) -> None:
        self.rules.recompute()

    # ------------------------------------------------------------------
    # Browser events
    # ------------------------------------------------------------------

    def handle_event(self, event: BrowserEvent) -> None:
        if event.event_type in (BrowserEventType.TAB_UPDATED, BrowserEventType.TAB_ACTIVATED):
            if not event.active:
                return
            self._tabs.note_active_tab(event.tab_id, event.url)
            if event.url:
                self.tracker.start_tracking(event.url)

        elif event.event_type == BrowserEventType.FOCUS_GAINED:
            self._tabs.note_active_tab(event.tab_id, event.url)
            url = event.url
            if url is None:
                active = self._tabs.query_active_tab()
                url = active.url if active else None
            if url:
                self.tracker.start_tracking(url)

        elif event.event_type == BrowserEventType.FOCUS_LOST:
            self.tracker.pause()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def handle(self, payload: Any) -> cmd.CommandResponse:
        """Parse and execute a raw request; always returns exactly one response."""
        try:
            command = cmd.parse_command(payload)
        except pydantic.ValidationError as e:
            first = e.errors()[0] if e.errors() else {}
            where = ".".join(str(p) for p in first.get("loc", ()))
            return cmd.CommandResponse.fail(
                f"Invalid request: {where + ': ' if where else ''}{first.get('msg', 'malformed')}"
            )
        return self.execute(command)

    def execute(self, command: cmd.Command) -> cmd.CommandResponse:
        handler = _HANDLERS[type(command)]
        try:
            return handler(self, command)
        except BlockdError as e:
            logger.warning(f"{command.action} failed: {e}")
            return cmd.CommandResponse.fail(str(e))
        except Exception:
            logger.exception(f"{command.action} raised unexpectedly")
            return cmd.CommandResponse.fail("Internal error")

    # ── Diagnostics ────────────────────────────────────────────────────────

    def _ping(self, c: cmd.Ping) -> cmd.CommandResponse:
        return cmd.CommandResponse.ok({"message": "Blockd engine is running"})

    def _debug_status(self, c: cmd.DebugStatus) -> cmd.CommandResponse:
        return cmd.CommandResponse.ok({
            "isInitialized": self.started,
            "currentStatus": self.tracker.get_current_status(),
            "blockingStats": self.blocking_stats(),
            "activeRules": len(self.rules.current),
            "pendingChallenges": len(self.challenges.pending()),
            "timestamp": datetime.fromtimestamp(self._clock.now()).isoformat(),
        })

    # ── Block lists ────────────────────────────────────────────────────────

    def _block_domain(self, c: cmd.BlockDomain) -> cmd.CommandResponse:
        domain = normalize_domain(c.domain)
        self.blocklist.block(domain)
        return cmd.CommandResponse.ok({"domain": domain, "blocked": True})

    def _remove_blocked_domain(self, c: cmd.RemoveBlockedDomain) -> cmd.CommandResponse:
        domain = normalize_domain(c.domain)
        removed = self.blocklist.unblock(domain)
        return cmd.CommandResponse.ok({"domain": domain, "removed": removed})

    def _toggle_focus_domain(self, c: cmd.ToggleFocusDomain) -> cmd.CommandResponse:
        domain = normalize_domain(c.domain)
        member = self.blocklist.toggle_focus_domain(domain)
        return cmd.CommandResponse.ok({"domain": domain, "focusSite": member})

    def _get_blocking_stats(self, c: cmd.GetBlockingStats) -> cmd.CommandResponse:
        return cmd.CommandResponse.ok(self.blocking_stats())

    def blocking_stats(self) -> dict:
        now = self._clock.now()
        state = self.focus.status()
        return {
            "blockedDomains": sorted(self.blocklist.blocked),
            "focusDomains": sorted(self.blocklist.focus),
            "focusStatus": {
                "active": state.active,
                "endTime": state.end_time,
                "remainingSeconds": state.remaining_seconds(now),
            },
            "temporaryAccess": {
                domain: {"expiry": expiry, "remainingSeconds": expiry - now}
                for domain, expiry in sorted(self.access.active_grants().items())
            },
        }

    # ── Unblock challenge ──────────────────────────────────────────────────

    def _start_unblock_challenge(self, c: cmd.StartUnblockChallenge) -> cmd.CommandResponse:
        domain = normalize_domain(c.domain)
        self._check_cooldown(("unblock", domain))
        s = self._settings()
        challenge = self.challenges.create_challenge(
            s["unblock_problem_count"],
            subject_domain=domain,
            purpose=ChallengePurpose.UNBLOCK,
            difficulty=Difficulty(s["unblock_difficulty"]),
            max_attempts=s["challenge_max_attempts"],
        )
        return cmd.CommandResponse.ok(challenge.public())

    def _submit_challenge(self, c: cmd.SubmitChallenge) -> cmd.CommandResponse:
        result = self.challenges.submit(c.challenge_id, c.answers, purpose=ChallengePurpose.UNBLOCK)
        if not result.solved:
            return self._rejected(result, ("unblock", result.subject_domain or ""))

        domain = result.subject_domain
        minutes = self._settings()["temp_access_minutes"]
        expiry = self.access.grant(domain, minutes)
        self._leave_block_page(domain)
        return cmd.CommandResponse.ok({
            "message": f"{domain} has been unblocked for {minutes} minutes!",
            "type": "unblock",
            "domain": domain,
            "expiry": expiry,
        })

    # ── Focus mode ─────────────────────────────────────────────────────────

    def _activate_focus_mode(self, c: cmd.ActivateFocusMode) -> cmd.CommandResponse:
        minutes = c.duration_minutes
        if minutes is None:
            minutes = self._settings()["default_focus_minutes"]
        state = self.focus.activate(minutes)
        remaining = round(state.remaining_seconds(self._clock.now()) / 60)
        return cmd.CommandResponse.ok({
            "message": f"Focus mode active for {remaining} more minutes!",
            "active": state.active,
            "endTime": state.end_time,
        })

    def _start_focus_deactivation_challenge(
        self, c: cmd.StartFocusDeactivationChallenge
    ) -> cmd.CommandResponse:
        if not self.focus.status().active:
            raise ValidationError("Focus mode is not active")
        self._check_cooldown(_FOCUS_COOLDOWN_KEY)
        s = self._settings()
        challenge = self.challenges.create_challenge(
            s["focus_problem_count"],
            purpose=ChallengePurpose.FOCUS_DEACTIVATION,
            difficulty=Difficulty(s["focus_difficulty"]),
            max_attempts=s["challenge_max_attempts"],
        )
        return cmd.CommandResponse.ok(challenge.public())

    def _submit_focus_deactivation_challenge(
        self, c: cmd.SubmitFocusDeactivationChallenge
    ) -> cmd.CommandResponse:
        result = self.challenges.submit(
            c.challenge_id, c.answers, purpose=ChallengePurpose.FOCUS_DEACTIVATION
        )
        if not result.solved:
            return self._rejected(result, _FOCUS_COOLDOWN_KEY)
        self.focus.deactivate()
        return cmd.CommandResponse.ok({
            "message": "Focus mode deactivated successfully!",
            "type": "deactivation",
        })

    # ── Temporary access ───────────────────────────────────────────────────

    def _grant_temp_access(self, c: cmd.GrantTempAccess) -> cmd.CommandResponse:
        domain = normalize_domain(c.domain)
        minutes = c.minutes if c.minutes is not None else self._settings()["temp_access_minutes"]
        expiry = self.access.grant(domain, minutes)
        self._leave_block_page(domain)
        return cmd.CommandResponse.ok({"domain": domain, "minutes": minutes, "expiry": expiry})

    def _extend_temp_access(self, c: cmd.ExtendTempAccess) -> cmd.CommandResponse:
        domain = normalize_domain(c.domain)
        minutes = c.minutes if c.minutes is not None else self._settings()["extend_access_minutes"]
        expiry = self.access.extend(domain, minutes)
        return cmd.CommandResponse.ok({
            "message": f"Extended access for {domain} by {minutes:g} minutes",
            "domain": domain,
            "newExpiry": expiry,
        })

    def _revoke_temp_access(self, c: cmd.RevokeTempAccess) -> cmd.CommandResponse:
        domain = normalize_domain(c.domain)
        return cmd.CommandResponse.ok({"domain": domain, "revoked": self.access.revoke(domain)})

    # ── Time tracking ──────────────────────────────────────────────────────

    def _get_current_status(
        self, c: Union[cmd.GetCurrentStatus, cmd.GetLiveSession]
    ) -> cmd.CommandResponse:
        return cmd.CommandResponse.ok(self.tracker.get_current_status())

    def _get_today_data(self, c: cmd.GetTodayData) -> cmd.CommandResponse:
        return cmd.CommandResponse.ok(self.usage.today())

    def _get_top_websites(self, c: cmd.GetTopWebsites) -> cmd.CommandResponse:
        return cmd.CommandResponse.ok([
            {"domain": u.domain, "time": u.total_seconds, "sessions": u.session_count}
            for u in self.usage.top_sites(c.limit)
        ])

    def _get_today_total(self, c: cmd.GetTodayTotal) -> cmd.CommandResponse:
        return cmd.CommandResponse.ok(self.usage.today_total() + self.tracker.live_seconds())

    def _force_save(self, c: cmd.ForceSave) -> cmd.CommandResponse:
        saved = self.tracker.stop_tracking()
        return cmd.CommandResponse.ok({"message": "Data saved", "savedSeconds": saved})

    def _clear_data(self, c: cmd.ClearData) -> cmd.CommandResponse:
        self._store.clear()
        self.tracker.reset()
        self.access.clear()
        self.focus.reset()
        self.blocklist.reset()
        self.challenges.clear()
        self._cooldowns.clear()
        self.rules.recompute()
        logger.info("All data cleared")
        return cmd.CommandResponse.ok({"message": "All data cleared"})

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _check_cooldown(self, key: Tuple[str, str]) -> None:
        until = self._cooldowns.get(key)
        if until is None:
            return
        remaining = until - self._clock.now()
        if remaining > 0:
            raise CooldownActive(remaining)
        del self._cooldowns[key]

    def _rejected(self, result: ChallengeResult, cooldown_key: Tuple[str, str]) -> cmd.CommandResponse:
        if result.outcome == SubmitOutcome.EXHAUSTED:
            cooldown = self._settings()["challenge_cooldown_seconds"]
            self._cooldowns[cooldown_key] = self._clock.now() + cooldown
            return cmd.CommandResponse.fail(
                f"Incorrect answers. Try again in {cooldown} seconds.",
                data={"outcome": result.outcome.value, "attemptsRemaining": 0,
                      "cooldownSeconds": cooldown},
            )
        return cmd.CommandResponse.fail(
            "Incorrect answers. Please try again.",
            data={"outcome": result.outcome.value,
                  "attemptsRemaining": result.attempts_remaining,
                  "wrongIndexes": result.wrong_indexes},
        )

    def _leave_block_page(self, domain: str) -> None:
        """If the active tab shows the block page for *domain*, send it to the site."""
        active = self._tabs.query_active_tab()
        if active is None or not active.url.startswith(self._block_page_url):
            return
        site = parse_qs(urlparse(active.url).query).get("site", [None])[0]
        if not site:
            return
        try:
            if normalize_domain(site) != domain:
                return
        except ValidationError:
            return
        logger.info(f"Redirecting blocker tab {active.id} to {domain}")
        self._tabs.update_tab(active.id, f"https://{domain}")


_HANDLERS: Dict[type, Callable[[BlockdService, Any], cmd.CommandResponse]] = {
    cmd.Ping: BlockdService._ping,
    cmd.DebugStatus: BlockdService._debug_status,
    cmd.BlockDomain: BlockdService._block_domain,
    cmd.RemoveBlockedDomain: BlockdService._remove_blocked_domain,
    cmd.ToggleFocusDomain: BlockdService._toggle_focus_domain,
    cmd.GetBlockingStats: BlockdService._get_blocking_stats,
    cmd.StartUnblockChallenge: BlockdService._start_unblock_challenge,
    cmd.SubmitChallenge: BlockdService._submit_challenge,
    cmd.StartFocusDeactivationChallenge: BlockdService._start_focus_deactivation_challenge,
    cmd.SubmitFocusDeactivationChallenge: BlockdService._submit_focus_deactivation_challenge,
    cmd.ActivateFocusMode: BlockdService._activate_focus_mode,
    cmd.GrantTempAccess: BlockdService._grant_temp_access,
    cmd.ExtendTempAccess: BlockdService._extend_temp_access,
    cmd.RevokeTempAccess: BlockdService._revoke_temp_access,
    cmd.GetCurrentStatus: BlockdService._get_current_status,
    cmd.GetLiveSession: BlockdService._get_current_status,
    cmd.GetTodayData: BlockdService._get_today_data,
    cmd.GetTopWebsites: BlockdService._get_top_websites,
    cmd.GetTodayTotal: BlockdService._get_today_total,
    cmd.ForceSave: BlockdService._force_save,
    cmd.ClearData: BlockdService._clear_data,
}

_missing = set(cmd.COMMAND_TYPES) - set(_HANDLERS)
if _missing:
    raise RuntimeError(f"Commands without a handler: {sorted(t.__name__ for t in _missing)}")
