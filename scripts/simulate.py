"""
Browsing Simulator — drives a running Blockd engine with the events and
commands the browser extension would send, so you can watch rules, grants
and usage totals change without installing the extension.

Usage:
    # Make sure the engine is running first:
    #   python start.py
    # Then in a separate terminal:
    python scripts/simulate.py                    # default: cycle all scenarios
    python scripts/simulate.py --scenario focus   # specific scenario
    python scripts/simulate.py --loop             # repeat forever
    python scripts/simulate.py --speed 2.0        # 2× faster
"""

from __future__ import annotations

import argparse
import json
import random
import time
import urllib.error
import urllib.request
from typing import Callable, Iterator

API = "http://127.0.0.1:8766"

_tab_id = random.randint(100, 999)


# ---------------------------------------------------------------------------
# Low-level HTTP helper
# ---------------------------------------------------------------------------

def _post(path: str, body: list | dict) -> dict | None:
    try:
        data = json.dumps(body).encode()
        req = urllib.request.Request(
            f"{API}{path}",
            data=data,
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        with urllib.request.urlopen(req, timeout=3) as r:
            return json.loads(r.read())
    except (urllib.error.URLError, OSError) as e:
        print(f"  [!] Engine unreachable: {e}")
        return None


def _get(path: str) -> dict | list | None:
    try:
        with urllib.request.urlopen(f"{API}{path}", timeout=3) as r:
            return json.loads(r.read())
    except (urllib.error.URLError, OSError, ValueError):
        return None


def command(action: str, **payload) -> dict | None:
    return _post("/command", {"action": action, **payload})


def _evt(event_type: str, url: str | None = None) -> dict:
    data: dict = {"tabId": _tab_id, "active": True}
    if url is not None:
        data["url"] = url
    return {"type": event_type, "data": data}


# ---------------------------------------------------------------------------
# Scenario generators — each yields (description, step, delay)
# ---------------------------------------------------------------------------

Step = Callable[[], dict | list | None]


def scenario_browsing(speed: float = 1.0) -> Iterator[tuple[str, Step, float]]:
    """Ordinary browsing: navigation, tab switches, a window blur."""
    urls = [
        "https://docs.python.org/3/library/asyncio.html",
        "https://news.ycombinator.com",
        "https://github.com/pulls",
        "https://www.wikipedia.org/wiki/Pomodoro_Technique",
    ]
    for url in urls:
        yield (
            f"Browsing: open {url}",
            lambda url=url: _post("/events", _evt("TAB_UPDATED", url)),
            2.0 / speed,
        )
    yield ("Browsing: window loses focus", lambda: _post("/events", _evt("FOCUS_LOST")), 2.0 / speed)
    yield ("Browsing: window regains focus", lambda: _post("/events", _evt("FOCUS_GAINED")), 1.0 / speed)
    yield ("Browsing: save progress", lambda: command("FORCE_SAVE"), 0.5 / speed)


def scenario_blocking(speed: float = 1.0) -> Iterator[tuple[str, Step, float]]:
    """Block a site, grant access, extend it, revoke it, unblock it."""
    yield ("Blocking: block reddit.com", lambda: command("BLOCK_DOMAIN", domain="reddit.com"), 1.0 / speed)
    yield ("Blocking: rules now", lambda: _get("/rules"), 1.0 / speed)
    yield (
        "Blocking: grant 1 minute",
        lambda: command("GRANT_TEMP_ACCESS", domain="reddit.com", minutes=1),
        1.0 / speed,
    )
    yield (
        "Blocking: extend by 1 minute",
        lambda: command("EXTEND_TEMP_ACCESS", domain="reddit.com", minutes=1),
        1.0 / speed,
    )
    yield ("Blocking: revoke", lambda: command("REVOKE_TEMP_ACCESS", domain="reddit.com"), 1.0 / speed)
    yield ("Blocking: stats", lambda: command("GET_BLOCKING_STATS"), 1.0 / speed)
    yield (
        "Blocking: unblock reddit.com",
        lambda: command("REMOVE_BLOCKED_DOMAIN", domain="reddit.com"),
        1.0 / speed,
    )


def scenario_challenge(speed: float = 1.0) -> Iterator[tuple[str, Step, float]]:
    """Start an unblock challenge and fail it until the cooldown kicks in."""
    state: dict = {}

    def start():
        resp = command("START_UNBLOCK_CHALLENGE", domain="youtube.com")
        if resp and resp.get("success"):
            state["id"] = resp["data"]["challengeId"]
            state["n"] = len(resp["data"]["problems"])
        return resp

    def wrong():
        return command(
            "SUBMIT_CHALLENGE",
            challengeId=state.get("id", "missing"),
            answers=[-1] * state.get("n", 1),
        )

    yield ("Challenge: start for youtube.com", start, 1.0 / speed)
    for i in range(3):
        yield (f"Challenge: wrong answers [{i+1}/3]", wrong, 1.0 / speed)
    yield ("Challenge: retry during cooldown", start, 1.0 / speed)


def scenario_focus(speed: float = 1.0) -> Iterator[tuple[str, Step, float]]:
    """Focus mode: activate, inspect the rules, ask for a deactivation challenge."""
    yield ("Focus: activate for 1 minute", lambda: command("ACTIVATE_FOCUS_MODE", durationMinutes=1), 1.0 / speed)
    yield ("Focus: rules now", lambda: _get("/rules"), 1.0 / speed)
    yield ("Focus: deactivation challenge", lambda: command("START_FOCUS_DEACTIVATION_CHALLENGE"), 1.0 / speed)
    yield ("Focus: today so far", lambda: _get("/usage/today"), 1.0 / speed)


SCENARIOS = {
    "browsing": scenario_browsing,
    "blocking": scenario_blocking,
    "challenge": scenario_challenge,
    "focus": scenario_focus,
}

CYCLE = ["browsing", "blocking", "challenge", "browsing", "focus"]


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

def _summary(result) -> str:
    if result is None:
        return "no response"
    if isinstance(result, dict) and "success" in result:
        return "ok" if result["success"] else f"failed: {result.get('error')}"
    if isinstance(result, dict) and "rules" in result:
        return f"v{result['version']} · {len(result['rules'])} rules"
    return json.dumps(result)[:60]


def run_scenario(name: str, speed: float) -> None:
    gen_fn = SCENARIOS[name]
    print(f"\n{'─' * 60}")
    print(f"  SCENARIO: {name.upper()}")
    print(f"{'─' * 60}")

    for description, step, delay in gen_fn(speed):
        result = step()
        total = _get("/usage/today")
        seconds = total["total"] if isinstance(total, dict) else 0
        status = "✓" if result is not None else "✗"
        print(f"  {status} {seconds:5d}s today  {description:<40}  {_summary(result)}")
        time.sleep(delay)


def main() -> None:
    parser = argparse.ArgumentParser(description="Blockd browsing simulator")
    parser.add_argument(
        "--scenario",
        choices=list(SCENARIOS.keys()) + ["cycle"],
        default="cycle",
        help="Which scenario to run (default: cycle through all)",
    )
    parser.add_argument("--loop", action="store_true", help="Repeat indefinitely")
    parser.add_argument("--speed", type=float, default=1.0, help="Speed multiplier (default 1.0)")
    args = parser.parse_args()

    health = _get("/health")
    if not health:
        print(f"[!] Cannot reach engine at {API}")
        print("    Start it first: python start.py")
        return
    print(f"[✓] Engine connected — Blockd v{health.get('version', '?')}")
    print(f"    Speed: {args.speed}×  |  Scenario: {args.scenario}")

    sequence = CYCLE if args.scenario == "cycle" else [args.scenario]

    while True:
        for name in sequence:
            run_scenario(name, args.speed)
        if not args.loop:
            break
        print("\n[↺] Looping...\n")
        time.sleep(2.0)

    print("\n[✓] Simulation complete.")


if __name__ == "__main__":
    main()
