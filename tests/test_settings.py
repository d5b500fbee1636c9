"""
Tests for the settings store (blockd/settings.py) and the /settings API endpoints.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

import blockd.settings as settings_mod
from blockd.settings import DEFAULTS, get_settings, update_settings


# ── Fixtures ─────────────────────────────────────────────────────────────────

@pytest.fixture()
def tmp_settings_file(tmp_path: Path, monkeypatch):
    """
    Redirect the settings store to a fresh temp file for each test.
    Also resets the in-memory cache so each test starts clean.
    """
    fake_file = tmp_path / "settings.json"
    monkeypatch.setattr(settings_mod, "_FILE", fake_file)
    monkeypatch.setattr(settings_mod, "_current", {})
    yield fake_file
    # Reset cache after test so other tests are not affected
    monkeypatch.setattr(settings_mod, "_current", {})


# ── Unit tests: settings store ────────────────────────────────────────────────

class TestSettingsDefaults:
    def test_get_settings_returns_all_defaults(self, tmp_settings_file):
        s = get_settings()
        for key, val in DEFAULTS.items():
            assert key in s
            assert s[key] == val

    def test_get_settings_returns_copy(self, tmp_settings_file):
        s1 = get_settings()
        s1["temp_access_minutes"] = 9999
        s2 = get_settings()
        assert s2["temp_access_minutes"] == DEFAULTS["temp_access_minutes"]

    def test_defaults_contain_expected_keys(self):
        expected = {
            "default_focus_minutes",
            "temp_access_minutes",
            "extend_access_minutes",
            "unblock_problem_count",
            "focus_problem_count",
            "challenge_max_attempts",
            "challenge_cooldown_seconds",
            "unblock_difficulty",
            "focus_difficulty",
        }
        assert set(DEFAULTS.keys()) == expected


class TestUpdateSettings:
    def test_update_single_key(self, tmp_settings_file):
        update_settings({"temp_access_minutes": 20})
        assert get_settings()["temp_access_minutes"] == 20

    def test_update_persists_to_disk(self, tmp_settings_file):
        update_settings({"challenge_cooldown_seconds": 60})
        saved = json.loads(tmp_settings_file.read_text())
        assert saved["challenge_cooldown_seconds"] == 60

    def test_unknown_keys_are_ignored(self, tmp_settings_file):
        update_settings({"unknown_key": "surprise", "focus_problem_count": 4})
        s = get_settings()
        assert "unknown_key" not in s
        assert s["focus_problem_count"] == 4

    def test_update_coerces_type(self, tmp_settings_file):
        # Pass a float where int is expected — should coerce
        update_settings({"default_focus_minutes": 45.9})
        assert isinstance(get_settings()["default_focus_minutes"], int)
        assert get_settings()["default_focus_minutes"] == 45

    def test_partial_update_preserves_other_keys(self, tmp_settings_file):
        update_settings({"unblock_difficulty": "hard"})
        s = get_settings()
        assert s["unblock_difficulty"] == "hard"
        assert s["focus_difficulty"] == DEFAULTS["focus_difficulty"]

    def test_load_from_existing_file(self, tmp_settings_file):
        # Pre-populate the file before any get_settings() call
        tmp_settings_file.write_text(json.dumps({"temp_access_minutes": 10}))
        settings_mod._current.clear()
        s = get_settings()
        assert s["temp_access_minutes"] == 10
        # Keys not in file fall back to defaults
        assert s["extend_access_minutes"] == DEFAULTS["extend_access_minutes"]

    def test_malformed_file_falls_back_to_defaults(self, tmp_settings_file):
        tmp_settings_file.write_text("not valid json{{")
        settings_mod._current.clear()
        s = get_settings()
        for key, val in DEFAULTS.items():
            assert s[key] == val


# ── API integration tests ────────────────────────────────────────────────────

class TestSettingsEndpoints:
    async def test_get_settings_response_shape(self, client, tmp_settings_file):
        r = await client.get("/settings")
        assert r.status_code == 200
        body = r.json()
        assert body["defaults"] == DEFAULTS
        assert set(body["settings"]) == set(DEFAULTS)

    async def test_put_updates_keys(self, client, tmp_settings_file):
        r = await client.put("/settings", json={
            "temp_access_minutes": 25,
            "focus_difficulty": "medium",
        })
        assert r.status_code == 200
        s = r.json()["settings"]
        assert s["temp_access_minutes"] == 25
        assert s["focus_difficulty"] == "medium"

    async def test_put_empty_body_returns_200(self, client, tmp_settings_file):
        """Empty patch is valid — a no-op."""
        r = await client.put("/settings", json={})
        assert r.status_code == 200

    @pytest.mark.parametrize("patch", [
        {"temp_access_minutes": 0},
        {"default_focus_minutes": 2000},
        {"unblock_problem_count": 11},
        {"challenge_max_attempts": 0},
        {"challenge_cooldown_seconds": -1},
        {"unblock_difficulty": "impossible"},
    ])
    async def test_put_out_of_range_returns_422(self, client, tmp_settings_file, patch):
        r = await client.put("/settings", json=patch)
        assert r.status_code == 422

    async def test_new_settings_apply_to_next_challenge(self, client, tmp_settings_file):
        await client.put("/settings", json={"unblock_problem_count": 5})
        r = await client.post("/command", json={
            "action": "START_UNBLOCK_CHALLENGE", "domain": "reddit.com",
        })
        assert len(r.json()["data"]["problems"]) == 5
