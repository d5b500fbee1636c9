"""
/settings — read and update user-tunable runtime settings.
"""

from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from ...settings import DEFAULTS, get_settings, update_settings

router = APIRouter(prefix="/settings", tags=["settings"])


class SettingsPatch(BaseModel):
    default_focus_minutes:      Optional[int] = Field(None, ge=1, le=1440)
    temp_access_minutes:        Optional[int] = Field(None, ge=1, le=240)
    extend_access_minutes:      Optional[int] = Field(None, ge=1, le=120)
    unblock_problem_count:      Optional[int] = Field(None, ge=1, le=10)
    focus_problem_count:        Optional[int] = Field(None, ge=1, le=10)
    challenge_max_attempts:     Optional[int] = Field(None, ge=1, le=10)
    challenge_cooldown_seconds: Optional[int] = Field(None, ge=0, le=3600)
    unblock_difficulty: Optional[Literal["medium", "hard"]] = None
    focus_difficulty:   Optional[Literal["medium", "hard"]] = None


@router.get("")
def read_settings():
    """Return current settings with their defaults for reference."""
    current = get_settings()
    return {"settings": current, "defaults": DEFAULTS}


@router.put("")
def write_settings(patch: SettingsPatch):
    """Apply a partial update; unknown keys are ignored. Persists to data/settings.json."""
    data = {k: v for k, v in patch.model_dump().items() if v is not None}
    return {"settings": update_settings(data)}
