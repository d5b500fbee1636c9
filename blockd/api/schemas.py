"""
Pydantic schemas for the FastAPI local API.

Command bodies are validated by blockd.commands; these cover everything else.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

# ── Browser events ─────────────────────────────────────────────────────────

class BrowserEventIn(BaseModel):
    type: str = Field(..., description="TAB_UPDATED | TAB_ACTIVATED | FOCUS_GAINED | FOCUS_LOST")
    data: Dict[str, Any] = Field(default_factory=dict)


# ── Tabs ───────────────────────────────────────────────────────────────────

class TabNavigationOut(BaseModel):
    tabId: int
    url: str


# ── Usage ──────────────────────────────────────────────────────────────────

class SiteUsageOut(BaseModel):
    domain: str
    time: int
    sessions: int


class TodayUsageOut(BaseModel):
    date: str
    total: int
    sites: Dict[str, Any]
    currentDomain: Optional[str] = None
