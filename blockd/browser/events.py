"""
Browser Event Parser — accepts events POSTed by the browser extension and
converts them to BrowserEvent objects for the service.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class BrowserEventType(str, Enum):
    TAB_UPDATED = "tab_updated"
    TAB_ACTIVATED = "tab_activated"
    FOCUS_GAINED = "focus_gained"
    FOCUS_LOST = "focus_lost"


# Mapping from browser extension event names → internal event types
_EVENT_MAP: Dict[str, BrowserEventType] = {
    "TAB_UPDATED": BrowserEventType.TAB_UPDATED,
    "NAVIGATION": BrowserEventType.TAB_UPDATED,
    "TAB_ACTIVATED": BrowserEventType.TAB_ACTIVATED,
    "TAB_SWITCH": BrowserEventType.TAB_ACTIVATED,
    "FOCUS_GAINED": BrowserEventType.FOCUS_GAINED,
    "FOCUS_LOST": BrowserEventType.FOCUS_LOST,
}


@dataclass
class BrowserEvent:
    event_type: BrowserEventType
    tab_id: Optional[int] = None
    url: Optional[str] = None
    active: bool = True


def parse_browser_event(payload: Dict[str, Any]) -> BrowserEvent | None:
    """
    Parse a raw browser extension payload into a BrowserEvent.
    Returns None if the event type is unknown or malformed.

    Expected payload shape:
    {
        "type": "TAB_UPDATED",
        "data": {"tabId": 12, "url": "https://example.com/", "active": true}
    }
    """
    event_type = _EVENT_MAP.get(payload.get("type", ""))
    if event_type is None:
        return None

    data = payload.get("data") or {}
    if not isinstance(data, dict):
        return None

    tab_id = data.get("tabId")
    if tab_id is not None:
        try:
            tab_id = int(tab_id)
        except (TypeError, ValueError):
            return None

    url = data.get("url")
    if url is not None and not isinstance(url, str):
        return None

    return BrowserEvent(
        event_type=event_type,
        tab_id=tab_id,
        url=url,
        active=bool(data.get("active", True)),
    )
