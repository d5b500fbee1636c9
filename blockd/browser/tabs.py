"""
Tab directory — what the engine knows about browser tabs.

The engine never enumerates tabs itself. The extension reports the active
tab with every TAB_* event, and the engine queues navigations (currently only
"leave the block page now that access was granted") that the extension drains
from GET /tabs/navigations and applies with its own tab API.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional, Protocol


@dataclass
class TabInfo:
    id: int
    url: str


@dataclass
class TabNavigation:
    tab_id: int
    url: str


class TabDirectory(Protocol):
    def query_active_tab(self) -> Optional[TabInfo]: ...

    def update_tab(self, tab_id: int, url: str) -> None: ...

    def note_active_tab(self, tab_id: Optional[int], url: Optional[str]) -> None: ...

class ExtensionTabDirectory:

    def __init__(self, max_pending: int = 50):
        self._active: Optional[TabInfo] = None
        self._pending: Deque[TabNavigation] = deque(maxlen=max_pending)

    def note_active_tab(self, tab_id: Optional[int], url: Optional[str]) -> None:
        if tab_id is None or not url:
            return
        self._active = TabInfo(id=tab_id, url=url)

    def query_active_tab(self) -> Optional[TabInfo]:
        return self._active

    def update_tab(self, tab_id: int, url: str) -> None:
        self._pending.append(TabNavigation(tab_id=tab_id, url=url))
        if self._active is not None and self._active.id == tab_id:
            self._active = TabInfo(id=tab_id, url=url)

    def drain(self) -> List[TabNavigation]:
        items = list(self._pending)
        self._pending.clear()
        return items
