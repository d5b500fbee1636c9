"""
/tabs — navigations the engine wants the extension to perform.
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Request

from ...api.schemas import TabNavigationOut

router = APIRouter(prefix="/tabs", tags=["tabs"])


def _get_tabs(request: Request):
    return request.app.state.tabs


@router.get("/navigations", response_model=List[TabNavigationOut])
async def drain_navigations(tabs=Depends(_get_tabs)):
    """Return and forget all queued navigations."""
    return [TabNavigationOut(tabId=n.tab_id, url=n.url) for n in tabs.drain()]
