"""
/events — ingest tab and window events from the browser extension.
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ...api.schemas import BrowserEventIn
from ...browser.events import parse_browser_event

router = APIRouter(prefix="/events", tags=["events"])


def _get_service(request: Request):
    return request.app.state.service


@router.post("", status_code=status.HTTP_202_ACCEPTED)
async def ingest_event(event: BrowserEventIn, service=Depends(_get_service)):
    """Accept a single browser event."""
    parsed = parse_browser_event(event.model_dump())
    if parsed is None:
        raise HTTPException(status_code=422, detail=f"Unrecognised event type: {event.type!r}")
    service.handle_event(parsed)
    return {"status": "accepted"}


@router.post("/batch", status_code=status.HTTP_202_ACCEPTED)
async def ingest_batch(events: List[BrowserEventIn], service=Depends(_get_service)):
    """Accept a batch of events in the order the extension observed them."""
    accepted = 0
    for event in events:
        parsed = parse_browser_event(event.model_dump())
        if parsed:
            service.handle_event(parsed)
            accepted += 1
    return {"accepted": accepted, "total": len(events)}
