"""
/usage — browsing time per site, for the popup and dashboard views.
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from ...api.schemas import SiteUsageOut, TodayUsageOut
from ...core.clock import local_date

router = APIRouter(prefix="/usage", tags=["usage"])


def _get_service(request: Request):
    return request.app.state.service


@router.get("/today", response_model=TodayUsageOut)
async def today(request: Request, service=Depends(_get_service)):
    """Saved usage for today plus the unsaved seconds of the open session."""
    return TodayUsageOut(
        date=local_date(request.app.state.clock.now()),
        total=service.usage.today_total() + service.tracker.live_seconds(),
        sites=service.usage.today(),
        currentDomain=service.tracker.current_domain,
    )


@router.get("/top", response_model=List[SiteUsageOut])
async def top_sites(
    limit: int = Query(default=5, ge=1, le=100),
    service=Depends(_get_service),
):
    return [
        SiteUsageOut(domain=u.domain, time=u.total_seconds, sessions=u.session_count)
        for u in service.usage.top_sites(limit)
    ]


@router.get("/days")
async def list_days(service=Depends(_get_service)):
    """Dates (YYYY-MM-DD, local time) that have recorded usage."""
    return {"days": service.usage.days()}


@router.get("/days/{date}")
async def day_detail(date: str, service=Depends(_get_service)):
    data = service.usage.day(date)
    if not data:
        raise HTTPException(status_code=404, detail=f"No usage recorded for {date}")
    return {"date": date, "sites": data}
