"""
/rules — the current redirect rule set, polled by the extension.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

router = APIRouter(prefix="/rules", tags=["rules"])


def _get_installer(request: Request):
    return request.app.state.installer


@router.get("")
async def get_rules(installer=Depends(_get_installer)):
    """Return ``{"version": n, "rules": [...]}``; replace dynamic rules when n changes."""
    return installer.snapshot()
