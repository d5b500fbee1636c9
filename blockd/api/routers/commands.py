"""
/command — the extension's request/response command channel.

Every request gets exactly one CommandResponse with HTTP 200; failures are
reported in the body (``success: false`` plus ``error``), matching what the
extension's message handler expects.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Request

from ...commands import CommandResponse

router = APIRouter(tags=["commands"])


def _get_service(request: Request):
    return request.app.state.service


@router.post("/command", response_model=CommandResponse)
async def run_command(payload: Any = Body(...), service=Depends(_get_service)):
    return service.handle(payload)
