"""
Command protocol — the closed set of requests the extension may send.

A request is ``{"action": "<NAME>", ...payload}``; every request gets exactly
one ``CommandResponse``. Each action is its own pydantic model, tagged by the
``action`` literal, and ``Command`` is the discriminated union of all of
them. ``parse_command`` raises pydantic's ValidationError for malformed
input; the service turns that into a failed response.
"""

from __future__ import annotations

from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _CommandBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


# ── Liveness / diagnostics ─────────────────────────────────────────────────

class Ping(_CommandBase):
    action: Literal["PING"] = "PING"


class DebugStatus(_CommandBase):
    action: Literal["DEBUG_STATUS"] = "DEBUG_STATUS"


# ── Block lists ────────────────────────────────────────────────────────────

class BlockDomain(_CommandBase):
    action: Literal["BLOCK_DOMAIN"] = "BLOCK_DOMAIN"
    domain: str


class RemoveBlockedDomain(_CommandBase):
    action: Literal["REMOVE_BLOCKED_DOMAIN"] = "REMOVE_BLOCKED_DOMAIN"
    domain: str


class ToggleFocusDomain(_CommandBase):
    action: Literal["TOGGLE_FOCUS_DOMAIN"] = "TOGGLE_FOCUS_DOMAIN"
    domain: str


class GetBlockingStats(_CommandBase):
    action: Literal["GET_BLOCKING_STATS"] = "GET_BLOCKING_STATS"


# ── Challenges ─────────────────────────────────────────────────────────────

class StartUnblockChallenge(_CommandBase):
    action: Literal["START_UNBLOCK_CHALLENGE"] = "START_UNBLOCK_CHALLENGE"
    domain: str


class SubmitChallenge(_CommandBase):
    action: Literal["SUBMIT_CHALLENGE"] = "SUBMIT_CHALLENGE"
    challenge_id: str = Field(..., alias="challengeId")
    answers: List[Any]


class StartFocusDeactivationChallenge(_CommandBase):
    action: Literal["START_FOCUS_DEACTIVATION_CHALLENGE"] = "START_FOCUS_DEACTIVATION_CHALLENGE"


class SubmitFocusDeactivationChallenge(_CommandBase):
    action: Literal["SUBMIT_FOCUS_DEACTIVATION_CHALLENGE"] = "SUBMIT_FOCUS_DEACTIVATION_CHALLENGE"
    challenge_id: str = Field(..., alias="challengeId")
    answers: List[Any]


# ── Focus mode ─────────────────────────────────────────────────────────────

class ActivateFocusMode(_CommandBase):
    action: Literal["ACTIVATE_FOCUS_MODE"] = "ACTIVATE_FOCUS_MODE"
    duration_minutes: Optional[float] = Field(None, alias="durationMinutes")


# ── Temporary access ───────────────────────────────────────────────────────

class GrantTempAccess(_CommandBase):
    action: Literal["GRANT_TEMP_ACCESS"] = "GRANT_TEMP_ACCESS"
    domain: str
    minutes: Optional[float] = None


class ExtendTempAccess(_CommandBase):
    action: Literal["EXTEND_TEMP_ACCESS"] = "EXTEND_TEMP_ACCESS"
    domain: str
    minutes: Optional[float] = None


class RevokeTempAccess(_CommandBase):
    action: Literal["REVOKE_TEMP_ACCESS"] = "REVOKE_TEMP_ACCESS"
    domain: str


# ── Time tracking ──────────────────────────────────────────────────────────

class GetCurrentStatus(_CommandBase):
    action: Literal["GET_CURRENT_STATUS"] = "GET_CURRENT_STATUS"


class GetLiveSession(_CommandBase):
    """Older popup name for GET_CURRENT_STATUS."""
    action: Literal["GET_LIVE_SESSION"] = "GET_LIVE_SESSION"


class GetTodayData(_CommandBase):
    action: Literal["GET_TODAY_DATA"] = "GET_TODAY_DATA"


class GetTopWebsites(_CommandBase):
    action: Literal["GET_TOP_WEBSITES"] = "GET_TOP_WEBSITES"
    limit: int = Field(5, ge=1, le=100)


class GetTodayTotal(_CommandBase):
    action: Literal["GET_TODAY_TOTAL"] = "GET_TODAY_TOTAL"


class ForceSave(_CommandBase):
    action: Literal["FORCE_SAVE"] = "FORCE_SAVE"


class ClearData(_CommandBase):
    action: Literal["CLEAR_DATA"] = "CLEAR_DATA"


COMMAND_TYPES = (
    Ping,
    DebugStatus,
    BlockDomain,
    RemoveBlockedDomain,
    ToggleFocusDomain,
    GetBlockingStats,
    StartUnblockChallenge,
    SubmitChallenge,
    StartFocusDeactivationChallenge,
    SubmitFocusDeactivationChallenge,
    ActivateFocusMode,
    GrantTempAccess,
    ExtendTempAccess,
    RevokeTempAccess,
    GetCurrentStatus,
    GetLiveSession,
    GetTodayData,
    GetTopWebsites,
    GetTodayTotal,
    ForceSave,
    ClearData,
)

Command = Annotated[Union[COMMAND_TYPES], Field(discriminator="action")]

_COMMAND_ADAPTER: TypeAdapter = TypeAdapter(Command)


def parse_command(payload: Any) -> Command:
    """Validate a raw request body. Raises pydantic.ValidationError."""
    return _COMMAND_ADAPTER.validate_python(payload)


class CommandResponse(BaseModel):
    success: bool
    data: Any = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: Any = None) -> "CommandResponse":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, data: Any = None) -> "CommandResponse":
        return cls(success=False, error=error, data=data)
