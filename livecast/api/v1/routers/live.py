"""Live interaction endpoints: the HTTP bridge between a UI process and the engine."""

from fastapi import APIRouter, Depends, Request

from livecast.api.v1.dependency import get_engine
from livecast.api.v1.schemas.base import ApiOut
from livecast.api.v1.schemas.live import (
    FollowIn,
    ListStreamsOut,
    LoginOut,
    PlaybackErrorIn,
    PlaybackErrorOut,
    SendChatIn,
    SendGiftIn,
    VisibilityIn,
    VisibilityOut,
    WalletOut,
    WalletSyncIn,
)
from livecast.domain.live.engine import ActionOutcome, LiveInteractionEngine
from livecast.schemas import BroadcastViewModel
from livecast.services.api_rate_limiter import global_rate_limit
from livecast.services.auth_gate import DeferredAuthGate
from livecast.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

router = APIRouter(prefix="/live")


@router.get("/streams")
async def list_streams(
    engine: LiveInteractionEngine = Depends(get_engine),
) -> ApiOut[ListStreamsOut]:
    """List active broadcasts.

    The directory is fetched on the first call. An unreachable directory
    yields an empty list, not an error.
    """
    if not engine.is_loaded:
        await engine.load()

    return ApiOut[ListStreamsOut](
        results=ListStreamsOut(broadcasts=engine.broadcasts, active_index=engine.active_index)
    )


@router.post("/visibility")
async def report_visibility(
    body: VisibilityIn,
    engine: LiveInteractionEngine = Depends(get_engine),
) -> ApiOut[VisibilityOut]:
    """Feed slot visibility fractions; switches the live broadcast on a threshold crossing."""
    active_index = await engine.on_visibility(
        (entry.slot_index, entry.visible_fraction) for entry in body.entries
    )
    broadcast = engine.active_broadcast

    return ApiOut[VisibilityOut](
        results=VisibilityOut(
            active_index=active_index,
            broadcast_id=broadcast.id if broadcast else None,
        )
    )


@router.get("/view")
async def get_view(
    engine: LiveInteractionEngine = Depends(get_engine),
) -> ApiOut[BroadcastViewModel]:
    """Current view-model snapshot of the active broadcast.

    Raises:
        404: No broadcast is active
    """
    view = engine.view()
    if view is None:
        raise AppError(
            errcode=AppErrorCode.E_BROADCAST_NOT_FOUND,
            errmesg="No active broadcast",
            status_code=HttpStatusCode.NOT_FOUND,
        )
    return ApiOut[BroadcastViewModel](results=view)


@router.post("/chat")
@global_rate_limit()
async def send_chat(
    request: Request,
    body: SendChatIn,
    engine: LiveInteractionEngine = Depends(get_engine),
) -> ApiOut[ActionOutcome]:
    outcome = await engine.send_chat(body.text)
    return ApiOut[ActionOutcome](results=outcome)


@router.post("/like")
@global_rate_limit()
async def send_like(
    request: Request,
    engine: LiveInteractionEngine = Depends(get_engine),
) -> ApiOut[ActionOutcome]:
    outcome = await engine.send_like()
    return ApiOut[ActionOutcome](results=outcome)


@router.post("/gift")
@global_rate_limit()
async def send_gift(
    request: Request,
    body: SendGiftIn,
    engine: LiveInteractionEngine = Depends(get_engine),
) -> ApiOut[ActionOutcome]:
    """Send a gift. An unaffordable gift returns status `recharge_required` with a prompt."""
    outcome = await engine.send_gift(body.gift_id)
    return ApiOut[ActionOutcome](results=outcome)


@router.post("/follow")
async def follow(
    body: FollowIn,
    engine: LiveInteractionEngine = Depends(get_engine),
) -> ApiOut[ActionOutcome]:
    """Toggle the followed state of a host."""
    outcome = await engine.follow(body.host_id)
    return ApiOut[ActionOutcome](results=outcome)


@router.post("/playback_error")
async def report_playback_error(
    body: PlaybackErrorIn,
    engine: LiveInteractionEngine = Depends(get_engine),
) -> ApiOut[PlaybackErrorOut]:
    """Report a player failure; returns the source to try next or the unavailable state."""
    playback = engine.report_playback_error(body.error)
    return ApiOut[PlaybackErrorOut](results=PlaybackErrorOut(playback=playback))


@router.post("/wallet/sync")
async def sync_wallet(
    body: WalletSyncIn,
    engine: LiveInteractionEngine = Depends(get_engine),
) -> ApiOut[WalletOut]:
    balance = engine.sync_wallet(body.balance)
    return ApiOut[WalletOut](results=WalletOut(balance=balance))


@router.post("/login")
async def complete_login(
    engine: LiveInteractionEngine = Depends(get_engine),
) -> ApiOut[LoginOut]:
    """Mark the local viewer signed in and replay actions deferred while signed out."""
    gate = engine.auth_gate
    if not isinstance(gate, DeferredAuthGate):
        raise AppError(
            errcode=AppErrorCode.E_INVALID_REQUEST,
            errmesg="Auth gate does not support deferred login",
            status_code=HttpStatusCode.BAD_REQUEST,
        )
    replayed = await gate.complete_login()
    return ApiOut[LoginOut](results=LoginOut(replayed=replayed))
