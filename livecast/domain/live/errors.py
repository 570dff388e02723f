"""Errors raised inside the live interaction engine.

None of these escape `LiveInteractionEngine`: each one maps to a degraded
but visible state (empty list, placeholder, recharge prompt, dropped send).
"""

from livecast.schemas.view_model import RechargePrompt
from livecast.utils.app_errors import AppError, AppErrorCode, HttpStatusCode


class LiveEngineError(AppError):
    """Base class for live interaction engine errors."""


class UnavailableError(LiveEngineError):
    """Directory fetch or channel upstream could not be reached."""

    def __init__(self, errmesg: str = "Live service unavailable"):
        super().__init__(
            errcode=AppErrorCode.E_UPSTREAM_UNAVAILABLE,
            errmesg=errmesg,
            status_code=HttpStatusCode.SERVICE_UNAVAILABLE,
        )


class PlaybackError(LiveEngineError):
    """The player failed on the current media source."""

    def __init__(self, errmesg: str = "Playback failed", source: str | None = None):
        super().__init__(
            errcode=AppErrorCode.E_PLAYBACK_FAILED,
            errmesg=errmesg,
            status_code=HttpStatusCode.BAD_REQUEST,
        )
        self.source = source


class InsufficientBalanceError(LiveEngineError):
    """Gift blocked because the cached balance is below the gift price."""

    def __init__(self, prompt: RechargePrompt):
        super().__init__(
            errcode=AppErrorCode.E_INSUFFICIENT_BALANCE,
            errmesg=prompt.message,
            status_code=HttpStatusCode.PAYMENT_REQUIRED,
        )
        self.prompt = prompt


class TransportDropped(LiveEngineError):
    """Send attempted while no channel session is connected."""

    def __init__(self, errmesg: str = "No connected channel session"):
        super().__init__(
            errcode=AppErrorCode.E_TRANSPORT_DROPPED,
            errmesg=errmesg,
            status_code=HttpStatusCode.CONFLICT,
        )
