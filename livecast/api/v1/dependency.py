from fastapi import Request

from livecast.domain.live.engine import LiveInteractionEngine
from livecast.utils.app_errors import AppError, AppErrorCode, HttpStatusCode


def get_engine(request: Request) -> LiveInteractionEngine:
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise AppError(
            errcode=AppErrorCode.E_UPSTREAM_UNAVAILABLE,
            errmesg="Live engine is not running",
            status_code=HttpStatusCode.SERVICE_UNAVAILABLE,
        )
    return engine
