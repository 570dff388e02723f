from fastapi import APIRouter, Request

from .utils import ApiSuccess

router = APIRouter()


@router.get("/health", response_model=ApiSuccess)
async def health(request: Request):
    probe = getattr(request.app.state, "backend_probe", None)
    reachable = await probe.is_reachable() if probe else True
    return ApiSuccess(results={"status": "OK", "backend_reachable": reachable})
