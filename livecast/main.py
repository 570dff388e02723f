import time
import traceback
import uuid
from contextlib import asynccontextmanager
from os import environ

import logfire
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from granian import Granian
from loguru import logger
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware

from livecast.app_config import get_app_environ_config
from livecast.domain.live.engine import create_live_engine
from livecast.services.api_rate_limiter import limiter
from livecast.services.integrations.backend_probe import BackendProbe
from livecast.services.integrations.live_api_client import get_live_api_client
from livecast.shared.api.utils import (
    api_failure,
    app_error_handler,
    init_logger,
    load_routes,
    validation_exception_handler,
)
from livecast.shared.config import config
from livecast.utils.app_errors import AppError, AppErrorCode


class HTTPLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore
        start_time = time.time()
        request_id = str(uuid.uuid4())[:8]

        logger.info(f"[{request_id}] {request.method} {request.url.path}")

        try:
            response = await call_next(request)

            process_time = (time.time() - start_time) * 1000
            logger.info(
                f"[{request_id}] {request.method} {request.url.path} - "
                f"Status: {response.status_code} - "
                f"Duration: {process_time:.2f}ms"
            )

            return response

        except Exception as exc:
            process_time = (time.time() - start_time) * 1000

            logger.error(
                f"[{request_id}] Unhandled exception in {request.method} {request.url.path} - "
                f"Duration: {process_time:.2f}ms - "
                f"Error: {type(exc).__name__}: {exc}\n"
                f"Traceback:\n{traceback.format_exc()}"
            )

            failure = api_failure(
                errcode=AppErrorCode.E_INTERNAL_ERROR,
                errmesg=f"Internal server error (request_id: {request_id})",
            )
            return ORJSONResponse(
                status_code=500,
                content=failure.model_dump(),
            )


@asynccontextmanager
async def lifespan(server: FastAPI):
    init_logger()

    logger.info("Application startup...")

    cfg = get_app_environ_config()
    server.state.backend_probe = BackendProbe(
        get_live_api_client(), timeout=cfg.BACKEND_PROBE_TIMEOUT_SECONDS
    )

    engine = create_live_engine(cfg=cfg)
    await engine.refresh_wallet()
    server.state.engine = engine

    load_routes(server, "/api/v1")

    if config.get_bool("LOGFIRE_ENABLE"):
        logger.info("Logfire initializing")

        logfire.configure(
            token=config["LOGFIRE_TOKEN"],
            service_name="livecast",
            service_version=environ.get("BUILD_COMMIT") or "dev",
        )

        logger.info("Logfire instrument fastapi")
        logfire.instrument_fastapi(server, capture_headers=True)

        logger.info("Logfire instrument httpx")
        logfire.instrument_httpx()

        logger.info("Logfire instrument pydantic")
        logfire.instrument_pydantic()

    yield

    logger.info("Application shutdown...")

    await engine.close()


app = FastAPI(
    version="1.0",
    title="Livecast API",
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
    default_response_class=ORJSONResponse,
    lifespan=lifespan,
)

DEBUG = config.get_bool("DEBUG")

app.state.limiter = limiter

app.add_middleware(HTTPLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,  # type: ignore
    allow_origins=[x.strip() for x in config.get("API_CORS_ORIGINS", "*").split(",") if x.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore
app.add_exception_handler(AppError, app_error_handler)  # type: ignore
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore


def build_granian_kwargs():
    kwargs = {
        "interface": "asgi",
        "address": config.get("API_HOST", "0.0.0.0"),
        "port": int(config.get("API_PORT", "8000")),
        "workers": int(config.get("API_WORKERS", "1")),
        "reload": DEBUG,
    }

    return kwargs


if __name__ == "__main__":
    granian_kwargs = build_granian_kwargs()
    Granian("livecast.main:app", **granian_kwargs).serve()
