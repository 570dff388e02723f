from functools import lru_cache
from importlib import import_module
from os import environ
from pathlib import Path
from typing import Any, Literal
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse
from loguru import logger
from pydantic import BaseModel, Field

from livecast.utils.app_errors import AppError, AppErrorCode

E_INTERNAL = AppErrorCode.E_INTERNAL_ERROR.value
E_INVALID_PARAMS = AppErrorCode.E_INVALID_PARAMS.value


def format_error(ex: BaseException) -> str:
    from traceback import TracebackException

    return "".join(TracebackException.from_exception(ex).format())


class ApiResponse(BaseModel):
    version: str | None = Field(default_factory=lambda: environ.get("BUILD_COMMIT", "dev"))


class ApiSuccess(ApiResponse):
    success: Literal[True] = True
    results: Any = "OK"


class ApiFailure(ApiResponse):
    success: Literal[False] = False
    errcode: str = E_INTERNAL
    erresid: str = Field(default_factory=lambda: uuid4().hex[:10])
    errmesg: str = "We are sorry, an error occurred."


def api_failure(errcode: str | None = None, errmesg: Exception | str | None = None, *, trace: Any = None):
    import inspect

    if not errcode:
        errcode = ApiFailure.model_fields["errcode"].default

    if isinstance(errmesg, Exception):
        errmesg = format_error(errmesg)

    if not errmesg:
        errmesg = ApiFailure.model_fields["errmesg"].default

    failure = ApiFailure(errcode=errcode, errmesg=errmesg)

    caller_frame = inspect.stack()[1]
    module = inspect.getmodule(caller_frame.frame)
    module_name = (
        module.__name__ if module and getattr(module, "__name__", None) else caller_frame.filename
    )
    caller_info = f"{module_name}:{caller_frame.function}:{caller_frame.lineno}"

    logger.warning(
        f"{failure.errcode} {failure.erresid}\n{failure.errmesg} caller={caller_info} trace={trace}"
    )

    return failure


def make_response(results: ApiResponse, *, status_code: int | None = None) -> ORJSONResponse:
    if status_code is None:
        if isinstance(results, ApiFailure):
            status_code = 500 if results.errcode == E_INTERNAL else 400
        else:
            status_code = 200

    return ORJSONResponse(status_code=status_code, content=results.model_dump(mode="json"))


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()

    logger.warning(
        "Validation error: path={} method={} errors={}",
        request.url.path,
        request.method,
        errors,
    )

    failure = api_failure(E_INVALID_PARAMS, errmesg=str(errors))
    return ORJSONResponse(status_code=422, content=failure.model_dump())


@lru_cache
def get_worker_info():
    project_root = Path(__file__).parent.parent.parent.parent
    worker_name = environ.get("WORKER_NAME", project_root.name)

    parts = environ.get("BUILD_COMMIT", "").split("-")
    commit_id = parts[1] if len(parts) > 1 else "dev"

    return worker_name, commit_id, uuid4().hex[:8]


def init_logger():
    import sys

    from ..config import config

    logger.remove()

    worker_name, commit_id, _ = get_worker_info()

    if config.get_bool("DEBUG"):
        logger_level = "DEBUG"
        logger_format = (
            f"<yellow>{worker_name}:{commit_id}</yellow> | "
            "<green>{time:MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
            "<level>{message}</level>"
        )
    else:
        logger_level = "INFO"
        logger_format = (
            f"{worker_name}:{commit_id} | "
            "{time:MM-DD HH:mm:ss.SSS} | "
            "{level: <8} | "
            "{name}:{function}:{line} | "
            "{message}"
        )
    logger.add(sys.stderr, level=logger_level, format=logger_format)


async def app_error_handler(request: Request, exc: AppError) -> ORJSONResponse:
    """Convert an AppError into the ApiFailure envelope, keeping its erresid."""
    log_msg = f"{exc.errcode} {exc.erresid} msg={exc.errmesg} caller={exc.caller_info}"
    if exc.errcode == E_INTERNAL:
        logger.error(log_msg)
    else:
        logger.warning(log_msg)

    failure = ApiFailure(errcode=exc.errcode, errmesg=exc.errmesg, erresid=exc.erresid)
    return make_response(failure, status_code=exc.status_code)


def load_routes(app: FastAPI, prefix: str):
    """Include every `router` found in the shared api package and under `livecast/api`."""
    package_root = Path(__file__).parent.parent.parent
    load_routes_in_folder(app, "", Path(__file__).parent, package_root)
    load_routes_in_folder(app, prefix, package_root / "api", package_root)

    for route_info in get_all_routes_info(app):
        methods = ",".join(sorted(route_info["methods"]))
        logger.info("Loaded route: {:<12} {:<60} {}", methods, route_info["path"], route_info["endpoint"])


def load_routes_in_folder(app: FastAPI, prefix: str, folder: Path, package_root: Path):
    from ..config import config

    disabled_routes = [x.strip() for x in config.get("API_DISABLED", "").split(",") if x.strip()]

    for path in sorted(folder.rglob("*.py")):
        if path.name == "__init__.py":
            continue

        relative_path = path.relative_to(package_root.parent)
        name = ".".join(relative_path.with_suffix("").parts)
        if any(f".{disabled}" in name for disabled in disabled_routes):
            logger.warning("Route module {} disabled", name)
            continue

        module = import_module(name)
        if hasattr(module, "router"):
            app.include_router(module.router, prefix=prefix)
            logger.info("Added routes in {}", name)


def get_all_routes_info(app: FastAPI) -> list[dict[str, Any]]:
    routes_info = []
    for route in app.routes:
        if hasattr(route, "methods"):
            endpoint = getattr(route, "endpoint", None)
            routes_info.append(
                {
                    "path": route.path,
                    "methods": route.methods,
                    "endpoint": getattr(endpoint, "__name__", str(endpoint)),
                }
            )
    return routes_info
