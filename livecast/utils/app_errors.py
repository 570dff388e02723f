import inspect
from enum import Enum, IntEnum
from uuid import uuid4


class AppErrorCode(str, Enum):
    E_INTERNAL_ERROR = "E_INTERNAL_ERROR"
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_INVALID_PARAMS = "E_INVALID_PARAMS"
    E_UNAUTHENTICATED = "E_UNAUTHENTICATED"

    # Live interaction engine
    E_UPSTREAM_UNAVAILABLE = "E_UPSTREAM_UNAVAILABLE"
    E_PLAYBACK_FAILED = "E_PLAYBACK_FAILED"
    E_INSUFFICIENT_BALANCE = "E_INSUFFICIENT_BALANCE"
    E_TRANSPORT_DROPPED = "E_TRANSPORT_DROPPED"
    E_GIFT_NOT_FOUND = "E_GIFT_NOT_FOUND"
    E_BROADCAST_NOT_FOUND = "E_BROADCAST_NOT_FOUND"
    E_RATE_LIMITED = "E_RATE_LIMITED"

    def __str__(self) -> str:
        return self.value


class HttpStatusCode(IntEnum):
    OK = 200
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    PAYMENT_REQUIRED = 402
    FORBIDDEN = 403
    NOT_FOUND = 404
    CONFLICT = 409
    TOO_MANY_REQUESTS = 429
    INTERNAL_SERVER_ERROR = 500
    SERVICE_UNAVAILABLE = 503


class AppError(Exception):
    """Application error carrying an error code, a message and an HTTP status.

    The call site that raised the error is captured so handlers can log it
    without walking the traceback.
    """

    def __init__(
        self,
        errcode: AppErrorCode | str = AppErrorCode.E_INTERNAL_ERROR,
        errmesg: str = "We are sorry, an error occurred.",
        status_code: int = HttpStatusCode.BAD_REQUEST,
    ):
        super().__init__(errmesg)
        self.errcode = str(errcode)
        self.errmesg = errmesg
        self.status_code = int(status_code)
        self.erresid = uuid4().hex[:10]

        frame = inspect.currentframe()
        caller = frame.f_back if frame else None
        # Skip constructors of AppError subclasses
        while caller and caller.f_code.co_name == "__init__":
            caller = caller.f_back
        if caller:
            module = caller.f_globals.get("__name__", caller.f_code.co_filename)
            self.caller_info = f"{module}:{caller.f_code.co_name}:{caller.f_lineno}"
        else:
            self.caller_info = "unknown"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(errcode={self.errcode!r}, errmesg={self.errmesg!r})"
