"""Application error taxonomy.

Every failure that crosses a component boundary is an ``AppError``. Subclasses pin the
error code, the HTTP status used by the API layer and whether the resilience layer may
retry the call that produced it.
"""

from __future__ import annotations

import asyncio
import inspect
from enum import Enum, IntEnum
from typing import ClassVar
from uuid import uuid4

import httpx


class HttpStatusCode(IntEnum):
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    CONFLICT = 409
    TOO_MANY_REQUESTS = 429
    INTERNAL_SERVER_ERROR = 500
    BAD_GATEWAY = 502
    SERVICE_UNAVAILABLE = 503
    GATEWAY_TIMEOUT = 504


class AppErrorCode(str, Enum):
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_INVALID_STATE = "E_INVALID_STATE"
    E_PERMISSION_DENIED = "E_PERMISSION_DENIED"
    E_AUTH_EXPIRED = "E_AUTH_EXPIRED"
    E_RATE_LIMITED = "E_RATE_LIMITED"
    E_SERVER_ERROR = "E_SERVER_ERROR"
    E_NETWORK_ERROR = "E_NETWORK_ERROR"
    E_TIMEOUT = "E_TIMEOUT"
    E_MAX_RETRIES_EXCEEDED = "E_MAX_RETRIES_EXCEEDED"
    E_CIRCUIT_OPEN = "E_CIRCUIT_OPEN"
    E_POLL_EXHAUSTED = "E_POLL_EXHAUSTED"
    E_PLATFORM_ERROR = "E_PLATFORM_ERROR"
    E_TRANSPORT_ERROR = "E_TRANSPORT_ERROR"
    E_INTERNAL_ERROR = "E_INTERNAL_ERROR"

    def __str__(self) -> str:
        return self.value


class AppError(Exception):
    """Base application error.

    Attributes:
        errcode: Machine readable error code
        errmesg: Human readable message, safe to show to an operator
        status_code: HTTP status used when the error reaches the API layer
        erresid: Short random id to correlate the API response with logs
        caller_info: ``module:function:line`` of the code that raised the error
    """

    default_errcode: ClassVar[AppErrorCode] = AppErrorCode.E_INTERNAL_ERROR
    default_status_code: ClassVar[HttpStatusCode] = HttpStatusCode.INTERNAL_SERVER_ERROR
    default_errmesg: ClassVar[str] = "We are sorry, an error occurred."
    retryable: ClassVar[bool] = False

    def __init__(
        self,
        errmesg: str | None = None,
        *,
        errcode: AppErrorCode | str | None = None,
        status_code: int | None = None,
    ) -> None:
        self.errcode = str(errcode or self.default_errcode)
        self.errmesg = errmesg or self.default_errmesg
        self.status_code = int(status_code or self.default_status_code)
        self.erresid = uuid4().hex[:10]
        self.caller_info = _caller_info()
        super().__init__(self.errmesg)

    def __str__(self) -> str:
        return self.errmesg

    def __repr__(self) -> str:
        return f"{type(self).__name__}(errcode={self.errcode!r}, errmesg={self.errmesg!r})"


class InvalidRequestError(AppError):
    default_errcode = AppErrorCode.E_INVALID_REQUEST
    default_status_code = HttpStatusCode.BAD_REQUEST
    default_errmesg = "Invalid request"


class InvalidStateError(AppError):
    """The caller violated a precondition, e.g. ``start()`` while not Ready."""

    default_errcode = AppErrorCode.E_INVALID_STATE
    default_status_code = HttpStatusCode.CONFLICT
    default_errmesg = "Operation not allowed in the current state"


class PermissionDeniedError(AppError):
    default_errcode = AppErrorCode.E_PERMISSION_DENIED
    default_status_code = HttpStatusCode.FORBIDDEN
    default_errmesg = "Capture permission denied"


class AuthExpiredError(AppError):
    default_errcode = AppErrorCode.E_AUTH_EXPIRED
    default_status_code = HttpStatusCode.UNAUTHORIZED
    default_errmesg = "Platform authentication expired. Please reconnect."


class RateLimitedError(AppError):
    default_errcode = AppErrorCode.E_RATE_LIMITED
    default_status_code = HttpStatusCode.TOO_MANY_REQUESTS
    default_errmesg = "Too many requests. Please wait and try again."
    retryable = True


class ServerError(AppError):
    default_errcode = AppErrorCode.E_SERVER_ERROR
    default_status_code = HttpStatusCode.BAD_GATEWAY
    default_errmesg = "Platform API server error. Please try again later."
    retryable = True


class NetworkError(AppError):
    default_errcode = AppErrorCode.E_NETWORK_ERROR
    default_status_code = HttpStatusCode.SERVICE_UNAVAILABLE
    default_errmesg = "Network error occurred"
    retryable = True


class RequestTimeoutError(AppError):
    default_errcode = AppErrorCode.E_TIMEOUT
    default_status_code = HttpStatusCode.GATEWAY_TIMEOUT
    default_errmesg = "Request timeout. Please try again."
    retryable = True


class PlatformRequestError(AppError):
    """A 4xx response other than auth or rate limiting; retrying will not help."""

    default_errcode = AppErrorCode.E_PLATFORM_ERROR
    default_status_code = HttpStatusCode.BAD_GATEWAY
    default_errmesg = "Platform rejected the request"


class TransportError(AppError):
    default_errcode = AppErrorCode.E_TRANSPORT_ERROR
    default_status_code = HttpStatusCode.SERVICE_UNAVAILABLE
    default_errmesg = "Media transport failure"


class MaxRetriesExceededError(AppError):
    default_errcode = AppErrorCode.E_MAX_RETRIES_EXCEEDED
    default_status_code = HttpStatusCode.SERVICE_UNAVAILABLE

    def __init__(self, last_error: BaseException, attempts: int) -> None:
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(f"Request failed after {attempts} attempts: {last_error}")


class CircuitOpenError(AppError):
    default_errcode = AppErrorCode.E_CIRCUIT_OPEN
    default_status_code = HttpStatusCode.SERVICE_UNAVAILABLE

    def __init__(self, breaker_name: str) -> None:
        self.breaker_name = breaker_name
        super().__init__(f"Circuit breaker '{breaker_name}' is open")


class PollExhaustedError(AppError):
    default_errcode = AppErrorCode.E_POLL_EXHAUSTED
    default_status_code = HttpStatusCode.GATEWAY_TIMEOUT
    default_errmesg = "Stream failed to go live after maximum wait time. Please try again."


class InternalError(AppError):
    """Unclassified failure. Retried by default: only auth failures are never retried."""

    retryable = True


_STATUS_ERRORS: dict[int, type[AppError]] = {
    401: AuthExpiredError,
    403: AuthExpiredError,
    429: RateLimitedError,
}


def classify_error(exc: BaseException) -> AppError:
    """Map any exception onto the application taxonomy."""
    if isinstance(exc, AppError):
        return exc

    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        detail = _response_detail(exc.response)
        error_cls = _STATUS_ERRORS.get(status)
        if error_cls is None:
            error_cls = ServerError if status >= 500 else PlatformRequestError
        if error_cls is AuthExpiredError and status == 403:
            return AuthExpiredError(
                f"Platform denied access (403): {detail}" if detail else None,
                status_code=status,
            )
        return error_cls(f"{error_cls.default_errmesg} ({status}: {detail})" if detail else None)

    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)):
        return RequestTimeoutError(f"Request timeout: {exc}" if str(exc) else None)

    if isinstance(exc, (httpx.TransportError, ConnectionError)):
        return NetworkError(f"Network error: {exc}" if str(exc) else None)

    return InternalError(f"{type(exc).__name__}: {exc}")


def _response_detail(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict):
            return str(error.get("message") or error)
        if error:
            return str(error)
    return str(data)[:200]


def _caller_info() -> str:
    frame = inspect.currentframe()
    # Skip this module and AppError constructors defined elsewhere.
    while frame is not None and (
        frame.f_globals.get("__name__") == __name__
        or isinstance(frame.f_locals.get("self"), AppError)
    ):
        frame = frame.f_back
    if frame is None:
        return "unknown"
    module_name = frame.f_globals.get("__name__", frame.f_code.co_filename)
    return f"{module_name}:{frame.f_code.co_name}:{frame.f_lineno}"
