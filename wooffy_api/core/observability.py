import json
import logging
import time
import traceback
from contextvars import ContextVar
from typing import Any
from uuid import uuid4

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from wooffy_api.core.errors import ApiError

request_id_ctx: ContextVar[str] = ContextVar("request_id", default="-")
logger = logging.getLogger("wooffy.api")


def setup_observability() -> None:
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False


def get_request_id() -> str:
    return request_id_ctx.get()


def log_event(event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    logger.log(
        level,
        json.dumps(
            {"event": event, "request_id": get_request_id(), **fields},
            default=str,
        ),
    )


def _resolve_request_id(request: Request) -> str:
    return (
        getattr(request.state, "request_id", None)
        or request.headers.get("x-request-id")
        or get_request_id()
    )


def error_response(
    *,
    status_code: int,
    request: Request,
    message: str,
    code: str | None = None,
    extra: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    content: dict[str, Any] = {"success": False, "error": message}
    if code:
        content["code"] = code
    if extra:
        content.update(extra)
    content["request_id"] = _resolve_request_id(request)
    return JSONResponse(status_code=status_code, headers=headers, content=content)


async def request_logging_middleware(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or str(uuid4())
    request.state.request_id = request_id
    token = request_id_ctx.set(request_id)
    started = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
    finally:
        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        logger.info(
            json.dumps(
                {
                    "event": "request",
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": status_code,
                    "duration_ms": duration_ms,
                }
            )
        )
        request_id_ctx.reset(token)

    response.headers["X-Request-ID"] = request_id
    return response


async def api_error_handler(request: Request, exc: ApiError):
    return error_response(
        status_code=exc.status_code,
        request=request,
        message=exc.message,
        code=exc.code,
        extra=exc.extra,
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(
        json.dumps(
            {
                "event": "unhandled_exception",
                "request_id": _resolve_request_id(request),
                "path": request.url.path,
                "error": str(exc),
                "traceback": traceback.format_exc(limit=10),
            }
        )
    )
    return error_response(
        status_code=500,
        request=request,
        message="An error occurred. Please try again.",
        code="INTERNAL_ERROR",
    )


_STATUS_CODE_MAP = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    429: "RATE_LIMITED",
}


async def http_exception_handler(request: Request, exc: HTTPException):
    code = _STATUS_CODE_MAP.get(exc.status_code, "HTTP_ERROR")
    message = exc.detail if isinstance(exc.detail, str) else "HTTP error"
    return error_response(
        status_code=exc.status_code,
        request=request,
        message=message,
        code=code,
        headers=exc.headers,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    error_types = {err.get("type") for err in errors}

    if "json_invalid" in error_types:
        return error_response(
            status_code=400,
            request=request,
            message="Invalid request format",
            code="INVALID_REQUEST",
        )

    if "missing" in error_types:
        return error_response(
            status_code=400,
            request=request,
            message="Missing required fields",
            code="MISSING_FIELDS",
        )

    first = errors[0] if errors else {}
    message = str(first.get("msg", "Invalid request"))
    # Pydantic prefixes custom validator messages with "Value error, ".
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    return error_response(
        status_code=400,
        request=request,
        message=message,
        code="INVALID_REQUEST",
    )
