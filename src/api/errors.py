"""
Exception handlers.

Every error leaves the API as ``{"error": <kind>, "message": <text>}`` plus
``details`` for field-level validation problems.  This covers routing errors
(unknown path, wrong method) and rate limiting too.  Internal errors are
logged with their stack and returned without detail.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.api.schemas import ErrorResponse
from src.domain.errors import DomainError, ValidationError

logger = logging.getLogger(__name__)

HTTP_ERROR_KINDS = {
    status.HTTP_401_UNAUTHORIZED: "unauthenticated",
    status.HTTP_403_FORBIDDEN: "not_authorized",
    status.HTTP_404_NOT_FOUND: "not_found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "method_not_allowed",
}


def _body(kind: str, message: str, details=None) -> dict:
    return ErrorResponse(
        error=kind, message=message, details=details or None
    ).model_dump(exclude_none=True)


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "%s on %s %s: %s",
            exc.kind,
            request.method,
            request.url.path,
            exc.message,
            exc_info=exc,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=_body(exc.kind, "The request could not be completed, please retry"),
        )
    logger.info("%s on %s %s: %s", exc.kind, request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=_body(exc.kind, exc.message, exc.details),
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg", ""),
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_body(ValidationError.kind, "Validation error", details),
    )


async def http_error_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    kind = HTTP_ERROR_KINDS.get(exc.status_code, "http_error")
    return JSONResponse(
        status_code=exc.status_code,
        content=_body(kind, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning("Rate limit hit on %s %s: %s", request.method, request.url.path, exc.detail)
    response = JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content=_body("rate_limited", f"Rate limit exceeded: {exc.detail}"),
    )
    # Retry-After / X-RateLimit-* headers, as slowapi's own handler adds them
    return request.app.state.limiter._inject_headers(
        response, request.state.view_rate_limit
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_body("internal_error", "Internal server error"),
    )


EXCEPTION_HANDLERS = {
    DomainError: domain_error_handler,
    RequestValidationError: validation_error_handler,
    RateLimitExceeded: rate_limit_handler,
    StarletteHTTPException: http_error_handler,
    Exception: unhandled_error_handler,
}


def register_exception_handlers(app: FastAPI) -> None:
    for exception_class, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exception_class, handler)
