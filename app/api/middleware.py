"""
API middleware for InfoRx Interpreter.

Provides:
- Rate limiting (per signed-in user, else per client IP)
- Request context (user, request ID) and request logging
- Error handling
"""

import time
from typing import Callable, Optional
from uuid import uuid4

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

from app.utils.logger import bind_request_context, get_logger

logger = get_logger("middleware")


def get_user_id(request: Request) -> Optional[str]:
    """Extract the signed-in user's ID forwarded by the auth layer."""
    return request.headers.get("X-User-ID") or None


LOOPBACK_ADDRESSES = frozenset({"127.0.0.1", "::1", "localhost"})


def client_address(request: Request) -> str:
    """
    Address of the end client.

    X-Forwarded-For is trusted only from loopback, which is where the
    pipeline's own calls to /api/interpret come from.
    """
    address = get_remote_address(request)
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded and address in LOOPBACK_ADDRESSES:
        return forwarded.split(",")[0].strip()
    return address


def rate_limit_key(request: Request) -> str:
    user_id = getattr(request.state, "user_id", None)
    return f"user:{user_id}" if user_id else client_address(request)


limiter = Limiter(key_func=rate_limit_key)


def error_body(error: str, message: str, error_code: str, request: Request) -> dict:
    return {
        "error": error,
        "message": message,
        "error_code": error_code,
        "request_id": getattr(request.state, "request_id", None),
    }


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Attach caller identity to the request and log its outcome.

    The auth layer in front of this service forwards the user ID in
    X-User-ID; anonymous requests are allowed. The request ID is taken
    from X-Request-ID when present and echoed back.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable
    ) -> Response:
        request.state.user_id = get_user_id(request)
        request.state.request_id = request.headers.get("X-Request-ID") or str(uuid4())
        bind_request_context(
            request_id=request.state.request_id,
            user_id=request.state.user_id
        )

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                method=request.method,
                path=request.url.path,
                error=str(e),
                process_time_ms=int((time.perf_counter() - start_time) * 1000)
            )
            raise

        process_time = time.perf_counter() - start_time
        logger.info(
            "Request completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            process_time_ms=int(process_time * 1000)
        )

        response.headers["X-Request-ID"] = request.state.request_id
        response.headers["X-Process-Time"] = f"{process_time:.4f}"
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """
    Global error handling middleware.

    Pipeline errors are reported as state by the routes; anything that
    still escapes becomes a safe JSON error without internal detail.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable
    ) -> Response:
        try:
            return await call_next(request)

        except ValueError as e:
            logger.warning("Validation error", error=str(e))
            return JSONResponse(
                status_code=400,
                content=error_body(
                    "Validation Error", str(e), "VALIDATION_ERROR", request
                )
            )

        except Exception as e:
            logger.error("Unhandled exception", error=str(e), exc_info=True)
            return JSONResponse(
                status_code=500,
                content=error_body(
                    "Internal Server Error",
                    "An unexpected error occurred. Please try again.",
                    "INTERNAL_ERROR",
                    request
                )
            )


def setup_rate_limiting(app) -> None:
    """Setup rate limiting on the application."""
    app.state.limiter = limiter

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        logger.warning("Rate limit exceeded", path=request.url.path, limit=str(exc.detail))
        return JSONResponse(
            status_code=429,
            content=error_body(
                "Rate Limit Exceeded",
                "Too many requests. Please wait a minute and try again.",
                "RATE_LIMIT_EXCEEDED",
                request
            )
        )
