import logging
from collections.abc import Awaitable, Callable

from fastapi import Request, status
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


def _envelope(request: Request, code: str, message: str) -> dict:
    return {
        "error": {"code": code, "message": message},
        "request_id": getattr(request.state, "request_id", None),
    }


async def error_envelope_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """
    Last line of defence for exceptions that escaped the route handlers.

    Internal messages are only echoed back when the app sets
    ``app.state.expose_errors`` (development mode).
    """
    try:
        return await call_next(request)
    except StarletteHTTPException as exc:
        detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content=_envelope(request, "http_error", detail),
            headers=getattr(exc, "headers", None),
        )
    except Exception as exc:
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        message = "An unexpected error occurred"
        if getattr(request.app.state, "expose_errors", False):
            message = f"{message}: {exc}"
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_envelope(request, "internal_error", message),
        )
