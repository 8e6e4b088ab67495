"""
API Middleware - Error handling and request logging for the HTTP surface.

Provides:
- Unified error response formatting
- Request logging
- Debug mode with verbose errors
"""

import time
import traceback
from typing import Callable, Optional

from aiohttp import web

from ecp_visual.core.logging_utils import get_module_logger


logger = get_module_logger("APIMiddleware")

# Debug mode flag - set via APIServer
_debug_mode: bool = False


def set_debug_mode(enabled: bool) -> None:
    """Enable or disable debug mode for verbose error responses."""
    global _debug_mode
    _debug_mode = enabled
    logger.debug("API debug mode %s", "enabled" if enabled else "disabled")


@web.middleware
async def request_logging_middleware(request: web.Request, handler: Callable) -> web.StreamResponse:
    """Log method, path, status and timing of every request at debug level."""
    start_time = time.perf_counter()
    try:
        response = await handler(request)
    except web.HTTPException as e:
        logger.debug("%s %s -> %d", request.method, request.path, e.status)
        raise
    elapsed_ms = (time.perf_counter() - start_time) * 1000
    logger.debug("%s %s -> %d (%.1f ms)", request.method, request.path, response.status, elapsed_ms)
    return response


@web.middleware
async def error_handling_middleware(request: web.Request, handler: Callable) -> web.StreamResponse:
    """
    Middleware to catch and format all errors as JSON responses.

    Provides unified error response format:
    {
        "error": {
            "code": "ERROR_CODE",
            "message": "Human-readable message",
            "details": { ... }  # Optional
        },
        "status": 500
    }
    """
    try:
        return await handler(request)
    except web.HTTPException as e:
        if e.status < 400:
            raise
        return create_error_response(
            e.reason.upper().replace(" ", "_") if e.reason else "HTTP_ERROR",
            e.text or str(e),
            status=e.status,
        )
    except ValueError as e:
        logger.warning("Validation error: %s", e)
        return create_error_response("VALIDATION_ERROR", str(e), status=400)
    except Exception as e:
        tb = traceback.format_exc()
        logger.error("Unexpected error: %s\n%s", e, tb)

        details = {"type": type(e).__name__, "message": str(e)}
        if _debug_mode:
            details["traceback"] = tb.split("\n")
            details["request"] = {"method": request.method, "path": request.path}
        return create_error_response(
            "INTERNAL_ERROR", "An unexpected error occurred", status=500, details=details
        )


def create_error_response(code: str, message: str, status: int = 400, details: Optional[dict] = None) -> web.Response:
    """Create standardized error response."""
    error = {"error": {"code": code, "message": message}, "status": status}
    if details:
        error["error"]["details"] = details
    return web.json_response(error, status=status)
