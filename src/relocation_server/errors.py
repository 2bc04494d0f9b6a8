"""Global exception handlers — map SDK errors to HTTP responses.

Every SDK error derives from ``FlowError`` and carries its own status code
and client-safe message, so one handler covers the whole taxonomy.  The
full exception text (which may include subject ids or handles) stays in
the server log.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from relocation_flows.errors import FlowError

logger = logging.getLogger(__name__)


async def flow_error_handler(request: Request, exc: FlowError) -> JSONResponse:
    """Map a ``FlowError`` subclass to its status and safe message."""
    status = exc.status_code
    logger.warning("%s [%d] at %s: %s", type(exc).__name__, status, request.url, exc)
    content: dict = {"detail": exc.safe_message}
    field = getattr(exc, "field", None)
    if field:
        content["field"] = field
    return JSONResponse(status_code=status, content=content)


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions — log full traceback, return 500."""
    logger.exception("Unhandled exception at %s", request.url)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )
