"""
Exception handlers for the pass API.

Register these on a FastAPI app instance via `register_exception_handlers(app)`.
"""
import logging

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from walletpass.core.config import settings
from walletpass.core.errors import PassError, PassValidationError

logger = logging.getLogger("walletpass")


def _is_local_env() -> bool:
    return settings.ENV.lower() in {"local", "dev"}


async def http_error_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are a client error (400), same as a descriptor that fails validation."""
    return JSONResponse(
        status_code=400,
        content={
            "detail": {
                "error": "PASS_VALIDATION_FAILED",
                "message": "Invalid request data",
                "errors": [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()],
            }
        },
    )


async def pass_error_handler(request: Request, exc: PassError):
    """Pass errors that escaped a route: validation is 400, everything else 500."""
    if isinstance(exc, PassValidationError):
        return JSONResponse(
            status_code=400,
            content={"detail": {"error": "PASS_VALIDATION_FAILED", "message": str(exc), "errors": exc.errors}},
        )
    logger.error(f"Pass error on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"detail": str(exc) if _is_local_env() else "Internal server error"})


async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    # In production, don't leak internal error details to clients
    if _is_local_env():
        error_response = {"detail": f"Internal server error: {exc}"}
    else:
        error_response = {"detail": "Internal server error"}
    return JSONResponse(status_code=500, content=error_response)


def register_exception_handlers(app):
    """Register all exception handlers on the given FastAPI app."""
    app.add_exception_handler(HTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(PassError, pass_error_handler)
    app.add_exception_handler(Exception, global_exception_handler)
