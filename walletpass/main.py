"""
HTTP entry point.

    uvicorn walletpass.main:app
"""
import logging
import sys

from fastapi import FastAPI

from walletpass import __version__
from walletpass.core.config import settings, validate_config
from walletpass.core.errors import PassConfigError
from walletpass.exception_handlers import register_exception_handlers
from walletpass.routers import passes

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger("walletpass")


def create_app() -> FastAPI:
    app = FastAPI(title="walletpass", version=__version__)

    # Non-fatal so /healthz serves even when signing is not configured yet
    try:
        validate_config()
    except PassConfigError as e:
        logger.warning(f"Startup validation failed: {e}")

    @app.get("/healthz")
    async def healthz():
        """Liveness check. Never touches the template or certificates."""
        return {"ok": True, "service": "walletpass", "version": __version__, "status": "healthy"}

    register_exception_handlers(app)
    app.include_router(passes.router)
    return app


app = create_app()
