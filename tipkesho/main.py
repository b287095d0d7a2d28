"""TipKesho API -- Main Application Entry Point

Creates the FastAPI application, configures logging and CORS middleware,
registers the error handler, and mounts all API route modules under the
/api/v1 prefix.

Run with::

    uvicorn tipkesho.main:app --host 0.0.0.0 --port 8000 --reload
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tipkesho.core.config import settings
from tipkesho.core.errors import TipKeshoError, handle_tipkesho_error
from tipkesho.core.logging_config import configure_logging

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan: startup / shutdown hooks
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager.

    Startup:
      - Apply the logging configuration.
      - Warn if the payment provider credential is missing.

    Shutdown:
      - Dispose of the database engine's connection pool.
    """
    configure_logging(settings.log_level)
    logger.info("%s %s starting", settings.app_name, settings.app_version)
    if not settings.flutterwave_secret_key.strip():
        logger.error(
            "FLUTTERWAVE_SECRET_KEY is not set; M-Pesa tips will be rejected"
        )

    yield

    from tipkesho.api.deps import engine

    await engine.dispose()


# ---------------------------------------------------------------------------
# Application instance
# ---------------------------------------------------------------------------

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
)

app.add_exception_handler(TipKeshoError, handle_tipkesho_error)


# ---------------------------------------------------------------------------
# CORS middleware
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@app.get("/health", tags=["Health"])
async def health():
    """Lightweight health check for load balancers and readiness probes."""
    return {"status": "ok", "version": settings.app_version}


# ---------------------------------------------------------------------------
# Register API route modules
# ---------------------------------------------------------------------------
# Each router already defines its own prefix (e.g. /tips, /creators) and
# tags.  We mount them under the shared /api/v1 prefix so the full paths
# become /api/v1/tips, /api/v1/creators, etc.
# ---------------------------------------------------------------------------

from tipkesho.api.routes import auth, creators, tips  # noqa: E402

_prefix = settings.api_v1_prefix

app.include_router(auth.router, prefix=_prefix)
app.include_router(tips.router, prefix=_prefix)
app.include_router(creators.router, prefix=_prefix)
