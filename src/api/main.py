"""FastAPI application for the CRMForge API.

Provides the main application instance with routers and exception
handlers configured.
"""

import logging
import os
import sys
import time as _time
from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _pkg_version

from fastapi import FastAPI, Request

# Configure logging to stdout for uvicorn to capture
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
# Ensure our application loggers are captured
logging.getLogger("src").setLevel(logging.INFO)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.routes import crm, schema
from src.cli.config import get_config
from src.db.connection import init_db
from src.errors import CRMForgeError, ErrorCategory, get_error

logger = logging.getLogger(__name__)

_startup_time: float = 0.0


def _parse_allowed_origins() -> list[str]:
    """Parse comma-separated CORS allowlist from ALLOWED_ORIGINS env var."""
    raw = os.environ.get("ALLOWED_ORIGINS", "").strip()
    if not raw:
        return []
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup; stop the shared executor on shutdown."""
    global _startup_time

    _startup_time = _time.time()
    init_db()
    if not get_config().resolved_api_key():
        logger.warning(
            "No Notion API key configured; /api/v1/crm/create will answer 401 "
            "until NOTION_API_KEY or record_store.api_key is set."
        )

    yield

    executor = getattr(app.state, "executor", None)
    if executor is not None:
        await executor.aclose()


app = FastAPI(
    title="CRMForge API",
    description="Provision CRM workspaces in Notion from a declarative schema",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS allowlist is env-driven. If unset, CORS is disabled (same-origin only).
allowed_origins = _parse_allowed_origins()
if allowed_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        expose_headers=["X-Run-Id"],
    )


@app.exception_handler(CRMForgeError)
async def crmforge_error_handler(request: Request, exc: CRMForgeError) -> JSONResponse:
    """Render CRMForgeError with a consistent body.

    Auth errors answer 401, everything else 400.
    """
    error_def = get_error(exc.code)
    is_auth = error_def is not None and error_def.category == ErrorCategory.AUTH
    return JSONResponse(status_code=401 if is_auth else 400, content=exc.to_dict())


app.include_router(schema.router, prefix="/api/v1")
app.include_router(crm.router, prefix="/api/v1")


@app.get("/health")
def health_check() -> dict:
    """Health check endpoint.

    Returns:
        Status, version, uptime and whether a Notion API key is configured.
    """
    uptime = int(_time.time() - _startup_time) if _startup_time else 0
    try:
        version = _pkg_version("crmforge")
    except PackageNotFoundError:
        version = "unknown"
    return {
        "status": "healthy",
        "version": version,
        "uptime_seconds": uptime,
        "record_store_configured": bool(get_config().resolved_api_key()),
    }
