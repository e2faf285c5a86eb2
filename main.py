"""
FastAPI Application Entrypoint
------------------------------

Bootstraps the Noforum sandbox service: visitors submit raw HTML/CSS fragments to a
shared page; fragments are length-checked, filtered (`utils.html_filter`) and stored,
and every visitor's sandbox view polls the page and renders them live.

Wiring:
- Telemetry (structured logging, then Sentry) is initialised at import time, before
  any other module logs.
- Startup creates missing tables; if that fails the app keeps serving health/static
  routes and answers API calls with 503.
- `RequestContextMiddleware` binds a request id for log correlation.
- App-wide exception handlers log with the request id and report 5xx to Sentry.

Usage:
- Local run: `python main.py` (or `uvicorn main:app`), then open `/p/<any/page/id>`.
- Environment variables/settings used: see `config.py`.
"""

import os
import logging
from contextlib import asynccontextmanager
from typing import Dict, Any

from fastapi import FastAPI, Request, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.routing import APIRoute
from fastapi.staticfiles import StaticFiles

# Initialize telemetry (logging + Sentry) FIRST
from config import settings
from utils.bootstrap import init_telemetry

init_telemetry(settings)

from db import init_db, async_engine  # noqa: E402

# ----- Ensure ALL models are registered for table creation -----
import models  # noqa: E402,F401

from routes.pages import router as pages_router, view_router as sandbox_view_router  # noqa: E402
from schemas.common import HealthStatus  # noqa: E402
from utils.content_validation import ContentTooLongError  # noqa: E402
from utils.middlewares import setup_middlewares  # noqa: E402
from utils.sentry_utils import report_exception  # noqa: E402

logger = logging.getLogger(__name__)

# --- DB availability flag ---
DB_AVAILABLE = True


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Create tables on startup; dispose of the engine on shutdown."""
    global DB_AVAILABLE
    try:
        await init_db()
        logger.info(f"{settings.APP_NAME} v{settings.APP_VERSION} started ({settings.ENV}).")
        DB_AVAILABLE = True
    except Exception as exc:
        logger.critical(f"Startup failed: {exc}", exc_info=True)
        DB_AVAILABLE = False

    yield

    await async_engine.dispose()
    logger.info("Application shutdown complete.")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Collaborative HTML/CSS sandbox pages",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

if settings.CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )

setup_middlewares(app)

# Serve static files (sandbox shell, script, styles)
STATIC_DIR = os.path.join(os.path.dirname(__file__), "static")
if not os.path.isdir(STATIC_DIR):
    logger.critical(f"Static directory not found: {STATIC_DIR}. Aborting startup.")
    raise RuntimeError(f"Static directory not found: {STATIC_DIR}")

app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")


@app.get("/", include_in_schema=False)
async def index() -> Response:
    """Send visitors to the default sandbox page."""
    return RedirectResponse(url="/p/index")


@app.get("/health", response_model=HealthStatus)
async def health_check() -> Dict[str, Any]:
    """Health endpoint with DB status."""
    return {
        "status": "healthy" if DB_AVAILABLE else "degraded",
        "db_available": DB_AVAILABLE,
        "environment": settings.ENV,
        "app_name": settings.APP_NAME,
        "version": settings.APP_VERSION,
    }


app.include_router(pages_router, prefix="/api/p", tags=["pages"])
app.include_router(sandbox_view_router, tags=["sandbox"])


@app.get("/debug/routes", include_in_schema=False)
async def debug_routes() -> list[Dict[str, Any]]:
    """List all registered routes for debugging."""
    if not settings.DEBUG:
        raise HTTPException(status_code=404, detail="Not Found")

    return [
        {
            "path": route.path,
            "name": route.name,
            "methods": sorted(route.methods),
        }
        for route in app.routes
        if isinstance(route, APIRoute)
    ]


# -----------------------------------------------------------------------------
# DB Down Middleware (friendly error if DB unavailable)
# -----------------------------------------------------------------------------
@app.middleware("http")
async def db_availability_middleware(request: Request, call_next):
    if not DB_AVAILABLE and request.url.path.startswith("/api/"):
        return JSONResponse(
            status_code=503,
            content={
                "detail": "Service temporarily unavailable: database connection failed at startup."
            },
        )
    return await call_next(request)


# -----------------------------------------------------------------------------
# Exception Handlers
# -----------------------------------------------------------------------------
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    rid = getattr(request.state, "request_id", "n/a")
    logger.warning("[%s] HTTPException %s – %s", rid, exc.status_code, exc.detail)

    if exc.status_code >= 500:
        report_exception(
            exc, path=request.url.path, request_id=rid, status_code=exc.status_code
        )

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(ContentTooLongError)
async def content_too_long_handler(request: Request, exc: ContentTooLongError) -> JSONResponse:
    """Oversized submissions keep the `message` body existing sandbox clients read."""
    rid = getattr(request.state, "request_id", "n/a")
    logger.info("[%s] Rejected oversized content on %s", rid, request.url.path)
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail, "detail": exc.detail},
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Catch-all for store failures and other unexpected errors.
    Outside production the exception class and message are returned to help
    local debugging.
    """
    rid = getattr(request.state, "request_id", "n/a")
    logger.error("[%s] Unhandled exception: %s", rid, exc, exc_info=True)
    report_exception(exc, path=request.url.path, request_id=rid)

    detail_msg = (
        f"{type(exc).__name__}: {exc}"
        if settings.ENV.lower() != "production"
        else "Internal server error"
    )

    return JSONResponse(status_code=500, content={"detail": detail_msg})


# Uvicorn Entry
# -----------------------------------------------------------------------------
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        log_level="debug" if settings.DEBUG else "info",
    )
