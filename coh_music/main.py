"""
Coh Music Site - Main Application

Single-container FastAPI application that serves:
- The public site and release pages via Jinja2 templates
- Static files (CSS, JS)
- REST API endpoints for every piece of editable content
- The admin dashboard with drag-and-drop ordering
- Health check endpoint
- Simple session-based authentication for the admin

Content lives in a local SQLite database; media files are hosted on
Cloudinary and referenced by URL.
"""

import sys
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Form, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from coh_music.assets import is_configured as assets_configured
from coh_music.auth import (
    auth_required,
    clear_session_cookie,
    get_current_user,
    render_login_page,
    safe_next_url,
    set_session_cookie,
    verify_credentials,
)
from coh_music.config import (
    ADMIN_PASSWORD,
    APP_ENV,
    APP_HOST,
    APP_PORT,
    APP_VERSION,
    DEBUG,
    LOG_LEVEL,
    SITE_NAME,
    STATIC_DIR,
    TEMPLATES_DIR,
    ensure_directories,
)
from coh_music.database import init_db
from coh_music.routes.api import router as api_router
from coh_music.routes.pages import router as pages_router

# ---------------------------------------------------------------------------
# Logging setup: stdout only
# ---------------------------------------------------------------------------
logger.remove()

logger.add(
    sys.stdout,
    level="DEBUG" if DEBUG else LOG_LEVEL,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    colorize=True,
)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    On startup:
        1. Create the data directory
        2. Initialize the SQLite database

    On shutdown:
        3. Log shutdown
    """
    # --- Startup ---
    logger.info("🚀 Starting {} site v{}", SITE_NAME, APP_VERSION)
    logger.info("📋 Environment: {} | Debug: {}", APP_ENV, DEBUG)

    if ADMIN_PASSWORD:
        logger.info("🔒 Admin authentication enabled")
    else:
        logger.warning("🔓 Authentication DISABLED (no ADMIN_PASSWORD set)")

    if not assets_configured():
        logger.warning("☁️  Cloudinary not configured, uploads will be rejected")

    # Step 1: Ensure the data directory exists
    ensure_directories()

    # Step 2: Initialize database (creates missing tables)
    try:
        init_db()
    except Exception as e:
        logger.critical("❌ Database initialization failed: {}", e)
        raise

    logger.success("✅ Application ready, listening on {}:{}", APP_HOST, APP_PORT)

    yield

    # --- Shutdown ---
    logger.info("👋 Shutdown complete")


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------
def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title=f"{SITE_NAME} Site",
        description=(
            "Artist website with releases, gallery, videos, press kit and "
            "newsletter, plus an admin dashboard for editing all of it."
        ),
        version=APP_VERSION,
        lifespan=lifespan,
        docs_url="/docs" if DEBUG else None,
        redoc_url="/redoc" if DEBUG else None,
    )

    # ------------------------------------------------------------------
    # Jinja2 templates
    # ------------------------------------------------------------------
    templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
    app.state.templates = templates

    # ------------------------------------------------------------------
    # Static files
    # ------------------------------------------------------------------
    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

    # ------------------------------------------------------------------
    # API error envelope
    # ------------------------------------------------------------------
    @app.exception_handler(StarletteHTTPException)
    async def api_error_handler(request: Request, exc: StarletteHTTPException):
        """Render API errors as ``{"error": ..., "issues": ...}``."""
        if not request.url.path.startswith("/api/"):
            return await http_exception_handler(request, exc)

        if isinstance(exc.detail, dict):
            content = exc.detail
        else:
            content = {"error": exc.detail}
        return JSONResponse(status_code=exc.status_code, content=content)

    # ------------------------------------------------------------------
    # Authentication middleware
    # ------------------------------------------------------------------
    @app.middleware("http")
    async def auth_middleware(request: Request, call_next):
        """Guard the admin pages and every content write."""
        if auth_required(request):
            # For API requests, return 401 instead of redirect
            if request.url.path.startswith("/api/"):
                return JSONResponse(
                    status_code=401,
                    content={"error": "Unauthorized"},
                )
            return RedirectResponse(
                url=f"/login?next={request.url.path}", status_code=302
            )

        response = await call_next(request)
        return response

    # ------------------------------------------------------------------
    # Request logging middleware
    # ------------------------------------------------------------------
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log every incoming HTTP request with timing information."""
        start = time.time()
        try:
            response = await call_next(request)
        except Exception as exc:
            duration = round(time.time() - start, 3)
            logger.error(
                "❌ {method} {path}: unhandled error after {duration}s: {exc}",
                method=request.method,
                path=request.url.path,
                duration=duration,
                exc=exc,
            )
            raise

        duration = round(time.time() - start, 3)
        status = response.status_code

        if status >= 500:
            logger.error(
                "📤 {method} {path} {status} [{duration}s]",
                method=request.method,
                path=request.url.path,
                status=status,
                duration=duration,
            )
        elif status >= 400:
            logger.warning(
                "📤 {method} {path} {status} [{duration}s]",
                method=request.method,
                path=request.url.path,
                status=status,
                duration=duration,
            )
        elif not request.url.path.startswith("/static"):
            logger.info(
                "📤 {method} {path} {status} [{duration}s]",
                method=request.method,
                path=request.url.path,
                status=status,
                duration=duration,
            )

        return response

    # ------------------------------------------------------------------
    # Login / Logout routes (mounted directly on app, before routers)
    # ------------------------------------------------------------------
    @app.get("/login")
    async def login_page(request: Request):
        """Show the login form."""
        next_url = safe_next_url(request.query_params.get("next"))
        # If already logged in, go straight to the admin
        if get_current_user(request):
            return RedirectResponse(url=next_url, status_code=302)
        return render_login_page(next_url=next_url)

    @app.post("/login")
    async def login_post(
        email: str = Form(...),
        password: str = Form(...),
        next: str = Form("/admin"),
    ):
        """Handle login form submission."""
        if verify_credentials(email, password):
            logger.info("🔓 Admin '{}' logged in", email)
            response = RedirectResponse(url=safe_next_url(next), status_code=302)
            set_session_cookie(response, email.strip().lower())
            return response

        logger.warning("🔒 Failed login attempt for '{}'", email)
        return render_login_page(
            error="Invalid email or password",
            prefill_email=email,
            next_url=next,
        )

    @app.get("/logout")
    async def logout(request: Request):
        """Log out and return to the public site."""
        user = get_current_user(request)
        if user:
            logger.info("🔒 Admin '{}' logged out", user)
        response = RedirectResponse(url="/", status_code=302)
        clear_session_cookie(response)
        return response

    # ------------------------------------------------------------------
    # Register routers
    # ------------------------------------------------------------------
    app.include_router(api_router)  # /api/*  JSON endpoints
    app.include_router(pages_router)  # /*      HTML pages (must be last)

    return app


# ---------------------------------------------------------------------------
# Create the app instance (used by Uvicorn)
# ---------------------------------------------------------------------------
app = create_app()


def run() -> None:
    """Console entry point (development server)."""
    import uvicorn

    uvicorn.run(
        "coh_music.main:app",
        host=APP_HOST,
        port=APP_PORT,
        reload=DEBUG,
        log_level="debug" if DEBUG else "info",
    )


# ---------------------------------------------------------------------------
# Direct execution (development)
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    run()
