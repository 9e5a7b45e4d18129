"""FastAPI application factory."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import PlainTextResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles

from bikeshop import __version__
from bikeshop.api.router import api_router
from bikeshop.config import Settings, load_settings
from bikeshop.context import AppContext, build_context
from bikeshop.errors import LoginRequired, RenderError, TicketAccessDenied
from bikeshop.services.auth import clear_auth_cookie
from bikeshop.services.bootstrap import ensure_default_admin, seed_sample_data

logger = logging.getLogger(__name__)

_static_dir = Path(__file__).parent / "static"

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Content-Security-Policy": (
        "default-src 'self'; "
        "style-src 'self' 'unsafe-inline'; "
        "script-src 'self' 'unsafe-inline'; "
        "img-src * data:; "
        "media-src *; "
        "font-src 'self'"
    ),
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
}


async def prepare(ctx: AppContext) -> None:
    """Create tables, the default admin and (optionally) demo data."""
    await ctx.db.create_all()
    async with ctx.db.session_factory() as db:
        await ensure_default_admin(db)
        if ctx.settings.seed_data:
            await seed_sample_data(db)


async def shutdown(ctx: AppContext) -> None:
    await ctx.counters.drain()
    await ctx.db.dispose()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or load_settings()
    ctx = build_context(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await prepare(ctx)
        yield
        await shutdown(ctx)

    app = FastAPI(
        title=settings.business.name,
        description="Bicycle repair shop: bookings, work orders, quotes and tracking.",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.ctx = ctx

    # ── Middleware ────────────────────────────────────────

    @app.middleware("http")
    async def request_timeout(request: Request, call_next):
        try:
            return await asyncio.wait_for(
                call_next(request), timeout=settings.server.request_timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning("Request timed out: %s %s", request.method, request.url.path)
            return PlainTextResponse("Request timed out", status_code=504)

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

    app.add_middleware(GZipMiddleware, minimum_size=1000)

    # ── Error handlers ────────────────────────────────────

    @app.exception_handler(LoginRequired)
    async def login_required(request: Request, exc: LoginRequired):
        response = RedirectResponse("/login", status_code=303)
        clear_auth_cookie(response)
        return response

    @app.exception_handler(TicketAccessDenied)
    async def ticket_access_denied(request: Request, exc: TicketAccessDenied):
        logger.info("Denied: %s", exc)
        return PlainTextResponse("Forbidden: you are not assigned to this ticket", status_code=403)

    @app.exception_handler(RenderError)
    async def render_failed(request: Request, exc: RenderError):
        return PlainTextResponse("Internal Server Error", status_code=500)

    # ── Routes ────────────────────────────────────────────

    app.include_router(api_router)
    app.mount("/static", StaticFiles(directory=str(_static_dir)), name="static")

    return app
