"""
FastAPI application factory.

Usage:
    python -m api.app                    # Dev server on port 8000
    SUPABASE_URL=... SUPABASE_KEY=... python -m api.app

OpenAPI docs available at http://localhost:8000/docs after starting.

The app owns three long-lived objects, all on ``app.state``:
    backend     BackendClient (explicitly constructed, injected via Depends)
    clock       callable returning the current aware UTC datetime
    main_page   MainPageState, loaded at startup and re-selected by a
                refresh task whose disposer is awaited on shutdown

Proxy-aware client IPs (TRUSTED_PROXIES), bounded per-IP rate limiting,
JSON logging (APP_LOG_FORMAT=json) and CORS (APP_CORS_ORIGINS) are
configured from the environment through ``AppConfig``.
"""

import json
import logging
import time
import uuid
from collections import defaultdict
from collections.abc import Callable
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from urllib.parse import quote

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from starlette.concurrency import run_in_threadpool
from starlette.middleware.sessions import SessionMiddleware

from api.backend import BackendClient
from api.errors import AuthenticationError, BackendError, NotFoundError, PermissionDeniedError
from api.main_page import MainPageState, load_working_set, start_refresh
from api.routes import auth, content, dashboard, inquiries, main_page, users
from api.routes import help as help_routes
from api.routes import frontend as frontend_routes
from utils.config import AppConfig
from utils.formatting import format_datetime, format_status, truncate
from utils.schedule import utc_now

# ── Configuration ─────────────────────────────────────────────────────────────
_cfg = AppConfig.from_env()

# ── Structured JSON logging ───────────────────────────────────────────────────


class _JsonFormatter(logging.Formatter):
    """Emit log records as newline-delimited JSON."""

    def format(self, record: logging.LogRecord) -> str:
        data: dict = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        # Merge extra fields added via logger.info("...", extra={...})
        for key in ("method", "path", "status", "duration_ms", "client_ip",
                    "request_id"):
            if hasattr(record, key):
                data[key] = getattr(record, key)
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data)


_logger = logging.getLogger("crg_admin")
_handler = logging.StreamHandler()
if _cfg.log_format == "json":
    _handler.setFormatter(_JsonFormatter())
else:
    _handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    )
logging.basicConfig(handlers=[_handler], level=logging.INFO, force=True)


# ── Rate limiting with memory bounds ──────────────────────────────────────────

class RateLimiter:
    """Sliding one-minute window of request timestamps per (ip, path).

    Stale entries are purged every ``cleanup_interval`` seconds and, if more
    than ``max_tracked_ips`` addresses remain, the least active are evicted.
    """

    def __init__(self, limits: dict[str, int], default_limit: int,
                 max_tracked_ips: int = 10_000, cleanup_interval: float = 300.0,
                 now: Callable[[], float] = time.time) -> None:
        self.limits = limits
        self.default_limit = default_limit
        self.max_tracked_ips = max_tracked_ips
        self.cleanup_interval = cleanup_interval
        self._now = now
        self._counters: dict[str, dict[str, list[float]]] = defaultdict(lambda: defaultdict(list))
        self._last_cleanup = 0.0
        self.blocked = 0

    @property
    def tracked_ips(self) -> int:
        return len(self._counters)

    def limit_for(self, path: str) -> int:
        return self.limits.get(path, self.default_limit)

    def hit(self, client_ip: str, path: str) -> bool:
        """Record a request; False if it exceeds the path's limit."""
        now = self._now()
        self._cleanup(now)
        limit = self.limit_for(path)
        window_start = now - 60.0
        hits = [t for t in self._counters[client_ip][path] if t > window_start]
        self._counters[client_ip][path] = hits
        if len(hits) >= limit:
            self.blocked += 1
            return False
        hits.append(now)
        return True

    def _cleanup(self, now: float) -> None:
        if now - self._last_cleanup < self.cleanup_interval:
            return
        self._last_cleanup = now
        window_start = now - 60.0
        for ip in list(self._counters):
            paths = self._counters[ip]
            for path in list(paths):
                paths[path] = [t for t in paths[path] if t > window_start]
                if not paths[path]:
                    del paths[path]
            if not paths:
                del self._counters[ip]
        if len(self._counters) > self.max_tracked_ips:
            excess = len(self._counters) - self.max_tracked_ips
            quietest = sorted(
                self._counters,
                key=lambda ip: sum(len(v) for v in self._counters[ip].values()),
            )[:excess]
            for ip in quietest:
                del self._counters[ip]


def get_client_ip(request: Request, trusted_proxies: set[str]) -> str:
    """Return the real client IP, respecting X-Forwarded-For from trusted proxies."""
    direct_ip = request.client.host if request.client else "unknown"
    if direct_ip not in trusted_proxies:
        return direct_ip
    xff = request.headers.get("X-Forwarded-For", "")
    if xff:
        # Leftmost entry is the originating client
        real_ip = xff.split(",")[0].strip()
        if real_ip:
            return real_ip
    return direct_ip


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load the main page working set, then keep its selection fresh."""
    state: MainPageState = app.state.main_page
    await run_in_threadpool(load_working_set, app.state.backend, state)
    if state.load_error:
        _logger.warning("startup main_page load_error=%s", state.load_error)
    dispose = start_refresh(state, app.state.config.refresh_interval_seconds)
    try:
        yield
    finally:
        await dispose()


def _error_body(error: str, detail: str, status_code: int) -> dict:
    return {"error": error, "detail": detail, "status_code": status_code}


def create_app(backend: BackendClient | None = None,
               config: AppConfig | None = None,
               clock: Callable[[], datetime] | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        backend: Backend client to use (default: built from *config*).
        config: Settings (default: read from the environment at import).
        clock: Wall clock returning aware UTC datetimes (default: utc_now).

    Returns:
        Configured FastAPI application instance.
    """
    cfg = config or _cfg

    app = FastAPI(
        title="CRG Admin",
        summary="Administrative dashboard for civil-relations content.",
        description=(
            "## CRG Admin API\n\n"
            "Manage events, activities, advertisements, educational posts, "
            "partners, inquiries, users and the scheduled landing page.\n\n"
            "### Main page\n"
            "One **default** configuration plus any number of **scheduled** "
            "ones, each with an inclusive `[start_date, end_date]` window. "
            "The first scheduled configuration (newest first) whose window "
            "contains the current time is displayed; otherwise the default.\n\n"
            "### Authentication\n"
            "Sign in with `POST /auth/login`; the session cookie authorises "
            "every `/api/v1` call.\n\n"
            "### Rate limits\n"
            f"- `/auth/login`: {cfg.rate_limit_login} req/min per IP\n"
            f"- All other endpoints: {cfg.rate_limit_default} req/min per IP\n\n"
            "Returns `429 Too Many Requests` with `Retry-After: 60` when exceeded."
        ),
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_tags=[
            {"name": "auth", "description": "Sign in and sign out."},
            {"name": "main-page", "description": "Scheduled landing page configurations."},
            {"name": "events", "description": "Events, with status derived from the end date."},
            {"name": "activities", "description": "Activities belonging to an event."},
            {"name": "ads", "description": "Advertisements."},
            {"name": "educational", "description": "Educational posts."},
            {"name": "partners", "description": "Partner organisations."},
            {"name": "inquiries", "description": "Messages received from the public site."},
            {"name": "users", "description": "Accounts and profiles (administrators)."},
            {"name": "dashboard", "description": "Overview statistics."},
            {"name": "help", "description": "Help-center articles."},
            {"name": "meta", "description": "Health check."},
        ],
    )
    app.state.config = cfg
    app.state.backend = backend or BackendClient.from_config(cfg)
    app.state.clock = clock or utc_now
    app.state.main_page = MainPageState(clock=app.state.clock)
    limiter = RateLimiter({"/auth/login": cfg.rate_limit_login}, cfg.rate_limit_default)
    app.state.rate_limiter = limiter

    # ── Request logging + rate limiting middleware ───────────────────────────

    @app.middleware("http")
    async def log_and_rate_limit(request: Request, call_next):
        """Log each request and enforce per-IP rate limits."""
        request_id = str(uuid.uuid4())[:8]
        start = time.monotonic()
        client_ip = get_client_ip(request, cfg.trusted_proxies)
        path = request.url.path

        # Health checks and static assets are not rate limited
        if path == "/health" or path.startswith("/static/"):
            return await call_next(request)

        if not limiter.hit(client_ip, path):
            _logger.warning("rate_limited ip=%s path=%s limit=%d",
                            client_ip, path, limiter.limit_for(path))
            return JSONResponse(
                status_code=429,
                content={"error": "Too many requests", "status_code": 429},
                headers={"Retry-After": "60"},
            )

        response = await call_next(request)
        duration_ms = (time.monotonic() - start) * 1000
        response.headers["X-Request-ID"] = request_id

        if cfg.log_format == "json":
            _logger.info(
                "request",
                extra={
                    "method": request.method,
                    "path": path,
                    "status": response.status_code,
                    "duration_ms": round(duration_ms, 1),
                    "client_ip": client_ip,
                    "request_id": request_id,
                },
            )
        else:
            _logger.info(
                "method=%s path=%s status=%d duration_ms=%.1f ip=%s rid=%s",
                request.method, path, response.status_code, duration_ms,
                client_ip, request_id,
            )
        if duration_ms > 500:
            _logger.warning("slow_request method=%s path=%s duration_ms=%.1f",
                            request.method, path, duration_ms)
        return response

    # ── Content Security Policy + security headers ───────────────────────────

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        """Add Content-Security-Policy, X-Content-Type-Options, and X-Frame-Options."""
        response = await call_next(request)
        # Uploaded images are served from the storage host, hence https: in img-src.
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "script-src 'self'; "
            "style-src 'self' 'unsafe-inline'; "
            "img-src 'self' data: https:; "
            "font-src 'self'; "
            "connect-src 'self';"
        )
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response

    app.add_middleware(
        SessionMiddleware,
        secret_key=cfg.secret_key,
        session_cookie="crg_session",
        max_age=cfg.session_days * 24 * 3600,
        same_site="lax",
    )

    allow_origins = cfg.cors_origins if cfg.cors_origins != ["*"] else ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=allow_origins != ["*"],
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    # ── Error handling ────────────────────────────────────────────────────────

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch unhandled exceptions and return JSON instead of a traceback."""
        _logger.exception("unhandled_error path=%s", request.url.path)
        return JSONResponse(status_code=500,
                            content=_error_body("Internal server error", str(exc), 500))

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return JSONResponse(status_code=400,
                            content=_error_body("Bad request", str(exc), 400))

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        if not frontend_routes.is_api_request(request):
            return frontend_routes.error_page(request, 404, str(exc))
        return JSONResponse(status_code=404, content=_error_body("Not found", str(exc), 404))

    @app.exception_handler(BackendError)
    async def backend_error_handler(request: Request, exc: BackendError):
        return JSONResponse(status_code=502,
                            content=_error_body("Backend unavailable", str(exc), 502))

    @app.exception_handler(AuthenticationError)
    async def authentication_handler(request: Request, exc: AuthenticationError):
        if not frontend_routes.is_api_request(request):
            target = quote(request.url.path, safe="/")
            return RedirectResponse(f"/login?next={target}", status_code=303)
        return JSONResponse(status_code=401, content=_error_body("Unauthorized", str(exc), 401))

    @app.exception_handler(PermissionDeniedError)
    async def permission_handler(request: Request, exc: PermissionDeniedError):
        if not frontend_routes.is_api_request(request):
            return frontend_routes.error_page(request, 403, str(exc))
        return JSONResponse(status_code=403, content=_error_body("Forbidden", str(exc), 403))

    # ── Health check ──────────────────────────────────────────────────────────

    @app.get("/health", tags=["meta"], summary="Health check")
    def health():
        """Return 200 while the main page was loaded from the store.

        503 ("degraded") when the last load fell back to the built-in default.
        """
        state: MainPageState = app.state.main_page
        body = {
            "status": "ok",
            "backend_configured": cfg.backend_configured,
            "main_page": {
                "loaded": state.loaded,
                "active_id": state.active.id,
                "load_error": state.load_error,
            },
            "rate_limiter": {
                "tracked_ips": limiter.tracked_ips,
                "blocked_requests": limiter.blocked,
            },
        }
        if state.load_error:
            body["status"] = "degraded"
            return JSONResponse(status_code=503, content=body)
        return body

    # ── Register routers ──────────────────────────────────────────────────────

    prefix = "/api/v1"
    app.include_router(main_page.router, prefix=prefix)
    for content_router in content.routers:
        app.include_router(content_router, prefix=prefix)
    app.include_router(inquiries.router, prefix=prefix)
    app.include_router(users.router,     prefix=prefix)
    app.include_router(dashboard.router, prefix=prefix)
    app.include_router(help_routes.router, prefix=prefix)
    app.include_router(auth.router)

    # ── Static files + Jinja2 templates ───────────────────────────────────────
    _here = Path(__file__).parent.parent  # project root

    static_dir = _here / "static"
    templates_dir = _here / "templates"

    if static_dir.exists():
        app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")

    templates = Jinja2Templates(directory=str(templates_dir))
    templates.env.filters["format_datetime"] = format_datetime
    templates.env.filters["format_status"] = format_status
    templates.env.filters["truncate_text"] = truncate

    # Wire templates into the frontend router
    frontend_routes.set_templates(templates)
    app.include_router(frontend_routes.router)
    frontend_routes.register_error_handlers(app)

    return app


# Singleton instance for uvicorn
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.app:app",
        host=_cfg.api_host,
        port=_cfg.api_port,
        reload=True,
        log_level="info",
    )
