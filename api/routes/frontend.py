"""
Frontend HTML routes.

Serves the Jinja2 templates for the public landing page and the admin
screens.  Pages read through the same service functions as the JSON API;
every change is made through /api/v1 (the pages' forms and scripts call it).

Routes:
    GET /                       -> landing.html (active main page configuration)
    GET /login                  -> login.html
    GET /dashboard              -> dashboard.html
    GET /main-page              -> main_page.html (configurations + status)
    GET /content/{kind}         -> content.html (events, activities, ads, ...)
    GET /inquiries              -> inquiries.html (?status= filter)
    GET /users                  -> users.html (administrators only)
    GET /profile                -> profile.html
    GET /help                   -> help.html (?q= search)
    GET /help/{article_id}      -> help_article.html
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.auth import current_user, require_admin, require_user
from api.backend import BackendClient, get_backend
from api.errors import NotFoundError
from api.main_page import MainPageState, get_main_page
from api.models import UserProfile
from api.routes.content import CONTENT_KINDS, list_records
from api.routes.dashboard import build_summary
from api.routes.help import load_article
from api.routes.inquiries import list_inquiries
from api.routes.main_page import main_page_snapshot
from utils.config import USERS_TABLE, KnownValues
from utils.help_content import search_categories

logger = logging.getLogger("crg_admin.frontend")

router = APIRouter(tags=["frontend"])

# Templates instance is set by create_app() after mounting.
_templates: Jinja2Templates | None = None


def set_templates(t: Jinja2Templates) -> None:
    global _templates
    _templates = t


def _tmpl() -> Jinja2Templates:
    if _templates is None:
        raise RuntimeError("Templates not initialised; call set_templates() first")
    return _templates


def render(request: Request, name: str, context: dict[str, Any] | None = None,
           status_code: int = 200) -> HTMLResponse:
    return _tmpl().TemplateResponse(request, name, context or {}, status_code=status_code)


# ── Public pages ──────────────────────────────────────────────────────────────

@router.get("/", response_class=HTMLResponse, include_in_schema=False)
def landing(request: Request, state: MainPageState = Depends(get_main_page)) -> HTMLResponse:
    """Public landing page showing the configuration active right now."""
    state.refresh()
    return render(request, "landing.html", {"config": state.active})


@router.get("/login", response_class=HTMLResponse, include_in_schema=False)
def login_page(
    request: Request,
    next: str = Query("/dashboard"),
    backend: BackendClient = Depends(get_backend),
) -> Response:
    if current_user(request, backend) is not None:
        return RedirectResponse("/dashboard", status_code=303)
    return render(request, "login.html", {"next": next, "error": None, "email": ""})


# ── Signed-in pages ───────────────────────────────────────────────────────────

@router.get("/dashboard", response_class=HTMLResponse, include_in_schema=False)
def dashboard_page(
    request: Request,
    backend: BackendClient = Depends(get_backend),
    state: MainPageState = Depends(get_main_page),
    user: UserProfile = Depends(require_user),
) -> HTMLResponse:
    state.refresh()
    return render(request, "dashboard.html",
                  {"user": user, "summary": build_summary(backend, state)})


@router.get("/main-page", response_class=HTMLResponse, include_in_schema=False)
def main_page_page(
    request: Request,
    state: MainPageState = Depends(get_main_page),
    user: UserProfile = Depends(require_user),
) -> HTMLResponse:
    state.refresh()
    return render(request, "main_page.html",
                  {"user": user, "page": main_page_snapshot(state)})


@router.get("/content/{kind_name}", response_class=HTMLResponse, include_in_schema=False)
def content_page(
    kind_name: str,
    request: Request,
    backend: BackendClient = Depends(get_backend),
    user: UserProfile = Depends(require_user),
) -> HTMLResponse:
    kind = CONTENT_KINDS.get(kind_name)
    if kind is None:
        raise NotFoundError(f"Unknown content section {kind_name}")
    filters = {name: request.query_params[name]
               for name in kind.filter_fields if request.query_params.get(name)}
    records = list_records(backend, kind, request.app.state.clock(), filters)
    return render(request, "content.html", {
        "user": user,
        "kind": kind,
        "kinds": list(CONTENT_KINDS),
        "records": records,
        "fields": [f for f in kind.body_model.model_fields],
    })


@router.get("/inquiries", response_class=HTMLResponse, include_in_schema=False)
def inquiries_page(
    request: Request,
    status: str | None = Query(None),
    backend: BackendClient = Depends(get_backend),
    user: UserProfile = Depends(require_user),
) -> HTMLResponse:
    return render(request, "inquiries.html", {
        "user": user,
        "inquiries": list_inquiries(backend, status or None),
        "statuses": KnownValues.INQUIRY_STATUSES,
        "current_status": status,
    })


@router.get("/users", response_class=HTMLResponse, include_in_schema=False)
def users_page(
    request: Request,
    backend: BackendClient = Depends(get_backend),
    admin: UserProfile = Depends(require_admin),
) -> HTMLResponse:
    rows = backend.list_documents(USERS_TABLE, order_by="created_at", descending=False)
    return render(request, "users.html", {
        "user": admin,
        "users": [UserProfile.model_validate(row) for row in rows],
        "departments": KnownValues.DEPARTMENTS,
        "positions": KnownValues.POSITIONS,
    })


@router.get("/profile", response_class=HTMLResponse, include_in_schema=False)
def profile_page(request: Request,
                 user: UserProfile = Depends(require_user)) -> HTMLResponse:
    return render(request, "profile.html",
                  {"user": user, "departments": KnownValues.DEPARTMENTS})


@router.get("/help", response_class=HTMLResponse, include_in_schema=False)
def help_page(request: Request, q: str = Query(""),
              user: UserProfile = Depends(require_user)) -> HTMLResponse:
    return render(request, "help.html",
                  {"user": user, "query": q, "categories": search_categories(q)})


@router.get("/help/{article_id}", response_class=HTMLResponse, include_in_schema=False)
def help_article_page(article_id: str, request: Request,
                      user: UserProfile = Depends(require_user)) -> HTMLResponse:
    return render(request, "help_article.html",
                  {"user": user, "article": load_article(article_id)})


# ── Error pages ───────────────────────────────────────────────────────────────

def is_api_request(request: Request) -> bool:
    return request.url.path.startswith(("/api/", "/auth/")) or \
        "application/json" in request.headers.get("accept", "")


def error_page(request: Request, status_code: int, message: str) -> HTMLResponse:
    return render(request, "error.html",
                  {"status_code": status_code, "message": message},
                  status_code=status_code)


def register_error_handlers(app: FastAPI) -> None:
    """HTML 404/500 pages for browser paths; JSON stays JSON under /api."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if is_api_request(request):
            return JSONResponse(
                status_code=exc.status_code,
                content={"error": str(exc.detail), "detail": str(exc.detail),
                         "status_code": exc.status_code},
                headers=getattr(exc, "headers", None),
            )
        message = "Page not found" if exc.status_code == 404 else str(exc.detail)
        return error_page(request, exc.status_code, message)
