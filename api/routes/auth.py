"""
Sign-in and sign-out.

Routes:
    POST /auth/login    form (from the login page) or JSON body
    POST /auth/logout

Both accept either a browser form post, answered with a redirect or the
re-rendered login page, or a JSON request, answered with JSON.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from api.auth import end_session, load_profile, remember_session
from api.backend import AuthSession, BackendClient, get_backend
from api.errors import AuthenticationError, BackendError, PermissionDeniedError
from api.models import LoginIn, UserProfile
from api.routes import frontend

logger = logging.getLogger("crg_admin.auth")

router = APIRouter(prefix="/auth", tags=["auth"])

NOT_REGISTERED = "User not registered in the system. Please contact an administrator."


def safe_next(target: str | None, fallback: str = "/dashboard") -> str:
    """Only same-site absolute paths are accepted as redirect targets.

    Browsers read a backslash as a slash, so ``/\\host`` is as unsafe as
    ``//host``.
    """
    if (target and target.startswith("/") and not target.startswith("//")
            and "\\" not in target):
        return target
    return fallback


def authenticate(backend: BackendClient, email: str,
                 password: str) -> tuple[AuthSession, UserProfile]:
    """Sign in and require a profile row for the account.

    Raises:
        AuthenticationError: wrong email or password.
        PermissionDeniedError: the account exists but has no profile; the
            fresh auth session is revoked before raising.
    """
    session = backend.sign_in(email, password)
    profile = load_profile(backend, session.uid)
    if profile is None:
        try:
            backend.sign_out(session.access_token)
        except BackendError as exc:
            logger.warning("sign_out_failed uid=%s error=%s", session.uid, exc.message)
        logger.warning("login_rejected uid=%s reason=no_profile", session.uid)
        raise PermissionDeniedError(NOT_REGISTERED)
    return session, profile


def _wants_json(request: Request) -> bool:
    return request.headers.get("content-type", "").startswith("application/json")


@router.post("/login", summary="Sign in")
async def login(request: Request,
                backend: BackendClient = Depends(get_backend)) -> Response:
    as_json = _wants_json(request)
    if as_json:
        payload = await request.json()
        if not isinstance(payload, dict):
            payload = {}
        next_url = safe_next(request.query_params.get("next"))
    else:
        form = await request.form()
        payload = {"email": form.get("email", ""), "password": form.get("password", "")}
        next_url = safe_next(str(form.get("next") or "") or request.query_params.get("next"))

    try:
        credentials = LoginIn.model_validate(payload)
        if not credentials.email.strip() or not credentials.password:
            raise AuthenticationError("Email and password are required")
        session, profile = await run_in_threadpool(
            authenticate, backend, credentials.email.strip(), credentials.password)
    except (ValidationError, AuthenticationError, PermissionDeniedError) as exc:
        status = 403 if isinstance(exc, PermissionDeniedError) else 401
        message = str(exc) if status == 403 else "Invalid email or password"
        logger.info("login_failed status=%d", status)
        if as_json:
            return JSONResponse(status_code=status, content={
                "error": "Forbidden" if status == 403 else "Unauthorized",
                "detail": message, "status_code": status,
            })
        return frontend.render(request, "login.html", {
            "error": message, "email": payload.get("email", ""), "next": next_url,
        }, status_code=status)

    remember_session(request, session.uid, session.access_token, profile)
    logger.info("login uid=%s role=%s", profile.id, profile.role)
    if as_json:
        return JSONResponse({"user": profile.model_dump(), "next": next_url})
    return RedirectResponse(next_url, status_code=303)


@router.post("/logout", summary="Sign out")
def logout(request: Request, backend: BackendClient = Depends(get_backend)) -> Response:
    uid = request.session.get("uid")
    token = end_session(request)
    if token:
        try:
            backend.sign_out(token)
        except BackendError as exc:
            logger.warning("sign_out_failed uid=%s error=%s", uid, exc.message)
    logger.info("logout uid=%s", uid)
    if _wants_json(request) or "application/json" in request.headers.get("accept", ""):
        return JSONResponse({"signed_out": True})
    return RedirectResponse("/login", status_code=303)
