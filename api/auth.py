"""
Session handling and the login gate.

A successful sign-in stores the user's uid and access token in the signed
session cookie.  On each request the token is checked against the auth
service and the matching row in ``users`` is loaded; the verified profile is
cached for a minute so most requests need no backend round trip.

Dependencies:
    require_user    any signed-in user with a profile row
    require_admin   signed-in user whose role is "admin"

Failures raise ``AuthenticationError`` / ``PermissionDeniedError``; the app's
exception handlers turn those into 401/403 JSON for /api paths and a redirect
to /login for pages.
"""

import logging

from fastapi import Depends, Request

from api.backend import BackendClient, get_backend
from api.errors import AuthenticationError, PermissionDeniedError
from api.models import UserProfile
from utils.cache import TTLCache
from utils.config import USERS_TABLE

logger = logging.getLogger("crg_admin.auth")

SESSION_UID = "uid"
SESSION_TOKEN = "access_token"

_profile_cache: TTLCache = TTLCache(maxsize=512, ttl_seconds=60)


def load_profile(backend: BackendClient, uid: str) -> UserProfile | None:
    row = backend.get_document(USERS_TABLE, uid)
    return UserProfile.model_validate(row) if row else None


def remember_session(request: Request, uid: str, access_token: str,
                     profile: UserProfile) -> None:
    request.session.clear()
    request.session[SESSION_UID] = uid
    request.session[SESSION_TOKEN] = access_token
    _profile_cache.set(access_token, profile)


def end_session(request: Request) -> str | None:
    """Clear the session; returns the access token it held, if any."""
    token = request.session.get(SESSION_TOKEN)
    if token:
        _profile_cache.delete(token)
    request.session.clear()
    return token


def forget_user(uid: str) -> None:
    """Drop cached profiles for *uid* after their row changes."""
    _profile_cache.discard_where(lambda profile: profile.id == uid)


def current_user(request: Request, backend: BackendClient) -> UserProfile | None:
    """The signed-in user's profile, or ``None`` (session cleared if stale)."""
    token = request.session.get(SESSION_TOKEN)
    if not token:
        return None
    cached = _profile_cache.get(token)
    if cached is not None:
        return cached
    try:
        uid = backend.verify_token(token)
    except AuthenticationError:
        logger.info("session_expired uid=%s", request.session.get(SESSION_UID))
        request.session.clear()
        return None
    if uid != request.session.get(SESSION_UID):
        request.session.clear()
        return None
    profile = load_profile(backend, uid)
    if profile is None:
        logger.warning("session_without_profile uid=%s", uid)
        request.session.clear()
        return None
    _profile_cache.set(token, profile)
    return profile


def require_user(request: Request,
                 backend: BackendClient = Depends(get_backend)) -> UserProfile:
    """FastAPI dependency: the signed-in user, else ``AuthenticationError``."""
    user = current_user(request, backend)
    if user is None:
        raise AuthenticationError("Sign in required")
    return user


def require_admin(user: UserProfile = Depends(require_user)) -> UserProfile:
    """FastAPI dependency: the signed-in user, who must be an administrator."""
    if not user.is_admin:
        raise PermissionDeniedError("Administrator access required")
    return user
