"""
Backend client for the hosted platform (Supabase).

All persistence, authentication and file storage go through one explicitly
constructed ``BackendClient`` that ``create_app()`` stores on
``app.state.backend``.  Route handlers receive it through the
``get_backend`` dependency, so tests can inject an in-memory double with the
same surface.

The underlying Supabase client is created lazily on first use; an app
started without SUPABASE_URL/SUPABASE_KEY still serves pages, and every
backend call raises ``BackendError``.

Three surfaces:
    documents   list / get / create / set / update / delete / count rows
    blobs       upload bytes -> public URL, delete by path or by URL
    auth        password sign-in, token verification, admin account management
"""

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from fastapi import Request
from supabase import Client, create_client
from supabase.client import ClientOptions

from api.errors import AuthenticationError, BackendError, NotFoundError
from utils.config import AppConfig
from utils.strings import storage_path_from_url

logger = logging.getLogger("crg_admin.backend")

# Status codes the auth service uses for rejected credentials
_CREDENTIAL_STATUSES = {400, 401, 403, 422}


@dataclass
class AuthSession:
    """Result of a successful password sign-in."""
    uid: str
    email: str
    access_token: str


@contextmanager
def _call(operation: str) -> Iterator[None]:
    """Translate any SDK/transport failure into ``BackendError``."""
    try:
        yield
    except (BackendError, NotFoundError, AuthenticationError):
        raise
    except Exception as exc:
        logger.error("backend_error operation=%r error=%s", operation, exc)
        raise BackendError(operation, str(exc)) from exc


class BackendClient:
    """Store, blob and auth access over a Supabase project.

    Args:
        url: Project URL.
        key: Service-role key (admin auth calls need it).
        bucket: Storage bucket that receives uploaded images.
        client_factory: Callable with ``create_client``'s signature.
    """

    def __init__(self, url: str, key: str, bucket: str,
                 client_factory: Callable[..., Client] = create_client) -> None:
        self._url = url
        self._key = key
        self.bucket = bucket
        self._factory = client_factory
        self._client: Client | None = None
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, cfg: AppConfig) -> "BackendClient":
        return cls(cfg.supabase_url, cfg.supabase_key, cfg.storage_bucket)

    # ── Clients ───────────────────────────────────────────────────────────────

    def _new_client(self) -> Client:
        if not (self._url and self._key):
            raise BackendError("connect", "SUPABASE_URL and SUPABASE_KEY are not set")
        with _call("connect"):
            return self._factory(
                self._url, self._key,
                options=ClientOptions(auto_refresh_token=False, persist_session=False),
            )

    def _service(self) -> Client:
        """The shared service-role client (created once)."""
        if self._client is None:
            with self._lock:
                if self._client is None:
                    self._client = self._new_client()
        return self._client

    # ── Documents ─────────────────────────────────────────────────────────────

    def list_documents(self, table: str, order_by: str | None = "created_at",
                       descending: bool = True,
                       filters: dict[str, Any] | None = None,
                       limit: int | None = None) -> list[dict[str, Any]]:
        """Return rows of *table*, optionally filtered by equality and ordered."""
        with _call(f"list {table}"):
            query = self._service().table(table).select("*")
            for column, value in (filters or {}).items():
                query = query.eq(column, value)
            if order_by:
                query = query.order(order_by, desc=descending)
            if limit:
                query = query.limit(limit)
            return list(query.execute().data or [])

    def get_document(self, table: str, doc_id: str) -> dict[str, Any] | None:
        with _call(f"get {table}/{doc_id}"):
            rows = (self._service().table(table).select("*")
                    .eq("id", doc_id).limit(1).execute().data)
            return rows[0] if rows else None

    def create_document(self, table: str, data: dict[str, Any]) -> dict[str, Any]:
        """Insert a row and return it, including its generated ``id``."""
        with _call(f"create {table}"):
            rows = self._service().table(table).insert(data).execute().data
            if not rows:
                raise BackendError(f"create {table}", "insert returned no row")
            return rows[0]

    def set_document(self, table: str, doc_id: str,
                     data: dict[str, Any]) -> dict[str, Any]:
        """Create or replace the row with a caller-chosen id."""
        with _call(f"set {table}/{doc_id}"):
            rows = self._service().table(table).upsert({**data, "id": doc_id}).execute().data
            return rows[0] if rows else {**data, "id": doc_id}

    def update_document(self, table: str, doc_id: str,
                        data: dict[str, Any]) -> dict[str, Any]:
        """Patch a row; raises ``NotFoundError`` if no row has *doc_id*."""
        with _call(f"update {table}/{doc_id}"):
            rows = (self._service().table(table).update(data)
                    .eq("id", doc_id).execute().data)
            if not rows:
                raise NotFoundError(f"{table} record {doc_id} not found")
            return rows[0]

    def delete_document(self, table: str, doc_id: str) -> None:
        """Delete a row; raises ``NotFoundError`` if no row has *doc_id*."""
        with _call(f"delete {table}/{doc_id}"):
            rows = self._service().table(table).delete().eq("id", doc_id).execute().data
            if not rows:
                raise NotFoundError(f"{table} record {doc_id} not found")

    def count_documents(self, table: str,
                        filters: dict[str, Any] | None = None) -> int:
        with _call(f"count {table}"):
            query = self._service().table(table).select("id", count="exact")
            for column, value in (filters or {}).items():
                query = query.eq(column, value)
            return int(query.execute().count or 0)

    # ── Blobs ─────────────────────────────────────────────────────────────────

    def upload_file(self, path: str, content: bytes, content_type: str) -> str:
        """Store *content* at *path* in the bucket and return its public URL."""
        with _call(f"upload {path}"):
            bucket = self._service().storage.from_(self.bucket)
            bucket.upload(path, content, {"content-type": content_type, "upsert": "true"})
            return bucket.get_public_url(path).rstrip("?")

    def delete_file(self, path: str) -> None:
        with _call(f"delete file {path}"):
            self._service().storage.from_(self.bucket).remove([path])

    def path_from_url(self, url: str | None) -> str | None:
        """Object path for a URL issued by this bucket, else ``None``."""
        return storage_path_from_url(url, self.bucket)

    # ── Auth ──────────────────────────────────────────────────────────────────

    def sign_in(self, email: str, password: str) -> AuthSession:
        """Password sign-in.

        A throwaway client is used so the shared service client never starts
        sending a user's token instead of the service key.

        Raises:
            AuthenticationError: credentials rejected.
            BackendError: the auth service could not be reached.
        """
        client = self._new_client()
        try:
            res = client.auth.sign_in_with_password({"email": email, "password": password})
        except Exception as exc:
            if getattr(exc, "status", None) in _CREDENTIAL_STATUSES:
                raise AuthenticationError("Invalid email or password") from exc
            logger.error("backend_error operation='sign in' error=%s", exc)
            raise BackendError("sign in", str(exc)) from exc
        if res.user is None or res.session is None:
            raise AuthenticationError("Invalid email or password")
        return AuthSession(uid=res.user.id, email=res.user.email or email,
                           access_token=res.session.access_token)

    def sign_out(self, access_token: str) -> None:
        """Revoke the session behind *access_token*."""
        with _call("sign out"):
            self._service().auth.admin.sign_out(access_token)

    def verify_token(self, access_token: str) -> str:
        """Return the uid the token belongs to.

        Raises:
            AuthenticationError: token expired, revoked or malformed.
        """
        client = self._service()
        try:
            res = client.auth.get_user(access_token)
        except Exception as exc:
            raise AuthenticationError("Session expired") from exc
        if res is None or res.user is None:
            raise AuthenticationError("Session expired")
        return res.user.id

    def create_account(self, email: str, password: str) -> str:
        """Create a confirmed auth account and return its uid."""
        with _call("create account"):
            res = self._service().auth.admin.create_user(
                {"email": email, "password": password, "email_confirm": True}
            )
            return res.user.id

    def delete_account(self, uid: str) -> None:
        with _call(f"delete account {uid}"):
            self._service().auth.admin.delete_user(uid)

    def update_password(self, uid: str, password: str) -> None:
        with _call(f"update password {uid}"):
            self._service().auth.admin.update_user_by_id(uid, {"password": password})


# ── FastAPI dependencies ──────────────────────────────────────────────────────

def get_backend(request: Request) -> BackendClient:
    """FastAPI dependency: the app's backend client.

    Usage in a route::

        @router.get("/example")
        def example(backend: BackendClient = Depends(get_backend)):
            ...
    """
    return request.app.state.backend


def get_clock(request: Request) -> Callable[[], datetime]:
    """FastAPI dependency: the app's wall clock (aware UTC datetimes)."""
    return request.app.state.clock
