"""Exception types raised by the backend wrapper and the route handlers.

The taxonomy is flat.  ``create_app()`` maps each type to an HTTP status:

    NotFoundError        -> 404
    AuthenticationError  -> 401
    PermissionDeniedError -> 403
    BackendError         -> 502 (store, auth or storage call failed)
"""


class BackendError(Exception):
    """A call to the hosted backend (store, auth or storage) failed."""

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation
        self.message = message


class NotFoundError(Exception):
    """The requested record does not exist."""


class AuthenticationError(Exception):
    """Missing session, expired token or bad credentials."""


class PermissionDeniedError(Exception):
    """Authenticated, but not allowed to do this."""
