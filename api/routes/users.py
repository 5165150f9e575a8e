"""
User management (administrators) and the signed-in user's own profile.

A user is two records: an auth account (email + password) and a profile
row in ``users`` keyed by the account uid.  Creation writes the account
first and removes it again if the profile cannot be written; deletion
removes the profile first so a half-deleted user can no longer sign in.

Role is never set directly: it is "admin" exactly when position is "Admin".
"""

import logging

from fastapi import APIRouter, Depends

from api.auth import forget_user, require_admin, require_user
from api.backend import BackendClient, get_backend, get_clock
from api.errors import BackendError, NotFoundError
from api.models import ProfileUpdate, UserCreate, UserProfile, UserUpdate
from utils.config import USERS_TABLE, KnownValues

logger = logging.getLogger("crg_admin.users")

router = APIRouter(tags=["users"])


@router.get("/users", response_model=list[UserProfile], summary="List users")
def list_users(
    backend: BackendClient = Depends(get_backend),
    admin: UserProfile = Depends(require_admin),
) -> list[UserProfile]:
    rows = backend.list_documents(USERS_TABLE, order_by="created_at", descending=False)
    return [UserProfile.model_validate(row) for row in rows]


@router.post("/users", response_model=UserProfile, status_code=201, summary="Create a user")
def create_user(
    body: UserCreate,
    backend: BackendClient = Depends(get_backend),
    clock=Depends(get_clock),
    admin: UserProfile = Depends(require_admin),
) -> UserProfile:
    if backend.list_documents(USERS_TABLE, order_by=None, filters={"email": body.email}):
        raise ValueError("A user with this email already exists.")
    uid = backend.create_account(body.email, body.password)
    stamp = clock().isoformat()
    profile = {
        "email": body.email,
        "full_name": body.full_name,
        "position": body.position,
        "role": KnownValues.role_for_position(body.position),
        "department": body.department,
        "created_at": stamp,
        "updated_at": stamp,
        "created_by": admin.id,
    }
    try:
        row = backend.set_document(USERS_TABLE, uid, profile)
    except BackendError:
        try:
            backend.delete_account(uid)
        except BackendError as exc:
            logger.error("user orphan_account uid=%s error=%s", uid, exc.message)
        raise
    logger.info("user created uid=%s role=%s by=%s", uid, profile["role"], admin.id)
    return UserProfile.model_validate({**profile, **row, "id": uid})


@router.put("/users/{uid}", response_model=UserProfile, summary="Update a user")
def update_user(
    uid: str,
    body: UserUpdate,
    backend: BackendClient = Depends(get_backend),
    clock=Depends(get_clock),
    admin: UserProfile = Depends(require_admin),
) -> UserProfile:
    if backend.get_document(USERS_TABLE, uid) is None:
        raise NotFoundError(f"User {uid} not found")
    row = backend.update_document(USERS_TABLE, uid, {
        "full_name": body.full_name,
        "position": body.position,
        "role": KnownValues.role_for_position(body.position),
        "department": body.department,
        "updated_at": clock().isoformat(),
    })
    if body.password:
        backend.update_password(uid, body.password)
    forget_user(uid)
    logger.info("user updated uid=%s by=%s password_changed=%s",
                uid, admin.id, bool(body.password))
    return UserProfile.model_validate(row)


@router.delete("/users/{uid}", summary="Delete a user")
def delete_user(
    uid: str,
    backend: BackendClient = Depends(get_backend),
    admin: UserProfile = Depends(require_admin),
) -> dict:
    """Delete the profile row, then the auth account.

    The account removal is reported separately; the profile delete alone is
    enough to lock the user out.
    """
    if uid == admin.id:
        raise ValueError("You cannot delete your own account.")
    backend.delete_document(USERS_TABLE, uid)
    forget_user(uid)
    account_deleted, account_error = True, None
    try:
        backend.delete_account(uid)
    except BackendError as exc:
        logger.warning("user account_delete_failed uid=%s error=%s", uid, exc.message)
        account_deleted, account_error = False, exc.message
    logger.info("user deleted uid=%s by=%s", uid, admin.id)
    return {"id": uid, "profile_deleted": True,
            "account_deleted": account_deleted, "account_error": account_error}


# ── Own profile ───────────────────────────────────────────────────────────────

@router.get("/profile", response_model=UserProfile, summary="Signed-in user's profile")
def get_profile(user: UserProfile = Depends(require_user)) -> UserProfile:
    return user


@router.put("/profile", response_model=UserProfile, summary="Edit own profile")
def update_profile(
    body: ProfileUpdate,
    backend: BackendClient = Depends(get_backend),
    clock=Depends(get_clock),
    user: UserProfile = Depends(require_user),
) -> UserProfile:
    """Only the name and department are self-editable; role stays as assigned."""
    row = backend.update_document(USERS_TABLE, user.id, {
        "full_name": body.full_name,
        "department": body.department,
        "updated_at": clock().isoformat(),
    })
    forget_user(user.id)
    return UserProfile.model_validate(row)
