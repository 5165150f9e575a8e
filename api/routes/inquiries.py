"""Inquiry inbox endpoints: list, change status, delete."""

import logging

from fastapi import APIRouter, Depends, Query

from api.auth import require_user
from api.backend import BackendClient, get_backend, get_clock
from api.models import Inquiry, InquiryStatusIn, UserProfile
from utils.config import INQUIRIES_TABLE, KnownValues

logger = logging.getLogger("crg_admin.inquiries")

router = APIRouter(prefix="/inquiries", tags=["inquiries"])


def list_inquiries(backend: BackendClient, status: str | None = None) -> list[Inquiry]:
    if status is not None and status not in KnownValues.INQUIRY_STATUSES:
        raise ValueError(f"status must be one of {', '.join(KnownValues.INQUIRY_STATUSES)}")
    rows = backend.list_documents(INQUIRIES_TABLE, order_by="created_at", descending=True,
                                  filters={"status": status} if status else None)
    return [Inquiry.model_validate(row) for row in rows]


@router.get("", response_model=list[Inquiry], summary="List inquiries")
def get_inquiries(
    status: str | None = Query(None, description="Only inquiries in this status",
                               examples=["new"]),
    backend: BackendClient = Depends(get_backend),
    user: UserProfile = Depends(require_user),
) -> list[Inquiry]:
    return list_inquiries(backend, status)


@router.patch("/{inquiry_id}/status", response_model=Inquiry,
              summary="Change an inquiry's status")
def set_inquiry_status(
    inquiry_id: str,
    body: InquiryStatusIn,
    backend: BackendClient = Depends(get_backend),
    clock=Depends(get_clock),
    user: UserProfile = Depends(require_user),
) -> Inquiry:
    row = backend.update_document(INQUIRIES_TABLE, inquiry_id, {
        "status": body.status,
        "updated_at": clock().isoformat(),
    })
    logger.info("inquiry status id=%s status=%s by=%s", inquiry_id, body.status, user.id)
    return Inquiry.model_validate(row)


@router.delete("/{inquiry_id}", summary="Delete an inquiry")
def delete_inquiry(
    inquiry_id: str,
    backend: BackendClient = Depends(get_backend),
    user: UserProfile = Depends(require_user),
) -> dict:
    backend.delete_document(INQUIRIES_TABLE, inquiry_id)
    logger.info("inquiry deleted id=%s by=%s", inquiry_id, user.id)
    return {"id": inquiry_id, "deleted": True}
