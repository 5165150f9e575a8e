"""
CRUD endpoints for the dashboard's content collections.

Events, activities, ads, educational posts and partners are all plain rows
with an optional image, so one router factory serves them all.  Each
``ContentKind`` names its table, ordering, image folder and the hooks that
differ between collections (event status, the activity -> event reference,
partner authorship).

Routes (per kind, e.g. /events):
    GET    /{kind}                 list, newest first (activities: ?event_id=)
    GET    /{kind}/{id}            one record
    POST   /{kind}                 create
    PUT    /{kind}/{id}            replace the editable fields
    POST   /{kind}/{id}/image      upload / replace the record's image
    DELETE /{kind}/{id}            delete the record, then its image
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, File, Request, UploadFile
from pydantic import BaseModel

from api.auth import require_user
from api.backend import BackendClient, get_backend, get_clock
from api.errors import BackendError, NotFoundError
from api.models import (
    Activity,
    ActivityIn,
    Ad,
    AdIn,
    DeleteOutcome,
    EducationalIn,
    EducationalPost,
    Event,
    EventIn,
    ImageOut,
    Partner,
    PartnerIn,
    UserProfile,
)
from api.uploads import delete_image, get_upload_limit, read_image, store_image
from utils.config import (
    ACTIVITIES_TABLE,
    ADS_TABLE,
    EDUCATIONAL_TABLE,
    EVENTS_TABLE,
    PARTNERS_TABLE,
)
from utils.schedule import parse_timestamp

logger = logging.getLogger("crg_admin.content")

Hook = Callable[[dict[str, Any], "WriteContext"], None]


@dataclass
class WriteContext:
    """What a write hook may need besides the record itself."""
    backend: BackendClient
    user: UserProfile
    now: datetime
    creating: bool


@dataclass
class ContentKind:
    name: str
    table: str
    body_model: type[BaseModel]
    record_model: type[BaseModel]
    image_folder: str
    image_field: str = "image_url"
    order_by: str = "created_at"
    dated: bool = False
    filter_fields: tuple[str, ...] = ()
    before_write: list[Hook] = field(default_factory=list)
    present: Callable[[dict[str, Any], datetime], dict[str, Any]] | None = None


# ── Hooks ─────────────────────────────────────────────────────────────────────

def event_status(end_date: Any, now: datetime) -> str:
    """"Completed" once the end date has passed, otherwise "Upcoming"."""
    end = parse_timestamp(end_date)
    if end is not None and end < now:
        return "Completed"
    return "Upcoming"


def _set_event_status(data: dict[str, Any], ctx: WriteContext) -> None:
    data["status"] = event_status(data.get("end_date"), ctx.now)


def _present_event(row: dict[str, Any], now: datetime) -> dict[str, Any]:
    return {**row, "status": event_status(row.get("end_date"), now)}


def _require_event(data: dict[str, Any], ctx: WriteContext) -> None:
    event_id = data.get("event_id")
    if not event_id or ctx.backend.get_document(EVENTS_TABLE, event_id) is None:
        raise ValueError("Activity must belong to an existing event.")


def _stamp_author(data: dict[str, Any], ctx: WriteContext) -> None:
    if ctx.creating:
        data["created_by"] = ctx.user.id
    data["updated_by"] = ctx.user.id


def check_date_range(data: dict[str, Any]) -> None:
    """Dated records may be single-day but must not end before they start."""
    start = parse_timestamp(data.get("start_date"))
    end = parse_timestamp(data.get("end_date"))
    if start is None or end is None:
        raise ValueError("Start and end dates are required and must be valid dates.")
    if end < start:
        raise ValueError("End date must be on or after start date.")


CONTENT_KINDS: dict[str, ContentKind] = {
    kind.name: kind for kind in (
        ContentKind("events", EVENTS_TABLE, EventIn, Event, "event-logos",
                    image_field="logo_url", dated=True,
                    before_write=[_set_event_status], present=_present_event),
        ContentKind("activities", ACTIVITIES_TABLE, ActivityIn, Activity, "activity-images",
                    dated=True, filter_fields=("event_id",),
                    before_write=[_require_event]),
        ContentKind("ads", ADS_TABLE, AdIn, Ad, "ad-images",
                    order_by="start_date", dated=True),
        ContentKind("educational", EDUCATIONAL_TABLE, EducationalIn, EducationalPost,
                    "educational-images", order_by="publish_date"),
        ContentKind("partners", PARTNERS_TABLE, PartnerIn, Partner, "partner-logos",
                    image_field="logo_url", before_write=[_stamp_author]),
    )
}


# ── Service functions (shared with the HTML pages) ────────────────────────────

def list_records(backend: BackendClient, kind: ContentKind, now: datetime,
                 filters: dict[str, Any] | None = None) -> list[dict[str, Any]]:
    rows = backend.list_documents(kind.table, order_by=kind.order_by,
                                  descending=True, filters=filters or None)
    if kind.present:
        rows = [kind.present(row, now) for row in rows]
    return rows


def get_record(backend: BackendClient, kind: ContentKind, record_id: str,
               now: datetime) -> dict[str, Any]:
    row = backend.get_document(kind.table, record_id)
    if row is None:
        raise NotFoundError(f"{kind.name} record {record_id} not found")
    return kind.present(row, now) if kind.present else row


def _prepare(kind: ContentKind, body: BaseModel, ctx: WriteContext) -> dict[str, Any]:
    data = body.model_dump()
    if kind.dated:
        check_date_range(data)
    for hook in kind.before_write:
        hook(data, ctx)
    data["updated_at"] = ctx.now.isoformat()
    if ctx.creating:
        data["created_at"] = data["updated_at"]
    return data


def create_record(backend: BackendClient, kind: ContentKind, body: BaseModel,
                  user: UserProfile, now: datetime) -> dict[str, Any]:
    data = _prepare(kind, body, WriteContext(backend, user, now, creating=True))
    row = backend.create_document(kind.table, data)
    logger.info("content created kind=%s id=%s", kind.name, row.get("id"))
    return row


def update_record(backend: BackendClient, kind: ContentKind, record_id: str,
                  body: BaseModel, user: UserProfile, now: datetime) -> dict[str, Any]:
    data = _prepare(kind, body, WriteContext(backend, user, now, creating=False))
    row = backend.update_document(kind.table, record_id, data)
    logger.info("content updated kind=%s id=%s", kind.name, record_id)
    return row


def replace_image(backend: BackendClient, kind: ContentKind, record_id: str,
                  upload: UploadFile, max_bytes: int, user: UserProfile,
                  clock: Callable[[], datetime]) -> ImageOut:
    """Upload a new image, point the record at it, then drop the old one."""
    existing = backend.get_document(kind.table, record_id)
    if existing is None:
        raise NotFoundError(f"{kind.name} record {record_id} not found")
    content, content_type = read_image(upload, max_bytes)
    url = store_image(backend, kind.image_folder, record_id, upload.filename or "",
                      content, content_type, clock)
    data: dict[str, Any] = {kind.image_field: url, "updated_at": clock().isoformat()}
    if "updated_by" in kind.record_model.model_fields:
        data["updated_by"] = user.id
    try:
        backend.update_document(kind.table, record_id, data)
    except (BackendError, NotFoundError):
        delete_image(backend, url)
        raise
    previous_deleted, _ = delete_image(backend, existing.get(kind.image_field))
    return ImageOut(id=record_id, url=url, previous_deleted=previous_deleted)


def delete_record(backend: BackendClient, kind: ContentKind,
                  record_id: str) -> DeleteOutcome:
    """Delete the row, then best-effort delete its image."""
    existing = backend.get_document(kind.table, record_id)
    if existing is None:
        raise NotFoundError(f"{kind.name} record {record_id} not found")
    backend.delete_document(kind.table, record_id)
    blob_deleted, blob_error = delete_image(backend, existing.get(kind.image_field))
    logger.info("content deleted kind=%s id=%s blob_deleted=%s",
                kind.name, record_id, blob_deleted)
    return DeleteOutcome(id=record_id, blob_deleted=blob_deleted, blob_error=blob_error)


# ── Router factory ────────────────────────────────────────────────────────────

def build_router(kind: ContentKind) -> APIRouter:
    """Create the CRUD router for one content kind."""
    router = APIRouter(prefix=f"/{kind.name}", tags=[kind.name])
    body_model = kind.body_model
    record_model = kind.record_model

    @router.get("", response_model=list[record_model], summary=f"List {kind.name}")
    def list_endpoint(
        request: Request,
        backend: BackendClient = Depends(get_backend),
        clock: Callable[[], datetime] = Depends(get_clock),
        user: UserProfile = Depends(require_user),
    ):
        filters = {name: request.query_params[name]
                   for name in kind.filter_fields if request.query_params.get(name)}
        return list_records(backend, kind, clock(), filters)

    @router.get("/{record_id}", response_model=record_model, summary=f"Get one of {kind.name}")
    def get_endpoint(
        record_id: str,
        backend: BackendClient = Depends(get_backend),
        clock: Callable[[], datetime] = Depends(get_clock),
        user: UserProfile = Depends(require_user),
    ):
        return get_record(backend, kind, record_id, clock())

    @router.post("", response_model=record_model, status_code=201,
                 summary=f"Create one of {kind.name}")
    def create_endpoint(
        body: body_model,  # type: ignore[valid-type]
        backend: BackendClient = Depends(get_backend),
        clock: Callable[[], datetime] = Depends(get_clock),
        user: UserProfile = Depends(require_user),
    ):
        return create_record(backend, kind, body, user, clock())

    @router.put("/{record_id}", response_model=record_model,
                summary=f"Update one of {kind.name}")
    def update_endpoint(
        record_id: str,
        body: body_model,  # type: ignore[valid-type]
        backend: BackendClient = Depends(get_backend),
        clock: Callable[[], datetime] = Depends(get_clock),
        user: UserProfile = Depends(require_user),
    ):
        return update_record(backend, kind, record_id, body, user, clock())

    @router.post("/{record_id}/image", response_model=ImageOut,
                 summary=f"Upload an image for one of {kind.name}")
    def image_endpoint(
        record_id: str,
        file: UploadFile = File(...),
        max_bytes: int = Depends(get_upload_limit),
        backend: BackendClient = Depends(get_backend),
        clock: Callable[[], datetime] = Depends(get_clock),
        user: UserProfile = Depends(require_user),
    ):
        return replace_image(backend, kind, record_id, file, max_bytes, user, clock)

    @router.delete("/{record_id}", response_model=DeleteOutcome,
                   summary=f"Delete one of {kind.name}")
    def delete_endpoint(
        record_id: str,
        backend: BackendClient = Depends(get_backend),
        user: UserProfile = Depends(require_user),
    ):
        return delete_record(backend, kind, record_id)

    return router


routers: list[APIRouter] = [build_router(kind) for kind in CONTENT_KINDS.values()]
