"""
Main page configuration endpoints.

Routes:
    GET    /main-page                 working set with per-configuration status
    GET    /main-page/active          configuration displayed right now (public)
    POST   /main-page                 create a scheduled configuration
    POST   /main-page/reload          re-fetch the working set from the store
    PUT    /main-page/default         edit the default subtitle
    PUT    /main-page/{id}            edit a scheduled configuration
    POST   /main-page/{id}/image      replace a configuration's background image
    DELETE /main-page/{id}            delete a scheduled configuration and its image

The working set is only changed after the store accepted the write; a store
failure surfaces as 502 and leaves the displayed configuration untouched.
"""

import logging

from fastapi import APIRouter, Depends, File, UploadFile

from api.auth import require_user
from api.backend import BackendClient, get_backend
from api.errors import BackendError, NotFoundError
from api.main_page import MainPageState, get_main_page, load_working_set
from api.models import (
    Configuration,
    ConfigurationIn,
    ConfigurationView,
    DefaultConfigurationIn,
    DeleteOutcome,
    ImageOut,
    MainPageOut,
    SaveConfigurationOut,
    UserProfile,
)
from api.uploads import delete_image, get_upload_limit, read_image, store_image
from utils.config import DEFAULT_CONFIGURATION_ID, MAIN_PAGE_IMAGE_FOLDER, MAIN_PAGE_TABLE
from utils.schedule import configuration_status, find_overlaps, validate_window

logger = logging.getLogger("crg_admin.main_page")

router = APIRouter(prefix="/main-page", tags=["main-page"])


def main_page_snapshot(state: MainPageState) -> MainPageOut:
    """Working set as a response: default first, then scheduled newest first."""
    now = state.clock()
    default = state.default
    views = [
        ConfigurationView(**config.model_dump(), status=configuration_status(config, now))
        for config in [default, *state.scheduled]
    ]
    return MainPageOut(active=state.active, default=default,
                       configurations=views, load_error=state.load_error)


def _existing(state: MainPageState, config_id: str) -> Configuration:
    config = state.get(config_id)
    if config is None:
        raise NotFoundError(f"Main page configuration {config_id} not found")
    return config


@router.get("", response_model=MainPageOut, summary="List main page configurations")
def list_configurations(
    state: MainPageState = Depends(get_main_page),
    user: UserProfile = Depends(require_user),
) -> MainPageOut:
    return main_page_snapshot(state)


@router.get("/active", response_model=Configuration, summary="Currently displayed configuration")
def active_configuration(state: MainPageState = Depends(get_main_page)) -> Configuration:
    """The configuration the landing page shows right now.

    Re-runs the selection first so a window that opened or closed since the
    last timer tick is reflected immediately.
    """
    state.refresh()
    return state.active


@router.post("", response_model=SaveConfigurationOut, status_code=201,
             summary="Create a scheduled configuration")
def create_configuration(
    body: ConfigurationIn,
    state: MainPageState = Depends(get_main_page),
    backend: BackendClient = Depends(get_backend),
    user: UserProfile = Depends(require_user),
) -> SaveConfigurationOut:
    """Create a scheduled configuration.

    The window must satisfy ``start < end`` and end in the future.  Windows
    may overlap existing ones; the overlapping ids are returned so the caller
    can warn, and the most recently created configuration wins the overlap.
    """
    now = state.clock()
    validate_window(body.start_date, body.end_date, now)
    stamp = now.isoformat()
    row = backend.create_document(MAIN_PAGE_TABLE, {
        "subtitle": body.subtitle,
        "start_date": body.start_date,
        "end_date": body.end_date,
        "background_image_url": None,
        "is_default": False,
        "created_at": stamp,
        "updated_at": stamp,
    })
    config = Configuration.model_validate(row)
    overlaps = find_overlaps(config.id, config.start_date, config.end_date, state.scheduled)
    state.upsert(config)
    logger.info("main_page created id=%s overlaps=%d", config.id, len(overlaps))
    return SaveConfigurationOut(configuration=config, active_id=state.active.id,
                                overlaps=overlaps)


@router.post("/reload", response_model=MainPageOut, summary="Re-fetch from the store")
def reload_configurations(
    state: MainPageState = Depends(get_main_page),
    backend: BackendClient = Depends(get_backend),
    user: UserProfile = Depends(require_user),
) -> MainPageOut:
    load_working_set(backend, state)
    return main_page_snapshot(state)


@router.put("/default", response_model=SaveConfigurationOut,
            summary="Edit the default configuration")
def update_default(
    body: DefaultConfigurationIn,
    state: MainPageState = Depends(get_main_page),
    backend: BackendClient = Depends(get_backend),
    user: UserProfile = Depends(require_user),
) -> SaveConfigurationOut:
    current = state.default
    data = current.model_dump(exclude={"id"})
    data.update(subtitle=body.subtitle, updated_at=state.clock().isoformat())
    row = backend.set_document(MAIN_PAGE_TABLE, DEFAULT_CONFIGURATION_ID, data)
    config = Configuration.model_validate({**data, **row, "is_default": True})
    state.upsert(config)
    logger.info("main_page default_updated")
    return SaveConfigurationOut(configuration=config, active_id=state.active.id)


@router.put("/{config_id}", response_model=SaveConfigurationOut,
            summary="Edit a scheduled configuration")
def update_configuration(
    config_id: str,
    body: ConfigurationIn,
    state: MainPageState = Depends(get_main_page),
    backend: BackendClient = Depends(get_backend),
    user: UserProfile = Depends(require_user),
) -> SaveConfigurationOut:
    if config_id == DEFAULT_CONFIGURATION_ID:
        raise ValueError("The default configuration has no schedule; use PUT /main-page/default.")
    _existing(state, config_id)
    now = state.clock()
    validate_window(body.start_date, body.end_date, now)
    row = backend.update_document(MAIN_PAGE_TABLE, config_id, {
        "subtitle": body.subtitle,
        "start_date": body.start_date,
        "end_date": body.end_date,
        "updated_at": now.isoformat(),
    })
    config = Configuration.model_validate(row)
    overlaps = find_overlaps(config.id, config.start_date, config.end_date, state.scheduled)
    state.upsert(config)
    logger.info("main_page updated id=%s overlaps=%d", config.id, len(overlaps))
    return SaveConfigurationOut(configuration=config, active_id=state.active.id,
                                overlaps=overlaps)


@router.post("/{config_id}/image", response_model=ImageOut,
             summary="Upload a background image")
def upload_background(
    config_id: str,
    file: UploadFile = File(..., description="Image file (image/*)"),
    max_bytes: int = Depends(get_upload_limit),
    state: MainPageState = Depends(get_main_page),
    backend: BackendClient = Depends(get_backend),
    user: UserProfile = Depends(require_user),
) -> ImageOut:
    """Store a new background image for a configuration (the default too).

    The previous image is removed best-effort once the document points at
    the new one; a failed removal is logged and reported, never undone.
    """
    existing = _existing(state, config_id)
    content, content_type = read_image(file, max_bytes)
    url = store_image(backend, MAIN_PAGE_IMAGE_FOLDER, config_id, file.filename or "",
                      content, content_type, state.clock)
    data = {"background_image_url": url, "updated_at": state.clock().isoformat()}
    try:
        if existing.is_default:
            row = backend.set_document(MAIN_PAGE_TABLE, config_id,
                                       {**existing.model_dump(exclude={"id"}), **data})
        else:
            row = backend.update_document(MAIN_PAGE_TABLE, config_id, data)
    except (BackendError, NotFoundError):
        delete_image(backend, url)
        raise
    state.upsert(Configuration.model_validate({**existing.model_dump(), **data, **row}))
    previous_deleted, _ = delete_image(backend, existing.background_image_url)
    return ImageOut(id=config_id, url=url, previous_deleted=previous_deleted)


@router.delete("/{config_id}", response_model=DeleteOutcome,
               summary="Delete a scheduled configuration")
def delete_configuration(
    config_id: str,
    state: MainPageState = Depends(get_main_page),
    backend: BackendClient = Depends(get_backend),
    user: UserProfile = Depends(require_user),
) -> DeleteOutcome:
    """Delete the document, then its background image.

    The two steps are reported separately: the document delete must succeed
    (502 otherwise), the image delete is best effort.
    """
    if config_id == DEFAULT_CONFIGURATION_ID:
        raise ValueError("The default configuration cannot be deleted.")
    existing = _existing(state, config_id)
    backend.delete_document(MAIN_PAGE_TABLE, config_id)
    state.remove(config_id)
    blob_deleted, blob_error = delete_image(backend, existing.background_image_url)
    logger.info("main_page deleted id=%s blob_deleted=%s", config_id, blob_deleted)
    return DeleteOutcome(id=config_id, blob_deleted=blob_deleted, blob_error=blob_error)
