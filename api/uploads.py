"""
Image upload helpers shared by the main page and content routes.

Every stored image lives at ``<folder>/<record id>/<epoch ms>_<safe name>``
in the configured bucket.  Replacing or deleting a record's image removes
the old object best-effort: a failed removal is logged and reported to the
caller but never undoes the document change that preceded it.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from fastapi import Request, UploadFile

from api.backend import BackendClient
from api.errors import BackendError
from utils.formatting import format_size
from utils.strings import build_storage_path

logger = logging.getLogger("crg_admin.uploads")


def get_upload_limit(request: Request) -> int:
    """FastAPI dependency: the largest accepted upload, in bytes."""
    return request.app.state.config.max_upload_bytes


def read_image(upload: UploadFile, max_bytes: int) -> tuple[bytes, str]:
    """Read an uploaded image into memory after validating it.

    Raises:
        ValueError: not an image, empty, or larger than *max_bytes*.
    """
    content_type = upload.content_type or ""
    if not content_type.startswith("image/"):
        raise ValueError("Please select a valid image file.")
    content = upload.file.read(max_bytes + 1)
    if not content:
        raise ValueError("The uploaded image is empty.")
    if len(content) > max_bytes:
        raise ValueError(f"File size must be at most {format_size(max_bytes)}.")
    return content, content_type


def store_image(backend: BackendClient, folder: str, record_id: str,
                filename: str, content: bytes, content_type: str,
                now: Callable[[], datetime]) -> str:
    """Upload *content* for a record and return its public URL."""
    timestamp_ms = int(now().timestamp() * 1000)
    path = build_storage_path(folder, record_id, filename or "image", timestamp_ms)
    url = backend.upload_file(path, content, content_type)
    logger.info("image_uploaded path=%s bytes=%d", path, len(content))
    return url


def delete_image(backend: BackendClient, url: str | None) -> tuple[bool | None, str | None]:
    """Best-effort removal of the stored object behind *url*.

    Returns:
        (deleted, error): ``(None, None)`` when *url* is empty or was not
        issued by our bucket (built-in or external images are never deleted),
        ``(True, None)`` on success, ``(False, message)`` on failure.
    """
    path = backend.path_from_url(url)
    if path is None:
        return None, None
    try:
        backend.delete_file(path)
    except BackendError as exc:
        logger.warning("image_delete_failed path=%s error=%s", path, exc.message)
        return False, exc.message
    logger.info("image_deleted path=%s", path)
    return True, None
