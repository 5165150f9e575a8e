"""String helpers for uploads, storage paths and form input."""

from urllib.parse import unquote, urlsplit

from utils.patterns import PUBLIC_OBJECT_PATH, UNSAFE_FILENAME_CHARS, WHITESPACE


def normalize_whitespace(s: str) -> str:
    """Collapse runs of whitespace to single spaces and strip the ends.

    Example:
        "  Community   Outreach\\n Day " -> "Community Outreach Day"
    """
    return WHITESPACE.sub(' ', s).strip()


def sanitize_upload_name(name: str) -> str:
    """Make an uploaded file name safe to use as a storage object name.

    Directory components are dropped and every character other than ASCII
    letters, digits and dots becomes an underscore.

    Example:
        "C:\\\\pics\\\\Town Hall (1).JPG" -> "Town_Hall__1_.JPG"
    """
    base = name.replace("\\", "/").rsplit("/", 1)[-1]
    cleaned = UNSAFE_FILENAME_CHARS.sub('_', base)
    return cleaned or "upload"


def build_storage_path(folder: str, record_id: str, filename: str,
                       timestamp_ms: int) -> str:
    """Return ``<folder>/<record_id>/<timestamp>_<safe name>``."""
    return f"{folder}/{record_id}/{timestamp_ms}_{sanitize_upload_name(filename)}"


def storage_path_from_url(url: str | None, bucket: str) -> str | None:
    """Recover the object path from a public URL issued for *bucket*.

    Returns ``None`` for URLs that were not issued by the storage service
    for that bucket (external images, the built-in fallback image, garbage).
    """
    if not url:
        return None
    try:
        path = urlsplit(url).path
    except ValueError:
        return None
    match = PUBLIC_OBJECT_PATH.search(path)
    if match is None or match.group(1) != bucket:
        return None
    object_path = unquote(match.group(2))
    return object_path or None
