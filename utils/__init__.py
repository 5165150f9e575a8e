"""Shared utilities for the CRG admin dashboard."""

# Pattern definitions
from utils.patterns import (
    UNSAFE_FILENAME_CHARS,
    EMAIL,
    BOLD_MARKUP,
    ORDERED_ITEM,
    PUBLIC_OBJECT_PATH,
)

# String utilities
from utils.strings import (
    normalize_whitespace,
    sanitize_upload_name,
    build_storage_path,
    storage_path_from_url,
)

# Schedule selection
from utils.schedule import (
    utc_now,
    parse_timestamp,
    is_active,
    select_active_configuration,
    configuration_status,
    validate_window,
    find_overlaps,
)

# Output formatting
from utils.formatting import format_datetime, format_size, format_status, truncate

# Caching
from utils.cache import TTLCache

# Configuration
from utils.config import Config, AppConfig, KnownValues

# Help center
from utils.help_content import HELP_CATEGORIES, find_article, search_categories
from utils.markup import ArticleSection, render_article

__all__ = [
    # Patterns
    "UNSAFE_FILENAME_CHARS",
    "EMAIL",
    "BOLD_MARKUP",
    "ORDERED_ITEM",
    "PUBLIC_OBJECT_PATH",
    # Strings
    "normalize_whitespace",
    "sanitize_upload_name",
    "build_storage_path",
    "storage_path_from_url",
    # Schedule
    "utc_now",
    "parse_timestamp",
    "is_active",
    "select_active_configuration",
    "configuration_status",
    "validate_window",
    "find_overlaps",
    # Formatting
    "format_datetime",
    "format_size",
    "format_status",
    "truncate",
    # Cache
    "TTLCache",
    # Config
    "Config",
    "AppConfig",
    "KnownValues",
    # Help
    "HELP_CATEGORIES",
    "find_article",
    "search_categories",
    "ArticleSection",
    "render_article",
]
