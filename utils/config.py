"""Configuration management for the CRG admin dashboard.

Provides:
- Config: base settings container with dict/JSON round-tripping
- AppConfig: application settings read from environment variables
- KnownValues: fixed vocabularies (departments, positions, inquiry states)
- Store collection names and the built-in fallback main page content
"""

import json
import os as _os
import secrets
from pathlib import Path
from typing import Any, Dict


# ── Store collections ─────────────────────────────────────────────────────────

MAIN_PAGE_TABLE = "main_page"
USERS_TABLE = "users"
EVENTS_TABLE = "events"
ACTIVITIES_TABLE = "activities"
ADS_TABLE = "ads"
EDUCATIONAL_TABLE = "educational"
PARTNERS_TABLE = "partners"
INQUIRIES_TABLE = "inquiries"

# ── Main page fallback ────────────────────────────────────────────────────────
# Shown when the store holds no default configuration yet, and whenever the
# store cannot be read at all.

DEFAULT_CONFIGURATION_ID = "default"
FALLBACK_SUBTITLE = (
    "Building bridges between communities and fostering meaningful "
    "relationships through service and dedication."
)
FALLBACK_BACKGROUND_IMAGE = "/static/img/bg-landing.svg"
MAIN_PAGE_IMAGE_FOLDER = "main-page-backgrounds"


class Config:
    """Base configuration class for organizing application settings."""

    def __init__(self):
        pass

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary (private attributes excluded)."""
        return {k: v for k, v in self.__dict__.items() if not k.startswith("_")}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create config from dictionary.

        Args:
            data: Configuration dictionary

        Returns:
            Config instance with values from dictionary
        """
        config = cls()
        for key, value in data.items():
            setattr(config, key, value)
        return config

    def save_json(self, path: Path) -> None:
        """Save configuration to JSON file.

        Args:
            path: Path to save configuration file
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2, default=str)

    @classmethod
    def load_json(cls, path: Path) -> "Config":
        """Load configuration from JSON file.

        Raises:
            FileNotFoundError: If file doesn't exist
            json.JSONDecodeError: If file is not valid JSON
        """
        with open(path, "r") as f:
            data = json.load(f)
        return cls.from_dict(data)


class KnownValues:
    """Fixed vocabularies accepted by the user and inquiry forms."""

    DEPARTMENTS = (
        "IDT",
        "Operations",
        "Logistics",
        "Finance",
        "Group Commander",
        "52nd CMOU",
    )

    POSITIONS = ("User", "Admin")

    INQUIRY_STATUSES = ("new", "in_progress", "resolved", "closed")

    @classmethod
    def role_for_position(cls, position: str | None) -> str:
        """Admins are exactly the users whose position is "Admin"."""
        return "admin" if position == "Admin" else "user"

    @classmethod
    def is_valid_department(cls, department: str) -> bool:
        return department in cls.DEPARTMENTS


class AppConfig(Config):
    """Application-level configuration loaded from environment variables.

    All env vars have defaults so the application starts without any
    configuration; without SUPABASE_URL/SUPABASE_KEY every backend call
    fails and the main page falls back to the built-in default.

    Environment variables:
        SUPABASE_URL: Backend project URL
        SUPABASE_KEY: Backend service-role key
        APP_STORAGE_BUCKET: Storage bucket for uploaded images (default: crg-admin)
        APP_SECRET_KEY: Session cookie signing key (default: random per process)
        APP_PORT: Server port (default: 8000)
        APP_HOST: Server bind address (default: 127.0.0.1)
        APP_LOG_FORMAT: Logging format, "text" or "json" (default: text)
        APP_CORS_ORIGINS: Comma-separated allowed origins (default: *)
        APP_REFRESH_INTERVAL: Seconds between main page re-selections (default: 60)
        APP_MAX_UPLOAD_BYTES: Largest accepted image upload (default: 5 MiB)
        APP_SESSION_DAYS: Session cookie lifetime in days (default: 7)
        RATE_LIMIT_LOGIN: Max login attempts per minute per IP (default: 10)
        RATE_LIMIT_DEFAULT: Max requests per minute for other paths (default: 120)
        TRUSTED_PROXIES: Comma-separated proxy IPs whose X-Forwarded-For is trusted
    """

    def __init__(self) -> None:
        super().__init__()
        self.supabase_url = _os.getenv("SUPABASE_URL", "")
        self.supabase_key = _os.getenv("SUPABASE_KEY", "")
        self.storage_bucket = _os.getenv("APP_STORAGE_BUCKET", "crg-admin")
        self.secret_key = _os.getenv("APP_SECRET_KEY") or secrets.token_urlsafe(32)
        self.api_port = int(_os.getenv("APP_PORT", "8000"))
        self.api_host = _os.getenv("APP_HOST", "127.0.0.1")
        self.log_format = _os.getenv("APP_LOG_FORMAT", "text")
        raw_origins = _os.getenv("APP_CORS_ORIGINS", "*")
        self.cors_origins: list[str] = (
            ["*"] if raw_origins == "*"
            else [o.strip() for o in raw_origins.split(",") if o.strip()]
        )
        self.refresh_interval_seconds = float(_os.getenv("APP_REFRESH_INTERVAL", "60"))
        self.max_upload_bytes = int(_os.getenv("APP_MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))
        self.session_days = int(_os.getenv("APP_SESSION_DAYS", "7"))
        self.rate_limit_login = int(_os.getenv("RATE_LIMIT_LOGIN", "10"))
        self.rate_limit_default = int(_os.getenv("RATE_LIMIT_DEFAULT", "120"))
        raw_proxies = _os.getenv("TRUSTED_PROXIES", "")
        self.trusted_proxies: set[str] = (
            {p.strip() for p in raw_proxies.split(",") if p.strip()}
        )

    @property
    def backend_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    def to_dict(self) -> Dict[str, Any]:
        """Settings as a dict, with secrets masked."""
        data = super().to_dict()
        for key in ("supabase_key", "secret_key"):
            if data.get(key):
                data[key] = "***"
        return data

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create an AppConfig instance populated from environment variables."""
        return cls()
