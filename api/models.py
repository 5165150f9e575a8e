"""
Pydantic request/response models for the API.

Stored records are read leniently (unknown columns ignored, optional columns
default to None) so that rows written by older versions of the dashboard
still load.  Request bodies are validated strictly.
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator

from utils.config import KnownValues
from utils.patterns import EMAIL
from utils.strings import normalize_whitespace


class _Record(BaseModel):
    model_config = ConfigDict(extra="ignore")


def _required_text(value: str) -> str:
    value = normalize_whitespace(value)
    if not value:
        raise ValueError("must not be blank")
    return value


RequiredText = Annotated[str, AfterValidator(_required_text)]


# ── Main page ─────────────────────────────────────────────────────────────────

class Configuration(_Record):
    """A main page configuration: subtitle, background image and window."""
    id: str = Field(..., description="Store-assigned id; the default is always 'default'", examples=["default"])
    subtitle: str = Field("", description="Subtitle shown over the background image")
    background_image_url: str | None = Field(None, description="Public URL of the background image")
    start_date: str | None = Field(None, description="Window start (ISO-8601); absent on the default", examples=["2025-01-01T00:00"])
    end_date: str | None = Field(None, description="Window end (ISO-8601); absent on the default", examples=["2025-01-31T23:59"])
    is_default: bool = Field(False, description="True only for the fallback configuration")
    created_at: str | None = Field(None, description="Creation timestamp (ISO-8601)")
    updated_at: str | None = Field(None, description="Last update timestamp (ISO-8601)")


class ConfigurationIn(BaseModel):
    """Create/update body for a scheduled configuration."""
    subtitle: RequiredText = Field(..., max_length=500)
    start_date: str = Field(..., description="Window start (ISO-8601)")
    end_date: str = Field(..., description="Window end (ISO-8601)")


class DefaultConfigurationIn(BaseModel):
    """Update body for the default configuration."""
    subtitle: RequiredText = Field(..., max_length=500)


class ConfigurationView(Configuration):
    status: str = Field(..., description="default | scheduled | active | expired | invalid")


class MainPageOut(BaseModel):
    active: Configuration
    default: Configuration
    configurations: list[ConfigurationView]
    load_error: str | None = Field(None, description="Set when the store could not be read and the built-in default is shown")


class SaveConfigurationOut(BaseModel):
    configuration: Configuration
    active_id: str = Field(..., description="Id of the configuration displayed after the save")
    overlaps: list[str] = Field(default_factory=list, description="Scheduled configurations whose windows overlap this one")


class DeleteOutcome(BaseModel):
    """Result of a document delete followed by a best-effort image delete."""
    id: str
    document_deleted: bool = True
    blob_deleted: bool | None = Field(None, description="None when the record had no stored image")
    blob_error: str | None = None


class ImageOut(BaseModel):
    id: str
    url: str
    previous_deleted: bool | None = None


# ── Content records ───────────────────────────────────────────────────────────

class EventIn(BaseModel):
    name: RequiredText = Field(..., max_length=200)
    theme: str = Field("", max_length=200)
    start_date: str
    end_date: str
    description: str = Field("", max_length=5000)


class Event(_Record):
    id: str
    name: str = ""
    theme: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    description: str | None = None
    status: str | None = Field(None, description="Upcoming | Completed")
    logo_url: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class ActivityIn(BaseModel):
    name: RequiredText = Field(..., max_length=200)
    theme: str = Field("", max_length=200)
    description: str = Field("", max_length=5000)
    start_date: str
    end_date: str
    start_time: str = Field("", examples=["09:00"])
    end_time: str = Field("", examples=["17:00"])
    event_id: str


class Activity(_Record):
    id: str
    name: str = ""
    theme: str | None = None
    description: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    event_id: str | None = None
    image_url: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class AdIn(BaseModel):
    title: RequiredText = Field(..., max_length=200)
    company: str = Field("", max_length=200)
    description: str = Field("", max_length=2000)
    start_date: str
    end_date: str
    url: str = Field("", max_length=500)
    position: str = Field("sidebar", max_length=50)
    is_active: bool = True


class Ad(_Record):
    id: str
    title: str = ""
    company: str | None = None
    description: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    url: str | None = None
    position: str | None = None
    is_active: bool = False
    image_url: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class EducationalIn(BaseModel):
    title: RequiredText = Field(..., max_length=200)
    category: str = Field("", max_length=100)
    content: str = Field(..., max_length=20000)
    publish_date: str
    author: str = Field("", max_length=200)


class EducationalPost(_Record):
    id: str
    title: str = ""
    category: str | None = None
    content: str | None = None
    publish_date: str | None = None
    author: str | None = None
    image_url: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class SocialMedia(BaseModel):
    facebook: str = ""
    instagram: str = ""
    twitter: str = ""
    youtube: str = ""


class PartnerIn(BaseModel):
    name: RequiredText = Field(..., max_length=200)
    description: str = Field("", max_length=5000)
    website: str = Field("", max_length=500)
    social_media: SocialMedia = Field(default_factory=SocialMedia)


class Partner(_Record):
    id: str
    name: str = ""
    description: str | None = None
    website: str | None = None
    social_media: dict[str, Any] | None = None
    logo_url: str | None = None
    created_by: str | None = None
    updated_by: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


# ── Inquiries ─────────────────────────────────────────────────────────────────

class Inquiry(_Record):
    id: str
    name: str | None = None
    email: str | None = None
    subject: str | None = None
    message: str | None = None
    status: str = "new"
    created_at: str | None = None
    updated_at: str | None = None


class InquiryStatusIn(BaseModel):
    status: str = Field(..., examples=["resolved"])

    @field_validator("status")
    @classmethod
    def check_status(cls, value: str) -> str:
        if value not in KnownValues.INQUIRY_STATUSES:
            raise ValueError(f"status must be one of {', '.join(KnownValues.INQUIRY_STATUSES)}")
        return value


# ── Users ─────────────────────────────────────────────────────────────────────

def _check_department(value: str) -> str:
    if not KnownValues.is_valid_department(value):
        raise ValueError(f"department must be one of {', '.join(KnownValues.DEPARTMENTS)}")
    return value


def _check_position(value: str) -> str:
    if value not in KnownValues.POSITIONS:
        raise ValueError(f"position must be one of {', '.join(KnownValues.POSITIONS)}")
    return value


Department = Annotated[str, AfterValidator(_check_department)]
Position = Annotated[str, AfterValidator(_check_position)]


class UserProfile(_Record):
    id: str = Field(..., description="Auth uid")
    email: str = ""
    full_name: str = ""
    position: str = "User"
    role: str = "user"
    department: str = "IDT"
    created_at: str | None = None
    updated_at: str | None = None
    created_by: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class UserCreate(BaseModel):
    email: str = Field(..., max_length=254)
    password: str = Field(..., min_length=6, max_length=128)
    full_name: RequiredText = Field(..., max_length=200)
    position: Position = "User"
    department: Department = "IDT"

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        value = value.strip().lower()
        if not EMAIL.match(value):
            raise ValueError("invalid email address")
        return value


class UserUpdate(BaseModel):
    full_name: RequiredText = Field(..., max_length=200)
    position: Position = "User"
    department: Department = "IDT"
    password: str | None = Field(None, min_length=6, max_length=128)


class ProfileUpdate(BaseModel):
    full_name: RequiredText = Field(..., max_length=200)
    department: Department = "IDT"


class LoginIn(BaseModel):
    email: str
    password: str
