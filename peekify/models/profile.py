import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from models.models import PRIVACY_LEVELS
from utils.time_utils import is_valid_timezone

USERNAME_RE = re.compile(r"^[a-zA-Z0-9_]{3,50}$")
NOTIFICATION_TIME_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")
MAX_BIO_LENGTH = 500
MAX_DISPLAY_NAME_LENGTH = 100


class ProfileUpdate(BaseModel):
    """
    Partial profile update. Only the fields present in the request are set;
    use model_dump(exclude_unset=True) to get them.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    display_name: Optional[str] = Field(default=None, alias="displayName")
    email: Optional[str] = None
    username: Optional[str] = None
    bio: Optional[str] = None
    privacy_level: Optional[str] = Field(default=None, alias="privacyLevel")
    timezone: Optional[str] = None
    notification_time: Optional[str] = Field(default=None, alias="notificationTime")

    @field_validator("display_name")
    @classmethod
    def _check_display_name(cls, v):
        if v is not None and len(v) > MAX_DISPLAY_NAME_LENGTH:
            raise ValueError(f"Display name must be {MAX_DISPLAY_NAME_LENGTH} characters or less")
        return v

    @field_validator("username")
    @classmethod
    def _check_username(cls, v):
        if v is None or not USERNAME_RE.match(v):
            raise ValueError("Username must be 3-50 characters and contain only letters, numbers, and underscores")
        return v

    @field_validator("bio")
    @classmethod
    def _check_bio(cls, v):
        if v is not None and len(v) > MAX_BIO_LENGTH:
            raise ValueError(f"Bio must be {MAX_BIO_LENGTH} characters or less")
        return v

    @field_validator("privacy_level")
    @classmethod
    def _check_privacy_level(cls, v):
        if v not in PRIVACY_LEVELS:
            raise ValueError("Privacy level must be private, friends, or public")
        return v

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, v):
        if not is_valid_timezone(v):
            raise ValueError("Timezone must be a valid IANA timezone name")
        return v

    @field_validator("notification_time")
    @classmethod
    def _check_notification_time(cls, v):
        if v is None or not NOTIFICATION_TIME_RE.match(v):
            raise ValueError("Notification time must be in HH:MM format")
        return v


def first_error_message(exc: ValidationError) -> str:
    """Human-readable message of the first validation error (without pydantic's "Value error, " prefix)."""
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    error = errors[0]
    ctx_error = (error.get("ctx") or {}).get("error")
    if isinstance(ctx_error, Exception):
        return str(ctx_error)
    field = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
    return f"{field}: {error.get('msg')}" if field else str(error.get("msg"))
