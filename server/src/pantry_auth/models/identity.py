"""Identity, session and profile models."""

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AuthEvent(str, Enum):
    """Identity-change notification types emitted by the provider."""

    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    USER_UPDATED = "USER_UPDATED"
    PASSWORD_RECOVERY = "PASSWORD_RECOVERY"


class Identity(BaseModel):
    """The provider's record of a credentialed principal. Read-only here."""

    id: str
    email: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    email_confirmed_at: datetime | None = None

    @property
    def full_name(self) -> str | None:
        return self.metadata.get("full_name") or None


class Session(BaseModel):
    """Token pair owned by the identity provider."""

    access_token: str
    refresh_token: str
    expires_at: int | None = None
    identity: Identity


class IdentityChange(BaseModel):
    """A single notification from the provider's change subscription."""

    event: AuthEvent
    identity: Identity | None = None


class NotificationSettings(BaseModel):
    """Notification preferences stored inside profile settings."""

    email: bool | None = None
    expiry_alerts: bool | None = None


class UserSettings(BaseModel):
    """Typed view of the profile settings JSON.

    Unknown keys are kept so that settings written by newer clients
    survive a merge.
    """

    model_config = ConfigDict(extra="allow")

    language: Literal["en", "es", "fr"] | None = None
    theme: Literal["light", "dark", "system"] | None = None
    notifications: NotificationSettings | None = None


class Profile(BaseModel):
    """Domain user record, one row per identity id."""

    id: str
    email: str
    full_name: str | None = None
    avatar_url: str | None = None
    is_platform_owner: bool = False
    settings: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("settings", mode="before")
    @classmethod
    def _null_settings(cls, value: Any) -> Any:
        return {} if value is None else value


class AuthState(BaseModel):
    """Process-wide authentication state published by the session store."""

    user: Profile | None = None
    loading: bool = False
    initialized: bool = False


class SignInRequest(BaseModel):
    """Email/password sign-in form."""

    email: str
    password: str


class SignUpRequest(BaseModel):
    """Email/password sign-up form."""

    email: str
    password: str
    full_name: str | None = None


class ActivityPing(BaseModel):
    """A coarse interaction event reported by the client."""

    event_type: str
