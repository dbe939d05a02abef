"""Data models."""

from pantry_auth.models.identity import (
    ActivityPing,
    AuthEvent,
    AuthState,
    Identity,
    IdentityChange,
    NotificationSettings,
    Profile,
    Session,
    SignInRequest,
    SignUpRequest,
    UserSettings,
)
from pantry_auth.models.platform import (
    LoginView,
    LoginViewResponse,
    OwnerState,
    SetupRequest,
)

__all__ = [
    "ActivityPing",
    "AuthEvent",
    "AuthState",
    "Identity",
    "IdentityChange",
    "LoginView",
    "LoginViewResponse",
    "NotificationSettings",
    "OwnerState",
    "Profile",
    "Session",
    "SetupRequest",
    "SignInRequest",
    "SignUpRequest",
    "UserSettings",
]
