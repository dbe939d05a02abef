"""Platform owner bootstrap models."""

from enum import Enum

from pydantic import BaseModel, Field


class OwnerState(str, Enum):
    """Bootstrap state of the platform owner account.

    Transitions are linear: NO_OWNER_YET -> OWNER_PENDING_CONFIRMATION
    -> OWNER_READY. This service only observes the second transition.
    """

    NO_OWNER_YET = "no_owner_yet"
    OWNER_PENDING_CONFIRMATION = "owner_pending_confirmation"
    OWNER_READY = "owner_ready"


class LoginView(str, Enum):
    """Which form the platform login entry point should present."""

    SETUP_CONTINUATION = "setup_continuation"
    CREDENTIAL_FORM = "credential_form"


class SetupRequest(BaseModel):
    """Platform owner setup form."""

    full_name: str
    password: str
    confirm_password: str


class LoginViewResponse(BaseModel):
    """Response for the platform login branch lookup."""

    email: str
    state: OwnerState
    view: LoginView
    redirect_to: str | None = Field(
        default=None,
        description="Where the client should go for the setup flow",
    )
