"""Custom exceptions for Pantry Auth."""


class AuthError(Exception):
    """Base class for identity/session errors."""


class CredentialError(AuthError):
    """Raised when the provider rejects an email/password pair.

    The provider's message is kept verbatim so it can be shown as-is.
    """


class UnconfirmedIdentityError(AuthError):
    """Raised when the identity exists but its email is not confirmed yet."""


class IdentityProviderError(AuthError):
    """Raised for any other identity provider failure."""


class ProfileProvisionError(AuthError):
    """Raised when a profile could not be created for an identity."""

    def __init__(self, identity_id: str, reason: str) -> None:
        self.identity_id = identity_id
        self.reason = reason
        super().__init__(
            f"Failed to provision profile for identity {identity_id}: {reason}"
        )


class ProfileUpdateError(AuthError):
    """Raised when a profile or settings write fails."""


class AuthorizationError(AuthError):
    """Raised when an authenticated identity lacks platform owner rights.

    By the time this is raised the credential exchange has already
    established a session.
    """


class SetupAlreadyCompleteError(AuthError):
    """Raised when platform setup is attempted while an owner exists."""

    redirect_to = "/login"


class SetupValidationError(AuthError):
    """Raised when the setup form input is rejected."""
