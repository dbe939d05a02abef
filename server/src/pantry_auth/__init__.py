"""Pantry Auth - identity and session lifecycle for the pantry app."""

__version__ = "0.1.0"

from pantry_auth.exceptions import (
    AuthError,
    AuthorizationError,
    CredentialError,
    IdentityProviderError,
    ProfileProvisionError,
    ProfileUpdateError,
    SetupAlreadyCompleteError,
    SetupValidationError,
    UnconfirmedIdentityError,
)

__all__ = [
    "__version__",
    "AuthError",
    "AuthorizationError",
    "CredentialError",
    "IdentityProviderError",
    "ProfileProvisionError",
    "ProfileUpdateError",
    "SetupAlreadyCompleteError",
    "SetupValidationError",
    "UnconfirmedIdentityError",
]
