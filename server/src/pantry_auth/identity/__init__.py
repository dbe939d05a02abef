"""Identity provider integration."""

from pantry_auth.identity.provider import (
    IdentityProvider,
    SupabaseIdentityProvider,
    map_provider_error,
)

__all__ = ["IdentityProvider", "SupabaseIdentityProvider", "map_provider_error"]
