"""Profile provisioning and settings updates."""

import logging
from typing import Any, Literal

from pantry_auth.db.client import DatabaseClient
from pantry_auth.models.identity import Identity, Profile, UserSettings

logger = logging.getLogger(__name__)

READ_ONLY_FIELDS = frozenset({"id", "email", "created_at", "updated_at"})


class ProfileProvisioner:
    """Keeps exactly one domain profile per authenticated identity."""

    def __init__(self, db: DatabaseClient) -> None:
        self.db = db

    async def get_or_create(
        self,
        identity_id: str,
        email: str,
        full_name_hint: str | None = None,
    ) -> Profile:
        """Return the identity's profile, creating a minimal one if missing.

        The returned row is the persisted one, so server-side defaults
        (timestamps, default settings) are included.

        Args:
            identity_id: The provider's identity id
            email: The identity's email
            full_name_hint: Display name from the identity metadata

        Returns:
            The stored profile

        Raises:
            ProfileProvisionError: If the profile could not be created
        """
        profile = await self.db.get_profile(identity_id)
        if profile is not None:
            return profile

        logger.info(f"No profile for identity {identity_id}, creating one")
        return await self.db.upsert_profile({
            "id": identity_id,
            "email": email,
            "full_name": full_name_hint or None,
            "avatar_url": None,
        })

    async def provision(self, identity: Identity) -> Profile:
        """Convenience wrapper around get_or_create for a provider identity."""
        return await self.get_or_create(identity.id, identity.email, identity.full_name)

    async def get_profile(self, user_id: str) -> Profile | None:
        return await self.db.get_profile(user_id)

    async def get_settings(self, user_id: str) -> dict[str, Any]:
        """Current settings, or an empty dict when the profile is missing."""
        settings = await self.db.get_settings(user_id)
        return settings or {}

    async def update_settings(
        self,
        user_id: str,
        settings: UserSettings | dict[str, Any],
    ) -> Profile:
        """Shallow-merge settings on top of the stored ones.

        Read-merge-write with no locking: the last writer wins.

        Args:
            user_id: The profile id
            settings: Keys to change; unset model fields are left alone

        Returns:
            The updated profile
        """
        if isinstance(settings, UserSettings):
            partial = settings.model_dump(mode="json", exclude_unset=True)
        else:
            partial = dict(settings)

        current = await self.get_settings(user_id)
        merged = {**current, **partial}
        return await self.db.update_profile(user_id, {"settings": merged})

    async def update_language(
        self,
        user_id: str,
        language: Literal["en", "es", "fr"],
    ) -> Profile:
        return await self.update_settings(user_id, UserSettings(language=language))

    async def update_profile(self, user_id: str, updates: dict[str, Any]) -> Profile:
        """Update editable profile columns, ignoring read-only ones."""
        allowed = {k: v for k, v in updates.items() if k not in READ_ONLY_FIELDS}
        dropped = sorted(set(updates) - set(allowed))
        if dropped:
            logger.debug(f"Ignoring read-only profile fields: {dropped}")
        return await self.db.update_profile(user_id, allowed)
