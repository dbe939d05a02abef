"""Supabase client for profile persistence."""

import asyncio
import logging
import time
from datetime import UTC, datetime
from typing import Any

from postgrest.exceptions import APIError
from supabase import Client, create_client
from supabase.client import ClientOptions

from pantry_auth.config import Settings, get_settings
from pantry_auth.exceptions import ProfileProvisionError, ProfileUpdateError
from pantry_auth.models.identity import Profile
from pantry_auth.storage import KeyValueStorage

logger = logging.getLogger(__name__)

PROFILES_TABLE = "profiles"
UNIQUE_VIOLATION = "23505"


def create_supabase_client(
    settings: Settings,
    storage: KeyValueStorage | None = None,
) -> Client:
    """Create a Supabase client whose auth session persists through storage.

    Args:
        settings: Application settings
        storage: Where the auth client keeps its session blob

    Returns:
        The configured client
    """
    options = ClientOptions(persist_session=True, auto_refresh_token=True)
    if storage is not None:
        options.storage = storage
    return create_client(settings.supabase_url, settings.supabase_key, options=options)


class DatabaseClient:
    """Client for the profiles table and owner checks."""

    def __init__(self, client: Client | None = None) -> None:
        if client is None:
            client = create_supabase_client(get_settings())
        self.client: Client = client

    async def _execute(self, query: Any) -> Any:
        # The sync client blocks on HTTP; keep it off the event loop.
        return await asyncio.to_thread(query.execute)

    # -------------------------------------------------------------------------
    # Profile methods
    # -------------------------------------------------------------------------

    async def get_profile(self, user_id: str) -> Profile | None:
        """Look up a profile by identity id.

        Args:
            user_id: The identity id

        Returns:
            Profile if found, None otherwise
        """
        result = await self._execute(
            self.client.table(PROFILES_TABLE)
            .select("*")
            .eq("id", user_id)
        )
        if result.data and len(result.data) > 0:
            return Profile(**result.data[0])
        return None

    async def upsert_profile(self, data: dict[str, Any]) -> Profile:
        """Insert a profile, or return the existing row for the same id.

        Duplicate rows are ignored by the database, so concurrent callers
        for the same identity all end up reading the single stored row.

        Args:
            data: Profile columns; must include "id"

        Returns:
            The persisted profile

        Raises:
            ProfileProvisionError: If no row exists after the insert
        """
        user_id = data["id"]
        try:
            result = await self._execute(
                self.client.table(PROFILES_TABLE)
                .upsert(data, on_conflict="id", ignore_duplicates=True)
            )
            if result.data and len(result.data) > 0:
                logger.debug(f"Created profile {user_id}")
                return Profile(**result.data[0])
        except APIError as e:
            if e.code != UNIQUE_VIOLATION:
                raise ProfileProvisionError(user_id, e.message or str(e)) from e
            logger.debug(f"Profile {user_id} created concurrently, re-fetching")

        profile = await self.get_profile(user_id)
        if profile is None:
            raise ProfileProvisionError(user_id, "profile missing after insert")
        return profile

    async def update_profile(self, user_id: str, updates: dict[str, Any]) -> Profile:
        """Apply a partial update to a profile.

        Args:
            user_id: The identity id
            updates: Columns to change

        Returns:
            The updated profile

        Raises:
            ProfileUpdateError: If the write fails or no row matched
        """
        data = {**updates, "updated_at": datetime.now(UTC).isoformat()}
        try:
            result = await self._execute(
                self.client.table(PROFILES_TABLE)
                .update(data)
                .eq("id", user_id)
            )
        except APIError as e:
            raise ProfileUpdateError(
                f"Failed to update profile {user_id}: {e.message}"
            ) from e

        if not result.data:
            raise ProfileUpdateError(f"Failed to update profile {user_id}: not found")
        logger.debug(f"Updated profile {user_id}: {sorted(updates)}")
        return Profile(**result.data[0])

    async def get_settings(self, user_id: str) -> dict[str, Any] | None:
        """Read just the settings column.

        Returns:
            The settings dict, or None if the profile does not exist
        """
        result = await self._execute(
            self.client.table(PROFILES_TABLE)
            .select("settings")
            .eq("id", user_id)
        )
        if result.data and len(result.data) > 0:
            return result.data[0].get("settings") or {}
        return None

    # -------------------------------------------------------------------------
    # Platform owner methods
    # -------------------------------------------------------------------------

    async def find_platform_owner(self) -> Profile | None:
        """Return the profile flagged as platform owner, if any."""
        result = await self._execute(
            self.client.table(PROFILES_TABLE)
            .select("*")
            .eq("is_platform_owner", True)
            .limit(1)
        )
        if result.data and len(result.data) > 0:
            return Profile(**result.data[0])
        return None

    async def mark_platform_owner(self, user_id: str, full_name: str) -> Profile:
        """Flag a profile as the platform owner."""
        return await self.update_profile(
            user_id,
            {"full_name": full_name, "is_platform_owner": True},
        )

    async def check_platform_owner_ready(self, owner_email: str) -> bool:
        """Ask the database whether the owner's identity is confirmed.

        This is a UI-branching hint, not an authorization check.
        """
        result = await self._execute(
            self.client.rpc(
                "check_platform_owner_ready",
                {"owner_email": owner_email},
            )
        )
        return bool(result.data)

    # -------------------------------------------------------------------------
    # Health Check
    # -------------------------------------------------------------------------

    async def health_check(self) -> dict[str, Any]:
        """Check database connectivity and return health status.

        Returns:
            Dict with:
                - healthy: bool - whether the database is reachable
                - latency_ms: float - query latency in milliseconds
                - error: str | None - error message if unhealthy
        """
        start = time.perf_counter()
        try:
            await self._execute(
                self.client.table(PROFILES_TABLE).select("id").limit(1)
            )
            latency_ms = (time.perf_counter() - start) * 1000

            return {
                "healthy": True,
                "latency_ms": round(latency_ms, 2),
                "error": None,
            }
        except Exception as e:
            latency_ms = (time.perf_counter() - start) * 1000
            logger.error(f"Database health check failed: {e}")

            return {
                "healthy": False,
                "latency_ms": round(latency_ms, 2),
                "error": str(e),
            }
