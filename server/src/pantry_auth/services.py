"""Construction of the process-wide auth components."""

import logging
from dataclasses import dataclass

from supabase import Client

from pantry_auth.config import Settings
from pantry_auth.db.client import DatabaseClient, create_supabase_client
from pantry_auth.identity.provider import IdentityProvider, SupabaseIdentityProvider
from pantry_auth.manager.activity_monitor import ActivityMonitor
from pantry_auth.manager.platform_bootstrap import PlatformOwnerBootstrap
from pantry_auth.manager.profile_provisioner import ProfileProvisioner
from pantry_auth.manager.session_store import SessionStore
from pantry_auth.storage import ActivityTrackingStorage, FileStorage

logger = logging.getLogger(__name__)


@dataclass
class AuthServices:
    """Everything the API needs, built once per process."""

    db: DatabaseClient
    provider: IdentityProvider
    storage: ActivityTrackingStorage
    provisioner: ProfileProvisioner
    store: SessionStore
    monitor: ActivityMonitor
    bootstrap: PlatformOwnerBootstrap

    async def start(self) -> None:
        await self.monitor.start()
        await self.store.initialize()

    async def stop(self) -> None:
        await self.monitor.stop()
        await self.store.close()


def build_services(settings: Settings, client: Client | None = None) -> AuthServices:
    """Wire up storage, Supabase, the session store and its collaborators.

    Args:
        settings: Application settings
        client: Optional pre-built Supabase client

    Returns:
        The assembled services
    """
    storage = ActivityTrackingStorage(
        FileStorage(settings.session_storage_path),
        session_key=settings.session_storage_key,
    )
    if client is None:
        client = create_supabase_client(settings, storage)

    db = DatabaseClient(client)
    provider = SupabaseIdentityProvider(client)
    provisioner = ProfileProvisioner(db)
    store = SessionStore(
        provider,
        provisioner,
        storage=storage,
        oauth_redirect_to=settings.app_dashboard_url,
    )
    monitor = ActivityMonitor(
        storage,
        provider,
        timeout_ms=int(settings.inactivity_timeout_hours * 60 * 60 * 1000),
        check_interval=settings.inactivity_check_interval,
    )
    bootstrap = PlatformOwnerBootstrap(
        provider,
        provisioner,
        store,
        owner_email=settings.platform_owner_email,
        login_url=settings.platform_login_url,
    )
    logger.debug(f"Session storage at {settings.session_storage_path}")
    return AuthServices(
        db=db,
        provider=provider,
        storage=storage,
        provisioner=provisioner,
        store=store,
        monitor=monitor,
        bootstrap=bootstrap,
    )
