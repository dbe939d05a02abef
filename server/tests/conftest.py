"""Global test configuration for Pantry Auth."""

import asyncio
import os
from datetime import UTC, datetime
from typing import Any, Callable

import pytest

from pantry_auth.exceptions import (
    CredentialError,
    ProfileUpdateError,
    UnconfirmedIdentityError,
)
from pantry_auth.manager.profile_provisioner import ProfileProvisioner
from pantry_auth.manager.session_store import SessionStore
from pantry_auth.models.identity import (
    AuthEvent,
    Identity,
    IdentityChange,
    Profile,
    Session,
)
from pantry_auth.storage import ActivityTrackingStorage, MemoryStorage

SESSION_KEY = "supabase.auth.token"
OWNER_EMAIL = "owner@x.com"


@pytest.fixture(autouse=True, scope="session")
def _set_test_env_vars():
    """Set dummy environment variables for Settings validation.

    This ensures tests don't require a real .env file or exported env vars.
    Only sets values that aren't already present, so real env vars take
    precedence (useful for integration tests).
    """
    defaults = {
        "SUPABASE_URL": "https://test.supabase.co",
        "SUPABASE_KEY": "test-supabase-key",
        "PLATFORM_OWNER_EMAIL": OWNER_EMAIL,
    }
    originals = {}
    for key, value in defaults.items():
        if key not in os.environ:
            os.environ[key] = value
            originals[key] = None
        else:
            originals[key] = os.environ[key]

    # Clear the lru_cache on get_settings so it picks up the new env vars
    from pantry_auth.config import get_settings
    get_settings.cache_clear()

    yield

    # Restore original env state
    for key, original in originals.items():
        if original is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = original
    get_settings.cache_clear()


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeIdentityProvider:
    """In-memory identity provider that emits notifications like Supabase."""

    def __init__(self) -> None:
        self.accounts: dict[str, dict[str, Any]] = {}
        self.session: Session | None = None
        self.callbacks: list[Callable[[IdentityChange], None]] = []
        self.subscribe_calls = 0
        self.sign_out_scopes: list[str] = []
        self.sign_up_calls: list[dict[str, Any]] = []
        self.oauth_calls: list[tuple[str, str]] = []
        self.fail_sign_out = False

    def add_account(
        self,
        email: str,
        password: str,
        full_name: str | None = None,
        confirmed: bool = True,
        user_id: str | None = None,
    ) -> Identity:
        identity = Identity(
            id=user_id or f"user-{len(self.accounts) + 1}",
            email=email,
            metadata={"full_name": full_name} if full_name else {},
            email_confirmed_at=datetime.now(UTC) if confirmed else None,
        )
        self.accounts[email] = {
            "password": password,
            "identity": identity,
            "confirmed": confirmed,
        }
        return identity

    def start_session(self, identity: Identity) -> Session:
        self.session = Session(
            access_token="access",
            refresh_token="refresh",
            expires_at=None,
            identity=identity,
        )
        return self.session

    def emit(self, event: AuthEvent, identity: Identity | None = None) -> None:
        change = IdentityChange(event=event, identity=identity)
        for callback in list(self.callbacks):
            callback(change)

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        account = self.accounts.get(email)
        if account is None or account["password"] != password:
            raise CredentialError("Invalid login credentials")
        if not account["confirmed"]:
            raise UnconfirmedIdentityError("Email not confirmed")

        session = self.start_session(account["identity"])
        self.emit(AuthEvent.SIGNED_IN, session.identity)
        return session

    async def sign_up(
        self,
        email: str,
        password: str,
        metadata: dict[str, Any],
        email_redirect_to: str | None = None,
    ) -> Identity | None:
        self.sign_up_calls.append({
            "email": email,
            "metadata": metadata,
            "email_redirect_to": email_redirect_to,
        })
        identity = self.add_account(
            email, password, metadata.get("full_name"), confirmed=False
        )
        return identity.model_copy(update={"metadata": dict(metadata)})

    async def sign_in_with_oauth(self, provider: str, redirect_to: str) -> str:
        self.oauth_calls.append((provider, redirect_to))
        return f"https://auth.example/{provider}?redirect_to={redirect_to}"

    async def sign_out(self, scope: str = "global") -> None:
        self.sign_out_scopes.append(scope)
        if self.fail_sign_out:
            raise RuntimeError("network down")
        self.session = None
        self.emit(AuthEvent.SIGNED_OUT)

    async def get_session(self) -> Session | None:
        return self.session

    def on_identity_change(self, callback):
        self.subscribe_calls += 1
        self.callbacks.append(callback)

        def _unsubscribe() -> None:
            if callback in self.callbacks:
                self.callbacks.remove(callback)

        return _unsubscribe


class FakeProfileDB:
    """In-memory stand-in for DatabaseClient."""

    def __init__(self) -> None:
        self.profiles: dict[str, dict[str, Any]] = {}
        self.inserts: list[str] = []
        self.confirmed_emails: set[str] = set()
        self.lookup_delay = 0.0

    async def get_profile(self, user_id: str) -> Profile | None:
        if self.lookup_delay:
            await asyncio.sleep(self.lookup_delay)
        row = self.profiles.get(user_id)
        return Profile(**row) if row else None

    async def upsert_profile(self, data: dict[str, Any]) -> Profile:
        await asyncio.sleep(0)
        if data["id"] not in self.profiles:
            self.inserts.append(data["id"])
            self.profiles[data["id"]] = {
                "is_platform_owner": False,
                "settings": {},
                "created_at": datetime.now(UTC),
                **data,
            }
        return Profile(**self.profiles[data["id"]])

    async def update_profile(self, user_id: str, updates: dict[str, Any]) -> Profile:
        if user_id not in self.profiles:
            raise ProfileUpdateError(f"Failed to update profile {user_id}: not found")
        self.profiles[user_id].update(updates)
        self.profiles[user_id]["updated_at"] = datetime.now(UTC)
        return Profile(**self.profiles[user_id])

    async def get_settings(self, user_id: str) -> dict[str, Any] | None:
        row = self.profiles.get(user_id)
        if row is None:
            return None
        return dict(row.get("settings") or {})

    async def find_platform_owner(self) -> Profile | None:
        for row in self.profiles.values():
            if row.get("is_platform_owner"):
                return Profile(**row)
        return None

    async def mark_platform_owner(self, user_id: str, full_name: str) -> Profile:
        return await self.update_profile(
            user_id, {"full_name": full_name, "is_platform_owner": True}
        )

    async def check_platform_owner_ready(self, owner_email: str) -> bool:
        owner = await self.find_platform_owner()
        return owner is not None and owner_email in self.confirmed_emails

    async def health_check(self) -> dict[str, Any]:
        return {"healthy": True, "latency_ms": 0.0, "error": None}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def profile_db() -> FakeProfileDB:
    return FakeProfileDB()


@pytest.fixture
def provisioner(profile_db: FakeProfileDB) -> ProfileProvisioner:
    return ProfileProvisioner(profile_db)


@pytest.fixture
def clock():
    """Controllable epoch-ms clock."""

    class _Clock:
        now = 1_700_000_000_000

        def __call__(self) -> int:
            return self.now

        def advance(self, ms: int) -> None:
            self.now += ms

    return _Clock()


@pytest.fixture
def storage(clock) -> ActivityTrackingStorage:
    return ActivityTrackingStorage(MemoryStorage(), session_key=SESSION_KEY, clock=clock)


@pytest.fixture
def store(provider, provisioner, storage) -> SessionStore:
    return SessionStore(
        provider,
        provisioner,
        storage=storage,
        oauth_redirect_to="http://localhost:5173/dashboard",
    )
