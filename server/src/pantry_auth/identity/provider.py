"""Identity provider contract and its Supabase Auth implementation."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Literal, Protocol, runtime_checkable

from supabase import Client

from pantry_auth.exceptions import (
    AuthError,
    CredentialError,
    IdentityProviderError,
    UnconfirmedIdentityError,
)
from pantry_auth.models.identity import AuthEvent, Identity, IdentityChange, Session

logger = logging.getLogger(__name__)

SignOutScope = Literal["global", "local", "others"]
IdentityChangeCallback = Callable[[IdentityChange], None]

_UNCONFIRMED_MARKERS = ("email not confirmed", "email_not_confirmed")
_CREDENTIAL_MARKERS = ("invalid login credentials", "invalid_credentials")


@runtime_checkable
class IdentityProvider(Protocol):
    """What the session lifecycle needs from the external identity provider."""

    async def sign_in_with_password(self, email: str, password: str) -> Session: ...

    async def sign_up(
        self,
        email: str,
        password: str,
        metadata: dict[str, Any],
        email_redirect_to: str | None = None,
    ) -> Identity | None: ...

    async def sign_in_with_oauth(self, provider: str, redirect_to: str) -> str: ...

    async def sign_out(self, scope: SignOutScope = "global") -> None: ...

    async def get_session(self) -> Session | None: ...

    def on_identity_change(
        self, callback: IdentityChangeCallback
    ) -> Callable[[], None]: ...


def map_provider_error(exc: Exception) -> AuthError:
    """Translate a provider exception into the auth error taxonomy.

    Unconfirmed identities are only distinguishable by the provider's
    error text (or code, on newer provider versions).
    """
    message = getattr(exc, "message", None) or str(exc)
    code = str(getattr(exc, "code", "") or "")
    haystack = f"{message} {code}".lower()

    if any(marker in haystack for marker in _UNCONFIRMED_MARKERS):
        return UnconfirmedIdentityError(message)
    if any(marker in haystack for marker in _CREDENTIAL_MARKERS):
        return CredentialError(message)
    return IdentityProviderError(message)


def _to_identity(user: Any) -> Identity:
    return Identity(
        id=str(user.id),
        email=user.email or "",
        metadata=dict(user.user_metadata or {}),
        email_confirmed_at=getattr(user, "email_confirmed_at", None),
    )


def _to_session(session: Any) -> Session:
    return Session(
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        expires_at=session.expires_at,
        identity=_to_identity(session.user),
    )


class SupabaseIdentityProvider:
    """Identity provider backed by the Supabase Auth client.

    The client is synchronous, so each call runs in a worker thread and
    auth notifications may be delivered from that thread.
    """

    def __init__(self, client: Client) -> None:
        self.client = client

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        try:
            response = await asyncio.to_thread(
                self.client.auth.sign_in_with_password,
                {"email": email, "password": password},
            )
        except Exception as e:
            raise map_provider_error(e) from e

        if response.session is None:
            raise UnconfirmedIdentityError("Email not confirmed")
        return _to_session(response.session)

    async def sign_up(
        self,
        email: str,
        password: str,
        metadata: dict[str, Any],
        email_redirect_to: str | None = None,
    ) -> Identity | None:
        options: dict[str, Any] = {"data": metadata}
        if email_redirect_to:
            options["email_redirect_to"] = email_redirect_to

        try:
            response = await asyncio.to_thread(
                self.client.auth.sign_up,
                {"email": email, "password": password, "options": options},
            )
        except Exception as e:
            raise map_provider_error(e) from e

        if response.user is None:
            return None
        return _to_identity(response.user)

    async def sign_in_with_oauth(self, provider: str, redirect_to: str) -> str:
        try:
            response = await asyncio.to_thread(
                self.client.auth.sign_in_with_oauth,
                {"provider": provider, "options": {"redirect_to": redirect_to}},
            )
        except Exception as e:
            raise map_provider_error(e) from e
        return response.url

    async def sign_out(self, scope: SignOutScope = "global") -> None:
        try:
            await asyncio.to_thread(self.client.auth.sign_out, {"scope": scope})
        except Exception as e:
            raise map_provider_error(e) from e

    async def get_session(self) -> Session | None:
        try:
            session = await asyncio.to_thread(self.client.auth.get_session)
        except Exception as e:
            raise map_provider_error(e) from e

        if session is None or session.user is None:
            return None
        return _to_session(session)

    def on_identity_change(
        self, callback: IdentityChangeCallback
    ) -> Callable[[], None]:
        """Subscribe to provider auth events.

        Returns:
            A callable that releases the subscription
        """

        def _forward(event: str, session: Any) -> None:
            try:
                auth_event = AuthEvent(event)
            except ValueError:
                logger.debug(f"Ignoring unhandled auth event: {event}")
                return
            identity = (
                _to_identity(session.user)
                if session is not None and session.user is not None
                else None
            )
            callback(IdentityChange(event=auth_event, identity=identity))

        subscription = self.client.auth.on_auth_state_change(_forward)
        return subscription.unsubscribe
