"""Process-wide authentication state.

All state changes (manual sign-in/out/re-checks and provider
notifications) go through one queue consumed by a single worker task,
so they apply strictly in arrival order. A slow profile lookup from an
earlier sign-in can never overwrite a later sign-out.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable

from pantry_auth.identity.provider import IdentityProvider
from pantry_auth.manager.profile_provisioner import ProfileProvisioner
from pantry_auth.models.identity import (
    AuthEvent,
    AuthState,
    Identity,
    IdentityChange,
    Profile,
)
from pantry_auth.storage import ActivityTrackingStorage

logger = logging.getLogger(__name__)

StateListener = Callable[[AuthState], None]

OAUTH_PROVIDERS = frozenset({"google", "facebook"})


@dataclass
class _Command:
    """A unit of work for the store's worker."""

    kind: str
    args: tuple[Any, ...] = ()
    future: asyncio.Future | None = None


class SessionStore:
    """Reactive holder of ``{user, loading, initialized}``.

    Construct one per process and pass it to whoever needs it.
    """

    def __init__(
        self,
        provider: IdentityProvider,
        provisioner: ProfileProvisioner,
        storage: ActivityTrackingStorage | None = None,
        oauth_redirect_to: str | None = None,
    ) -> None:
        self.provider = provider
        self.provisioner = provisioner
        self.storage = storage
        self.oauth_redirect_to = oauth_redirect_to
        self._state = AuthState()
        self._listeners: list[StateListener] = []
        self._queue: asyncio.Queue[_Command] | None = None
        self._worker: asyncio.Task | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._closed = False
        self._handlers = {
            "initial": self._handle_initial,
            "notification": self._handle_notification,
            "sign_in": self._handle_sign_in,
            "sign_out": self._handle_sign_out,
            "check_auth": self._handle_check_auth,
        }

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def state(self) -> AuthState:
        return self._state

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener called with every new state.

        Returns:
            A callable that removes the listener
        """
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return _unsubscribe

    def _set(self, **changes: Any) -> None:
        self._state = self._state.model_copy(update=changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception as e:
                logger.error(f"Auth state listener failed: {e}")

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def initialize(self) -> None:
        """Subscribe to provider notifications and resolve the current session.

        Safe to call repeatedly; only the first call has any effect.
        """
        if self._state.initialized:
            logger.info("Session store already initialized")
            return

        logger.info("Initializing session store")
        self._ensure_worker()
        self._unsubscribe = self.provider.on_identity_change(self._on_identity_change)
        self._set(initialized=True, loading=True)
        self._enqueue(_Command("initial"))

    async def close(self) -> None:
        """Release the provider subscription and stop the worker.

        Commands in flight or still queued are cancelled; later commands
        raise RuntimeError.
        """
        self._closed = True
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

        if self._queue is not None:
            while not self._queue.empty():
                command = self._queue.get_nowait()
                if command.future is not None and not command.future.done():
                    command.future.cancel()
                self._queue.task_done()
        logger.info("Session store closed")

    async def wait_until_idle(self) -> None:
        """Wait until every queued command has been handled."""
        if self._queue is not None:
            await self._queue.join()

    async def __aenter__(self) -> "SessionStore":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    async def sign_in(self, email: str, password: str) -> Profile:
        """Exchange credentials and hydrate the user's profile.

        Returns once ``state.user`` holds the stored profile.

        Raises:
            CredentialError: Bad email or password
            UnconfirmedIdentityError: Email not confirmed yet
            ProfileProvisionError: The profile could not be created
        """
        return await self._submit("sign_in", email, password)

    async def sign_up(
        self,
        email: str,
        password: str,
        full_name: str | None = None,
    ) -> None:
        """Register a new identity.

        Does not touch ``state.user``; the profile is provisioned when the
        provider reports the identity as signed in.
        """
        identity = await self.provider.sign_up(email, password, {"full_name": full_name})
        if identity is not None:
            logger.info(f"User signed up: {identity.email}")

    async def sign_in_with_provider(self, provider: str) -> str:
        """Start an OAuth sign-in.

        Returns:
            The URL the user agent should be sent to
        """
        if provider not in OAUTH_PROVIDERS:
            raise ValueError(f"Unsupported OAuth provider: {provider}")

        logger.info(f"Signing in with {provider}")
        self._set(loading=True)
        try:
            return await self.provider.sign_in_with_oauth(
                provider, self.oauth_redirect_to or ""
            )
        except Exception as e:
            logger.error(f"{provider} sign in error: {e}")
            self._set(loading=False)
            raise

    async def sign_out(self) -> None:
        """Sign out everywhere and clear local state."""
        await self._submit("sign_out")

    async def check_auth(self) -> AuthState:
        """Re-resolve the session and profile now."""
        await self._submit("check_auth")
        return self._state

    # -------------------------------------------------------------------------
    # Command channel
    # -------------------------------------------------------------------------

    def _ensure_worker(self) -> None:
        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._worker is None or self._worker.done():
            self._loop = asyncio.get_running_loop()
            self._worker = asyncio.create_task(self._run())

    def _enqueue(self, command: _Command) -> None:
        self._queue.put_nowait(command)

    async def _submit(self, kind: str, *args: Any) -> Any:
        if self._closed:
            raise RuntimeError("Session store is closed")
        self._ensure_worker()
        future = self._loop.create_future()
        self._enqueue(_Command(kind, args, future))
        return await future

    def _on_identity_change(self, change: IdentityChange) -> None:
        email = change.identity.email if change.identity else None
        logger.info(f"Auth state change: {change.event.value} {email or ''}".rstrip())

        command = _Command("notification", (change,))
        try:
            running_loop = asyncio.get_running_loop()
        except RuntimeError:
            running_loop = None

        if running_loop is self._loop:
            self._enqueue(command)
        elif self._loop is not None:
            self._loop.call_soon_threadsafe(self._enqueue, command)

    async def _run(self) -> None:
        while True:
            command = await self._queue.get()
            try:
                result = await self._handlers[command.kind](*command.args)
            except asyncio.CancelledError:
                if command.future is not None and not command.future.done():
                    command.future.cancel()
                raise
            except Exception as e:
                if command.future is not None and not command.future.done():
                    command.future.set_exception(e)
                else:
                    logger.error(f"Auth command {command.kind} failed: {e}")
            else:
                if command.future is not None and not command.future.done():
                    command.future.set_result(result)
            finally:
                self._queue.task_done()

    # -------------------------------------------------------------------------
    # Handlers (run on the worker only)
    # -------------------------------------------------------------------------

    async def _resolve_profile(self, identity: Identity) -> Profile:
        return await self.provisioner.get_or_create(
            identity.id, identity.email, identity.full_name
        )

    def _clear_local_state(self) -> None:
        if self.storage is not None:
            self.storage.clear_local_state()

    async def _handle_initial(self) -> None:
        try:
            session = await self.provider.get_session()
            if session is None:
                logger.info("No session found")
                self._set(user=None, loading=False)
                return

            logger.info(f"Session found: {session.identity.email}")
            profile = await self._resolve_profile(session.identity)
            self._set(user=profile, loading=False)
        except Exception as e:
            logger.error(f"Auth initialization error: {e}")
            self._set(user=None, loading=False)

    async def _handle_notification(self, change: IdentityChange) -> None:
        if change.event == AuthEvent.SIGNED_IN and change.identity is not None:
            try:
                # Notifications can lag behind commands; trust the live session.
                session = await self.provider.get_session()
                if session is None or session.identity.id != change.identity.id:
                    logger.info("Ignoring stale sign-in notification")
                    return

                profile = await self._resolve_profile(change.identity)
                self._set(user=profile, loading=False)
            except Exception as e:
                logger.error(f"Profile error in state change: {e}")
                self._set(loading=False)

        elif change.event == AuthEvent.SIGNED_OUT:
            logger.info("User signed out")
            self._clear_local_state()
            self._set(user=None, loading=False)

        elif change.event == AuthEvent.TOKEN_REFRESHED:
            logger.debug("Token refreshed silently")

    async def _handle_sign_in(self, email: str, password: str) -> Profile:
        self._set(loading=True)
        logger.info("Signing in")
        try:
            session = await self.provider.sign_in_with_password(email, password)
            logger.info(f"Auth successful: {session.identity.email}")
            profile = await self._resolve_profile(session.identity)
        except Exception as e:
            logger.error(f"Sign in error: {e}")
            self._set(loading=False)
            raise

        self._set(user=profile, loading=False)
        return profile

    async def _handle_sign_out(self) -> None:
        try:
            await self.provider.sign_out("global")
        except Exception as e:
            logger.error(f"Sign out error: {e}")
            raise
        finally:
            self._clear_local_state()
            self._set(user=None, loading=False)

    async def _handle_check_auth(self) -> None:
        self._set(loading=True)
        try:
            session = await self.provider.get_session()
            if session is None:
                self._set(user=None, loading=False)
                return
            profile = await self._resolve_profile(session.identity)
        except Exception as e:
            logger.error(f"Auth check error: {e}")
            self._set(loading=False)
            raise

        self._set(user=profile, loading=False)
