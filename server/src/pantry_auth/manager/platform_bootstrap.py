"""Platform owner bootstrap.

The platform has a single distinguished owner account. Before it exists
the platform login offers a setup flow; once the owner's identity is
confirmed it offers a normal credential form.

    NO_OWNER_YET --setup--> OWNER_PENDING_CONFIRMATION --confirm--> OWNER_READY

Setup is driven here; confirmation happens at the identity provider and
is only observed.
"""

import asyncio
import logging

from pantry_auth.exceptions import (
    AuthorizationError,
    IdentityProviderError,
    SetupAlreadyCompleteError,
    SetupValidationError,
)
from pantry_auth.identity.provider import IdentityProvider
from pantry_auth.manager.profile_provisioner import ProfileProvisioner
from pantry_auth.manager.session_store import SessionStore
from pantry_auth.models.identity import Profile
from pantry_auth.models.platform import LoginView, LoginViewResponse, OwnerState

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
SETUP_PATH = "/setup"


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class PlatformOwnerBootstrap:
    """Decides what the platform login shows and runs the one-time setup."""

    def __init__(
        self,
        provider: IdentityProvider,
        provisioner: ProfileProvisioner,
        store: SessionStore,
        owner_email: str,
        login_url: str | None = None,
    ) -> None:
        self.provider = provider
        self.provisioner = provisioner
        self.db = provisioner.db
        self.store = store
        self.owner_email = normalize_email(owner_email)
        self.login_url = login_url
        self._setup_lock = asyncio.Lock()

    def is_owner_email(self, email: str) -> bool:
        return normalize_email(email) == self.owner_email

    async def current_state(self) -> OwnerState:
        """Derive the bootstrap state from the profile store."""
        owner = await self.db.find_platform_owner()
        if owner is None:
            return OwnerState.NO_OWNER_YET

        if await self.db.check_platform_owner_ready(self.owner_email):
            return OwnerState.OWNER_READY
        return OwnerState.OWNER_PENDING_CONFIRMATION

    async def login_view(self, email: str) -> LoginViewResponse:
        """Pick the platform login branch for an email.

        Raises:
            AuthorizationError: A non-owner email while setup is unfinished
        """
        state = await self.current_state()

        if self.is_owner_email(email):
            if state == OwnerState.OWNER_READY:
                view = LoginView.CREDENTIAL_FORM
            else:
                view = LoginView.SETUP_CONTINUATION
        elif state == OwnerState.OWNER_READY:
            view = LoginView.CREDENTIAL_FORM
        else:
            raise AuthorizationError("This email is not authorized for platform access.")

        return LoginViewResponse(
            email=normalize_email(email),
            state=state,
            view=view,
            redirect_to=SETUP_PATH if view == LoginView.SETUP_CONTINUATION else None,
        )

    async def complete_setup(
        self,
        full_name: str,
        password: str,
        confirm_password: str,
    ) -> Profile:
        """Create the platform owner account.

        Returns:
            The owner profile, now awaiting email confirmation

        Raises:
            SetupAlreadyCompleteError: An owner already exists
            SetupValidationError: Passwords don't match or are too short
        """
        async with self._setup_lock:
            state = await self.current_state()
            if state != OwnerState.NO_OWNER_YET:
                logger.warning(f"Platform setup refused, state is {state.value}")
                raise SetupAlreadyCompleteError("Platform setup is already complete.")

            if password != confirm_password:
                raise SetupValidationError("Passwords do not match")
            if len(password) < MIN_PASSWORD_LENGTH:
                raise SetupValidationError(
                    f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
                )

            identity = await self.provider.sign_up(
                self.owner_email,
                password,
                {"full_name": full_name, "is_platform_owner": True},
                email_redirect_to=self.login_url,
            )
            if identity is None:
                raise IdentityProviderError("Sign up returned no identity")

            await self.provisioner.get_or_create(identity.id, identity.email, full_name)
            owner = await self.db.mark_platform_owner(identity.id, full_name)
            logger.info(f"Platform owner account created: {owner.email}")

            # The owner has to confirm and sign in again through the login page.
            await self.provider.sign_out()
            return owner

    async def sign_in_owner(self, email: str, password: str) -> Profile:
        """Sign in through the platform login and verify the owner flag.

        The flag is re-read from the profile store after the credential
        exchange. On refusal the session established by the exchange is
        left in place.

        Raises:
            AuthorizationError: Setup unfinished, or the profile is not the owner
        """
        state = await self.current_state()
        if state != OwnerState.OWNER_READY:
            raise AuthorizationError("Platform owner setup is not complete.")

        profile = await self.store.sign_in(email, password)

        fresh = await self.provisioner.get_profile(profile.id)
        if fresh is None or not fresh.is_platform_owner:
            logger.warning(f"Platform access denied for {profile.email}")
            raise AuthorizationError(
                "You don't have permission to access the platform dashboard."
            )

        logger.info(f"Platform access granted for {fresh.email}")
        return fresh
