"""FastAPI routes for the session lifecycle and platform bootstrap."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse

from pantry_auth import __version__
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
from pantry_auth.models.identity import (
    ActivityPing,
    AuthState,
    Profile,
    SignInRequest,
    SignUpRequest,
    UserSettings,
)
from pantry_auth.models.platform import LoginViewResponse, SetupRequest
from pantry_auth.services import AuthServices

logger = logging.getLogger(__name__)

router = APIRouter()

_STATUS_BY_ERROR: list[tuple[type[AuthError], int]] = [
    (CredentialError, status.HTTP_401_UNAUTHORIZED),
    (UnconfirmedIdentityError, status.HTTP_403_FORBIDDEN),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (SetupAlreadyCompleteError, status.HTTP_409_CONFLICT),
    (SetupValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ProfileProvisionError, status.HTTP_502_BAD_GATEWAY),
    (ProfileUpdateError, status.HTTP_502_BAD_GATEWAY),
    (IdentityProviderError, status.HTTP_502_BAD_GATEWAY),
]


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render auth errors with a status code per error category."""
    status_code = status.HTTP_400_BAD_REQUEST
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            status_code = code
            break

    content: dict = {"detail": str(exc), "error": type(exc).__name__}
    if isinstance(exc, SetupAlreadyCompleteError):
        content["redirect_to"] = exc.redirect_to
    return JSONResponse(status_code=status_code, content=content)


def get_services(request: Request) -> AuthServices:
    """Services built by the application lifespan."""
    services: AuthServices | None = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Auth services not started",
        )
    return services


Services = Annotated[AuthServices, Depends(get_services)]


@router.get("/health")
async def health(services: Services) -> dict:
    """Health check endpoint."""
    return {
        "status": "ok",
        "version": __version__,
        "initialized": services.store.state.initialized,
        "activity_monitor": services.monitor.running,
    }


# -----------------------------------------------------------------------------
# Session
# -----------------------------------------------------------------------------


@router.get("/auth/state", response_model=AuthState)
async def get_auth_state(services: Services) -> AuthState:
    return services.store.state


@router.post("/auth/sign-in", response_model=AuthState)
async def sign_in(body: SignInRequest, services: Services) -> AuthState:
    await services.store.sign_in(body.email, body.password)
    return services.store.state


@router.post("/auth/sign-up", status_code=status.HTTP_201_CREATED)
async def sign_up(body: SignUpRequest, services: Services) -> dict:
    await services.store.sign_up(body.email, body.password, body.full_name)
    return {"message": "Check your email to confirm your account"}


@router.post("/auth/sign-out", response_model=AuthState)
async def sign_out(services: Services) -> AuthState:
    await services.store.sign_out()
    return services.store.state


@router.post("/auth/check", response_model=AuthState)
async def check_auth(services: Services) -> AuthState:
    return await services.store.check_auth()


@router.post("/auth/oauth/{provider}")
async def sign_in_with_provider(provider: str, services: Services) -> dict:
    try:
        url = await services.store.sign_in_with_provider(provider)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return {"url": url}


@router.post("/activity")
async def record_activity(body: ActivityPing, services: Services) -> dict:
    """Report a user interaction to keep the session from idling out."""
    recorded = services.monitor.record_interaction(body.event_type)
    return {
        "recorded": recorded,
        "last_activity": services.storage.last_activity(),
    }


@router.patch("/profile/settings", response_model=Profile)
async def update_settings(body: UserSettings, services: Services) -> Profile:
    user = services.store.state.user
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not signed in",
        )
    return await services.provisioner.update_settings(user.id, body)


# -----------------------------------------------------------------------------
# Platform owner
# -----------------------------------------------------------------------------


@router.get("/platform/state")
async def get_platform_state(services: Services) -> dict:
    state = await services.bootstrap.current_state()
    return {"state": state.value}


@router.get("/platform/login-view", response_model=LoginViewResponse)
async def get_login_view(
    services: Services,
    email: Annotated[str, Query(min_length=3)],
) -> LoginViewResponse:
    return await services.bootstrap.login_view(email)


@router.post(
    "/platform/setup",
    response_model=Profile,
    status_code=status.HTTP_201_CREATED,
)
async def complete_setup(body: SetupRequest, services: Services) -> Profile:
    return await services.bootstrap.complete_setup(
        body.full_name, body.password, body.confirm_password
    )


@router.post("/platform/sign-in", response_model=Profile)
async def platform_sign_in(body: SignInRequest, services: Services) -> Profile:
    return await services.bootstrap.sign_in_owner(body.email, body.password)
