"""
Authentication endpoints: local registration and login, delegated login
through the configured identity providers, logout and the current user.
"""
import logging
import secrets
from typing import Any

from fastapi import APIRouter, HTTPException, Request, Response, status
from fastapi.responses import RedirectResponse

from marketplace.core.config import AuthProvider, Settings
from marketplace.core.errors import ValidationFailed
from marketplace.dependencies import (
    CurrentUserDep,
    ProvidersDep,
    SessionStoreDep,
    SettingsDep,
    StorageDep,
)
from marketplace.schemas.auth import (
    AuthProvidersResponse,
    AuthResponse,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
)
from marketplace.schemas.marketplace import PublicUser
from marketplace.services.auth_service import authenticate, register_user, upsert_provider_user
from marketplace.services.identity_providers import IdentityProvider, IdentityProviderError
from marketplace.services.session_store import (
    SessionStore,
    read_session_id,
    read_state,
    sign_session_id,
    sign_state,
)

logger = logging.getLogger(__name__)
router = APIRouter()

STATE_COOKIE_NAME = "marketplace_oauth_state"
STATE_TTL_SECONDS = 600


def _start_session(
    response: Response,
    request: Request,
    sessions: SessionStore,
    settings: Settings,
    data: dict[str, Any],
) -> None:
    """Create a session and point the cookie at it, ending any previous one."""
    previous = read_session_id(request.cookies.get(settings.SESSION_COOKIE_NAME), settings)
    if previous:
        sessions.delete(previous)
    sid = sessions.create(data)
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=sign_session_id(sid, settings),
        max_age=settings.SESSION_TTL_SECONDS,
        httponly=True,
        samesite="lax",
        secure=settings.SESSION_COOKIE_SECURE,
    )


def _require_local_auth(settings: Settings) -> None:
    if AuthProvider.LOCAL not in settings.enabled_auth_providers():
        raise HTTPException(status_code=404, detail="Local authentication is disabled")


def _get_provider(name: str, providers: dict[AuthProvider, IdentityProvider]) -> IdentityProvider:
    try:
        provider = providers.get(AuthProvider(name))
    except ValueError:
        provider = None
    if provider is None:
        raise HTTPException(status_code=404, detail=f"Login provider '{name}' is not enabled")
    return provider


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    payload: RegisterRequest,
    request: Request,
    response: Response,
    settings: SettingsDep,
    storage: StorageDep,
    sessions: SessionStoreDep,
):
    """Create a local account and sign it in."""
    _require_local_auth(settings)
    user = register_user(storage, payload, settings)
    _start_session(response, request, sessions, settings, {
        "user_id": user.id,
        "provider": AuthProvider.LOCAL.value,
    })
    return AuthResponse(user=user.to_public())


@router.post("/login", response_model=AuthResponse)
async def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    settings: SettingsDep,
    storage: StorageDep,
    sessions: SessionStoreDep,
):
    _require_local_auth(settings)
    user = authenticate(storage, payload.email, payload.password)
    _start_session(response, request, sessions, settings, {
        "user_id": user.id,
        "provider": AuthProvider.LOCAL.value,
    })
    logger.info(f"User {user.id} logged in")
    return AuthResponse(user=user.to_public())


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    response: Response,
    settings: SettingsDep,
    sessions: SessionStoreDep,
):
    sid = read_session_id(request.cookies.get(settings.SESSION_COOKIE_NAME), settings)
    if sid:
        sessions.delete(sid)
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return MessageResponse(message="Logged out successfully")


@router.get("/auth/user", response_model=PublicUser)
async def current_user(user: CurrentUserDep):
    return user.to_public()


@router.get("/auth/providers", response_model=AuthProvidersResponse)
async def auth_providers(settings: SettingsDep):
    """Enabled sign-in methods and where each one starts."""
    providers = settings.enabled_auth_providers()
    login_urls = {}
    for provider in providers:
        if provider == AuthProvider.LOCAL:
            login_urls[provider.value] = f"{settings.API_PREFIX}/login"
        else:
            login_urls[provider.value] = f"{settings.API_PREFIX}/login/{provider.value}"
    return AuthProvidersResponse(providers=providers, login_urls=login_urls)


@router.get("/login")
def login_redirect(settings: SettingsDep, providers: ProvidersDep):
    """Browser entry point: go to the first delegated provider."""
    for provider in settings.enabled_auth_providers():
        if provider in providers:
            return RedirectResponse(f"{settings.API_PREFIX}/login/{provider.value}", status_code=302)
    raise HTTPException(status_code=404, detail="No delegated login provider is configured")


@router.get("/login/{provider_name}")
def provider_login(provider_name: str, settings: SettingsDep, providers: ProvidersDep):
    provider = _get_provider(provider_name, providers)
    state = secrets.token_urlsafe(16)
    try:
        url = provider.begin_login(state)
    except IdentityProviderError as e:
        logger.error(f"Could not start {provider_name} login: {e}")
        raise HTTPException(status_code=502, detail="Login provider is unavailable") from e

    redirect = RedirectResponse(url, status_code=302)
    redirect.set_cookie(
        key=STATE_COOKIE_NAME,
        value=sign_state(state, settings, STATE_TTL_SECONDS),
        max_age=STATE_TTL_SECONDS,
        httponly=True,
        samesite="lax",
        secure=settings.SESSION_COOKIE_SECURE,
    )
    return redirect


@router.get("/callback/{provider_name}")
def provider_callback(
    provider_name: str,
    request: Request,
    settings: SettingsDep,
    storage: StorageDep,
    sessions: SessionStoreDep,
    providers: ProvidersDep,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
):
    """Finish delegated login. Any failure sends the browser back to login."""
    failure = RedirectResponse(f"{settings.API_PREFIX}/login", status_code=302)
    failure.delete_cookie(STATE_COOKIE_NAME)

    provider = _get_provider(provider_name, providers)
    expected_state = read_state(request.cookies.get(STATE_COOKIE_NAME), settings)
    if error or not code or not state or expected_state is None or not secrets.compare_digest(state, expected_state):
        logger.warning(f"Rejected {provider_name} callback (error={error!r}, state valid={expected_state == state})")
        return failure

    try:
        login = provider.handle_callback(code)
        user = upsert_provider_user(storage, provider.name, login)
    except (IdentityProviderError, ValidationFailed) as e:
        logger.warning(f"{provider_name} login failed: {e}")
        return failure

    success = RedirectResponse("/", status_code=302)
    success.delete_cookie(STATE_COOKIE_NAME)
    _start_session(success, request, sessions, settings, {
        "user_id": user.id,
        "provider": provider.name.value,
        "access_token": login.tokens.access_token,
        "refresh_token": login.tokens.refresh_token,
        "expires_at": login.tokens.expires_at,
    })
    logger.info(f"User {user.id} logged in with {provider_name}")
    return success
