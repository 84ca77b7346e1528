"""
Shared FastAPI dependencies.

Everything stateful (storage, session store, AI service, identity providers,
file storage) is built once in the application lifespan and kept on
``app.state``; the functions here hand it to route handlers so tests can
swap any of it through ``app.dependency_overrides``.
"""
import logging
import time
from typing import Annotated, Callable

from fastapi import Depends, Request

from marketplace.core.config import AuthProvider, Settings
from marketplace.core.errors import NotAuthenticated, PermissionDenied
from marketplace.schemas.marketplace import User, UserRole
from marketplace.services.ai_service import AIService
from marketplace.services.file_storage import FileStorage
from marketplace.services.identity_providers import IdentityProvider, IdentityProviderError
from marketplace.services.session_store import SessionStore, read_session_id
from marketplace.storage.base import MarketplaceStorage

logger = logging.getLogger(__name__)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_storage(request: Request) -> MarketplaceStorage:
    return request.app.state.storage


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


def get_ai_service(request: Request) -> AIService:
    return request.app.state.ai_service


def get_identity_providers(request: Request) -> dict[AuthProvider, IdentityProvider]:
    return request.app.state.identity_providers


def get_file_storage(request: Request) -> FileStorage:
    return request.app.state.file_storage


SettingsDep = Annotated[Settings, Depends(get_settings)]
StorageDep = Annotated[MarketplaceStorage, Depends(get_storage)]
SessionStoreDep = Annotated[SessionStore, Depends(get_session_store)]
AIServiceDep = Annotated[AIService, Depends(get_ai_service)]
ProvidersDep = Annotated[dict[AuthProvider, IdentityProvider], Depends(get_identity_providers)]
FileStorageDep = Annotated[FileStorage, Depends(get_file_storage)]


def _refresh_provider_session(
    sid: str,
    session: dict,
    sessions: SessionStore,
    providers: dict[AuthProvider, IdentityProvider],
) -> None:
    """Renew expired provider tokens in place, or end the session."""
    refresh_token = session.get("refresh_token")
    try:
        provider = providers.get(AuthProvider(session.get("provider")))
    except ValueError:
        provider = None
    if not refresh_token or provider is None:
        sessions.delete(sid)
        raise NotAuthenticated()

    try:
        tokens = provider.refresh(refresh_token)
    except IdentityProviderError as e:
        logger.warning(f"Token refresh failed for session user {session.get('user_id')}: {e}")
        sessions.delete(sid)
        raise NotAuthenticated() from e

    session.update(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        expires_at=tokens.expires_at,
    )
    sessions.update(sid, session)


def get_optional_user(
    request: Request,
    settings: SettingsDep,
    storage: StorageDep,
    sessions: SessionStoreDep,
    providers: ProvidersDep,
) -> User | None:
    """The signed-in user, or None.

    Delegated-login sessions whose access token has expired are refreshed
    silently; when that fails the session is dropped.
    """
    sid = read_session_id(request.cookies.get(settings.SESSION_COOKIE_NAME), settings)
    if sid is None:
        return None
    session = sessions.get(sid)
    if session is None or "user_id" not in session:
        return None

    if session.get("provider", AuthProvider.LOCAL.value) != AuthProvider.LOCAL.value:
        expires_at = session.get("expires_at")
        if expires_at is not None and expires_at <= time.time():
            try:
                _refresh_provider_session(sid, session, sessions, providers)
            except NotAuthenticated:
                return None

    return storage.get_user(session["user_id"])


def get_current_user(user: Annotated[User | None, Depends(get_optional_user)]) -> User:
    if user is None:
        raise NotAuthenticated()
    return user


OptionalUserDep = Annotated[User | None, Depends(get_optional_user)]
CurrentUserDep = Annotated[User, Depends(get_current_user)]


def _role_label(role: UserRole) -> str:
    return role.value.replace("_", " ").capitalize()


def require_roles(*roles: UserRole) -> Callable[[User], User]:
    """Dependency factory: 403 unless the current user has one of ``roles``."""
    message = f"{_role_label(roles[0])} access required"

    def dependency(user: CurrentUserDep) -> User:
        if user.role not in roles:
            raise PermissionDenied(message)
        return user

    return dependency


VendorDep = Annotated[User, Depends(require_roles(UserRole.VENDOR))]
AdminDep = Annotated[User, Depends(require_roles(UserRole.ADMIN))]
ReviewerDep = Annotated[
    User, Depends(require_roles(UserRole.GOVERNMENT, UserRole.CONTRACTING_OFFICER))
]
GovernmentOrAdminDep = Annotated[
    User,
    Depends(require_roles(UserRole.GOVERNMENT, UserRole.CONTRACTING_OFFICER, UserRole.ADMIN)),
]
