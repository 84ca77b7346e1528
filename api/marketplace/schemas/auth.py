"""
Request and response models for authentication routes.
"""
from pydantic import BaseModel

from marketplace.core.config import AuthProvider
from marketplace.schemas.marketplace import PublicUser


class RegisterRequest(BaseModel):
    """Registration form.

    Fields are optional here so that missing values get the registration
    rule messages (400) instead of a schema error.
    """

    email: str | None = None
    password: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    role: str | None = None
    organization: str | None = None


class LoginRequest(BaseModel):
    email: str
    password: str


class AuthResponse(BaseModel):
    user: PublicUser


class MessageResponse(BaseModel):
    message: str


class AuthProvidersResponse(BaseModel):
    providers: list[AuthProvider]
    login_urls: dict[str, str]


class ProviderTokens(BaseModel):
    """Tokens returned by an identity provider's token endpoint."""

    access_token: str
    refresh_token: str | None = None
    id_token: str | None = None
    expires_at: float | None = None  # epoch seconds


class ProviderClaims(BaseModel):
    """Identity claims mapped onto the user record."""

    subject: str
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    picture: str | None = None


class ProviderLogin(BaseModel):
    claims: ProviderClaims
    tokens: ProviderTokens
