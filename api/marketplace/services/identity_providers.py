"""
Delegated login through OAuth2 / OpenID Connect identity providers.

Each provider implements the same three steps: build the authorization URL,
exchange the callback code for tokens and claims, and refresh an expired
access token. Which providers exist is decided once at startup from the
settings.
"""
import logging
import time
from abc import ABC, abstractmethod
from typing import Any
from urllib.parse import urlencode

import httpx

from marketplace.core.config import AuthProvider, Settings
from marketplace.schemas.auth import ProviderClaims, ProviderLogin, ProviderTokens

logger = logging.getLogger(__name__)


class IdentityProviderError(Exception):
    """The provider rejected a request or returned something unusable."""


class IdentityProvider(ABC):
    name: AuthProvider
    scopes = ["openid", "email", "profile"]

    def __init__(self, client_id: str, client_secret: str, redirect_uri: str,
                 http_client: httpx.Client | None = None):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.http = http_client or httpx.Client(timeout=10.0)

    @abstractmethod
    def authorization_endpoint(self) -> str: ...

    @abstractmethod
    def token_endpoint(self) -> str: ...

    @abstractmethod
    def userinfo_endpoint(self) -> str: ...

    def extra_authorize_params(self) -> dict[str, str]:
        return {}

    def begin_login(self, state: str) -> str:
        """URL the browser is redirected to."""
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": " ".join(self.scopes),
            "state": state,
            **self.extra_authorize_params(),
        }
        return f"{self.authorization_endpoint()}?{urlencode(params)}"

    def handle_callback(self, code: str) -> ProviderLogin:
        tokens = self._token_request({
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
        })
        claims = self._fetch_claims(tokens.access_token)
        return ProviderLogin(claims=claims, tokens=tokens)

    def refresh(self, refresh_token: str) -> ProviderTokens:
        tokens = self._token_request({
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        })
        if tokens.refresh_token is None:
            # Providers may omit the refresh token when it is not rotated
            tokens.refresh_token = refresh_token
        return tokens

    def _token_request(self, form: dict[str, str]) -> ProviderTokens:
        form = {**form, "client_id": self.client_id, "client_secret": self.client_secret}
        try:
            response = self.http.post(self.token_endpoint(), data=form)
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise IdentityProviderError(f"{self.name.value} token request failed: {e}") from e

        if "access_token" not in body:
            raise IdentityProviderError(f"{self.name.value} token response has no access_token")
        expires_in = body.get("expires_in")
        return ProviderTokens(
            access_token=body["access_token"],
            refresh_token=body.get("refresh_token"),
            id_token=body.get("id_token"),
            expires_at=time.time() + float(expires_in) if expires_in is not None else None,
        )

    def _fetch_claims(self, access_token: str) -> ProviderClaims:
        try:
            response = self.http.get(
                self.userinfo_endpoint(),
                headers={"Authorization": f"Bearer {access_token}"},
            )
            response.raise_for_status()
            info = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise IdentityProviderError(f"{self.name.value} userinfo request failed: {e}") from e
        return self.map_claims(info)

    def map_claims(self, info: dict[str, Any]) -> ProviderClaims:
        if not info.get("sub"):
            raise IdentityProviderError(f"{self.name.value} userinfo has no subject")
        return ProviderClaims(
            subject=str(info["sub"]),
            email=info.get("email"),
            first_name=info.get("given_name") or info.get("first_name"),
            last_name=info.get("family_name") or info.get("last_name"),
            picture=info.get("picture") or info.get("profile_image_url"),
        )


class OIDCProvider(IdentityProvider):
    """Any OpenID Connect issuer; endpoints come from its discovery document."""

    name = AuthProvider.OIDC
    scopes = ["openid", "email", "profile", "offline_access"]
    REQUIRED_ENDPOINTS = ("authorization_endpoint", "token_endpoint", "userinfo_endpoint")

    def __init__(self, issuer_url: str, client_id: str, client_secret: str, redirect_uri: str,
                 http_client: httpx.Client | None = None):
        super().__init__(client_id, client_secret, redirect_uri, http_client)
        self.issuer_url = issuer_url.rstrip("/")
        self._discovery: dict[str, Any] | None = None

    def discovery(self) -> dict[str, Any]:
        if self._discovery is None:
            url = f"{self.issuer_url}/.well-known/openid-configuration"
            try:
                response = self.http.get(url)
                response.raise_for_status()
                document = response.json()
            except (httpx.HTTPError, ValueError) as e:
                raise IdentityProviderError(f"OIDC discovery failed for {self.issuer_url}: {e}") from e
            missing = [key for key in self.REQUIRED_ENDPOINTS if key not in document]
            if missing:
                raise IdentityProviderError(f"OIDC discovery document is missing {', '.join(missing)}")
            self._discovery = document
            logger.info(f"Loaded OIDC configuration from {url}")
        return self._discovery

    def authorization_endpoint(self) -> str:
        return self.discovery()["authorization_endpoint"]

    def token_endpoint(self) -> str:
        return self.discovery()["token_endpoint"]

    def userinfo_endpoint(self) -> str:
        return self.discovery()["userinfo_endpoint"]

    def extra_authorize_params(self) -> dict[str, str]:
        return {"prompt": "login consent"}


class GoogleProvider(IdentityProvider):
    name = AuthProvider.GOOGLE

    AUTHORIZATION_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"

    def authorization_endpoint(self) -> str:
        return self.AUTHORIZATION_URL

    def token_endpoint(self) -> str:
        return self.TOKEN_URL

    def userinfo_endpoint(self) -> str:
        return self.USERINFO_URL

    def extra_authorize_params(self) -> dict[str, str]:
        # Needed for Google to issue a refresh token
        return {"access_type": "offline", "prompt": "consent"}


def build_identity_providers(
    settings: Settings, http_client: httpx.Client | None = None
) -> dict[AuthProvider, IdentityProvider]:
    """Instantiate every delegated provider whose settings are complete."""
    providers: dict[AuthProvider, IdentityProvider] = {}
    enabled = settings.enabled_auth_providers()
    if AuthProvider.GOOGLE in enabled:
        providers[AuthProvider.GOOGLE] = GoogleProvider(
            settings.GOOGLE_CLIENT_ID,
            settings.GOOGLE_CLIENT_SECRET,
            settings.GOOGLE_REDIRECT_URI,
            http_client,
        )
    if AuthProvider.OIDC in enabled:
        providers[AuthProvider.OIDC] = OIDCProvider(
            settings.OIDC_ISSUER_URL,
            settings.OIDC_CLIENT_ID,
            settings.OIDC_CLIENT_SECRET,
            settings.OIDC_REDIRECT_URI,
            http_client,
        )
    return providers
