"""
Tests for delegated login: provider implementations and the OAuth routes.

Provider HTTP traffic goes through an ``httpx.MockTransport`` so no request
leaves the process.
"""
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from marketplace.core.config import AuthProvider
from marketplace.dependencies import get_identity_providers
from marketplace.services.identity_providers import (
    GoogleProvider,
    IdentityProviderError,
    OIDCProvider,
    build_identity_providers,
)

ISSUER = "https://login.example.mil"
DISCOVERY = {
    "authorization_endpoint": f"{ISSUER}/authorize",
    "token_endpoint": f"{ISSUER}/token",
    "userinfo_endpoint": f"{ISSUER}/userinfo",
}


class FakeIdentityServer:
    """Answers token, userinfo and discovery requests and records them."""

    def __init__(self, expires_in: int = 3600):
        self.expires_in = expires_in
        self.requests: list[httpx.Request] = []
        self.fail_refresh = False
        self.userinfo = {
            "sub": "google-123",
            "email": "pat.pilot@example.com",
            "given_name": "Pat",
            "family_name": "Pilot",
            "picture": "https://example.com/pat.png",
        }
        self.issued = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        if url.endswith("/.well-known/openid-configuration"):
            return httpx.Response(200, json=DISCOVERY)
        if url in (GoogleProvider.TOKEN_URL, DISCOVERY["token_endpoint"]):
            form = parse_qs(request.content.decode())
            if form["grant_type"] == ["refresh_token"] and self.fail_refresh:
                return httpx.Response(400, json={"error": "invalid_grant"})
            self.issued += 1
            return httpx.Response(200, json={
                "access_token": f"access-{self.issued}",
                "refresh_token": "refresh-1" if form["grant_type"] == ["authorization_code"] else None,
                "expires_in": self.expires_in,
            })
        if url in (GoogleProvider.USERINFO_URL, DISCOVERY["userinfo_endpoint"]):
            if request.headers.get("Authorization", "").startswith("Bearer access-"):
                return httpx.Response(200, json=self.userinfo)
            return httpx.Response(401)
        return httpx.Response(404)

    def grants(self) -> list[str]:
        return [
            parse_qs(r.content.decode())["grant_type"][0]
            for r in self.requests
            if r.method == "POST"
        ]

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def identity_server():
    return FakeIdentityServer()


@pytest.fixture
def google(identity_server):
    return GoogleProvider(
        "client-id", "client-secret", "http://testserver/api/callback/google",
        http_client=identity_server.client(),
    )


@pytest.fixture
def oidc(identity_server):
    return OIDCProvider(
        ISSUER, "client-id", "client-secret", "http://testserver/api/callback/oidc",
        http_client=identity_server.client(),
    )


class TestGoogleProvider:
    def test_begin_login_url(self, google):
        url = urlparse(google.begin_login("state-1"))
        params = parse_qs(url.query)

        assert f"{url.scheme}://{url.netloc}{url.path}" == GoogleProvider.AUTHORIZATION_URL
        assert params["state"] == ["state-1"]
        assert params["client_id"] == ["client-id"]
        assert params["access_type"] == ["offline"]
        assert params["scope"] == ["openid email profile"]

    def test_handle_callback_maps_claims(self, google, identity_server):
        login = google.handle_callback("code-1")

        assert login.claims.subject == "google-123"
        assert login.claims.email == "pat.pilot@example.com"
        assert login.claims.first_name == "Pat"
        assert login.tokens.access_token == "access-1"
        assert login.tokens.refresh_token == "refresh-1"
        assert login.tokens.expires_at is not None
        form = parse_qs(identity_server.requests[0].content.decode())
        assert form["code"] == ["code-1"]
        assert form["client_secret"] == ["client-secret"]

    def test_refresh_keeps_refresh_token_when_not_rotated(self, google):
        tokens = google.refresh("refresh-1")

        assert tokens.access_token == "access-1"
        assert tokens.refresh_token == "refresh-1"

    def test_refresh_failure(self, google, identity_server):
        identity_server.fail_refresh = True

        with pytest.raises(IdentityProviderError):
            google.refresh("refresh-1")

    def test_userinfo_without_subject(self, google, identity_server):
        identity_server.userinfo = {"email": "nobody@example.com"}

        with pytest.raises(IdentityProviderError):
            google.handle_callback("code-1")


class TestOIDCProvider:
    def test_discovery_is_loaded_once(self, oidc, identity_server):
        oidc.begin_login("s")
        oidc.begin_login("s")

        discovery_calls = [r for r in identity_server.requests if "well-known" in str(r.url)]
        assert len(discovery_calls) == 1

    def test_begin_login_uses_discovered_endpoint(self, oidc):
        url = oidc.begin_login("state-2")
        params = parse_qs(urlparse(url).query)

        assert url.startswith(DISCOVERY["authorization_endpoint"])
        assert "offline_access" in params["scope"][0]
        assert params["prompt"] == ["login consent"]

    def test_incomplete_discovery_document(self):
        def handler(request):
            return httpx.Response(200, json={"authorization_endpoint": "x"})

        provider = OIDCProvider(
            ISSUER, "id", "secret", "http://testserver/cb",
            http_client=httpx.Client(transport=httpx.MockTransport(handler)),
        )

        with pytest.raises(IdentityProviderError, match="token_endpoint"):
            provider.begin_login("s")

    def test_handle_callback(self, oidc):
        login = oidc.handle_callback("code-1")

        assert login.claims.subject == "google-123"


class TestBuildIdentityProviders:
    def test_only_complete_configurations_are_built(self, settings):
        configured = settings.model_copy(update={
            "GOOGLE_CLIENT_ID": "id",
            "GOOGLE_CLIENT_SECRET": "secret",
            "GOOGLE_REDIRECT_URI": "http://testserver/api/callback/google",
            "OIDC_ISSUER_URL": ISSUER,
            "OIDC_CLIENT_ID": "id",
        })

        providers = build_identity_providers(configured)

        assert list(providers) == [AuthProvider.GOOGLE]

    def test_none_configured(self, settings):
        assert build_identity_providers(settings) == {}


@pytest.fixture
def delegated_app(app, google):
    app.dependency_overrides[get_identity_providers] = lambda: {AuthProvider.GOOGLE: google}
    return app


def _start_login(client) -> str:
    response = client.get("/api/login/google", follow_redirects=False)
    assert response.status_code == 302
    return parse_qs(urlparse(response.headers["location"]).query)["state"][0]


class TestDelegatedLoginRoutes:
    """Tests for /api/login/{provider} and /api/callback/{provider}."""

    def test_full_login_creates_vendor_user(self, delegated_app, client):
        state = _start_login(client)

        response = client.get(
            f"/api/callback/google?code=code-1&state={state}", follow_redirects=False
        )

        assert response.status_code == 302
        assert response.headers["location"] == "/"
        me = client.get("/api/auth/user").json()
        assert me["email"] == "pat.pilot@example.com"
        assert me["role"] == "vendor"
        assert me["auth_provider"] == "google"
        assert me["profile_image_url"] == "https://example.com/pat.png"

    def test_repeat_login_reuses_user(self, delegated_app, client, new_client):
        state = _start_login(client)
        client.get(f"/api/callback/google?code=code-1&state={state}", follow_redirects=False)
        first = client.get("/api/auth/user").json()

        second_client = new_client()
        state = _start_login(second_client)
        second_client.get(f"/api/callback/google?code=code-2&state={state}", follow_redirects=False)

        assert second_client.get("/api/auth/user").json()["id"] == first["id"]

    def test_state_mismatch_redirects_to_login(self, delegated_app, client):
        _start_login(client)

        response = client.get(
            "/api/callback/google?code=code-1&state=forged", follow_redirects=False
        )

        assert response.status_code == 302
        assert response.headers["location"] == "/api/login"
        assert client.get("/api/auth/user").status_code == 401

    def test_provider_error_redirects_to_login(self, delegated_app, client):
        state = _start_login(client)

        response = client.get(
            f"/api/callback/google?error=access_denied&state={state}", follow_redirects=False
        )

        assert response.headers["location"] == "/api/login"

    def test_email_owned_by_local_account_is_rejected(self, delegated_app, client, new_client, register_as):
        register_as(new_client(), "pat.pilot@example.com")
        state = _start_login(client)

        response = client.get(
            f"/api/callback/google?code=code-1&state={state}", follow_redirects=False
        )

        assert response.headers["location"] == "/api/login"


class TestTokenRefresh:
    """Expired provider tokens are refreshed when the session is used."""

    def _sign_in(self, client, identity_server, expires_in):
        identity_server.expires_in = expires_in
        state = _start_login(client)
        client.get(f"/api/callback/google?code=code-1&state={state}", follow_redirects=False)

    def test_valid_token_is_not_refreshed(self, delegated_app, client, identity_server):
        self._sign_in(client, identity_server, expires_in=3600)

        assert client.get("/api/auth/user").status_code == 200
        assert identity_server.grants() == ["authorization_code"]

    def test_expired_token_is_refreshed(self, delegated_app, client, identity_server):
        self._sign_in(client, identity_server, expires_in=-60)

        assert client.get("/api/auth/user").status_code == 200
        assert identity_server.grants() == ["authorization_code", "refresh_token"]

    def test_failed_refresh_ends_session(self, delegated_app, client, identity_server):
        self._sign_in(client, identity_server, expires_in=-60)
        identity_server.fail_refresh = True

        assert client.get("/api/auth/user").status_code == 401
        identity_server.fail_refresh = False
        # The session is gone, so no second refresh is attempted
        assert client.get("/api/auth/user").status_code == 401
        assert identity_server.grants() == ["authorization_code", "refresh_token"]
