"""
Pytest configuration and shared fixtures for marketplace tests.

Provides:
- Settings isolated from the environment and any .env file
- An application client backed by in-memory storage
- A mock LLM so AI endpoints never reach the network
- Signed-in clients for each role
"""
from typing import Any, Callable
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from marketplace.core.config import Settings
from marketplace.core.database import create_db_engine, create_session_factory, init_db
from marketplace.dependencies import get_ai_service
from marketplace.main import create_app
from marketplace.schemas.marketplace import SolutionCreate, UserCreate, UserRole
from marketplace.services.ai_service import AIService
from marketplace.services.auth_service import hash_password
from marketplace.services.llm_client import LLMClient
from marketplace.storage import DatabaseStorage, MemoryStorage

PASSWORD = "Passw0rd!"


# =============================================================================
# Settings and storage
# =============================================================================

@pytest.fixture
def settings(tmp_path) -> Settings:
    """Local auth only, no fixtures, uploads in a temp dir."""
    return Settings(
        _env_file=None,
        STORAGE_BACKEND="memory",
        SEED_FIXTURES=False,
        SESSION_SECRET="test-secret",
        UPLOAD_DIR=str(tmp_path / "uploads"),
        OPENAI_API_KEY=None,
        DEFAULT_ADMIN_PASSWORD=None,
        GOOGLE_CLIENT_ID=None,
        OIDC_ISSUER_URL=None,
        S3_BUCKET=None,
        LOG_LEVEL="WARNING",
        LOG_FILE=None,
    )


@pytest.fixture(params=["memory", "database"])
def storage(request):
    """Each storage contract test runs against both backends."""
    if request.param == "memory":
        yield MemoryStorage()
        return
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield DatabaseStorage(create_session_factory(engine))
    engine.dispose()


@pytest.fixture
def vendor(storage):
    return storage.create_user(
        UserCreate(email="vendor@example.com", first_name="Val", last_name="Vendor")
    )


# =============================================================================
# Mock Fixtures
# =============================================================================

@pytest.fixture
def mock_llm():
    """LLM client stand-in; tests set ``complete.return_value`` or ``side_effect``."""
    mock = MagicMock(spec=LLMClient)
    mock.available = True
    mock.complete.return_value = "Mocked LLM response"
    return mock


@pytest.fixture
def ai_service(mock_llm, settings) -> AIService:
    return AIService(mock_llm, settings)


# =============================================================================
# FastAPI Test Client Fixtures
# =============================================================================

@pytest.fixture
def app(settings, ai_service):
    """Create FastAPI test application."""
    application = create_app(settings)
    application.dependency_overrides[get_ai_service] = lambda: ai_service
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """Anonymous client. Entering it runs the lifespan and builds app state."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def new_client(app, client) -> Callable[[], TestClient]:
    """Factory for extra clients sharing the running app and its storage."""
    def _make() -> TestClient:
        return TestClient(app)
    return _make


@pytest.fixture
def app_storage(app, client):
    return app.state.storage


def register(test_client: TestClient, email: str, role: str = "vendor", **extra: Any) -> dict:
    payload = {
        "email": email,
        "password": PASSWORD,
        "first_name": "Test",
        "last_name": "User",
        "role": role,
        **extra,
    }
    response = test_client.post("/api/register", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["user"]


def login(test_client: TestClient, email: str, password: str = PASSWORD) -> dict:
    response = test_client.post("/api/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["user"]


@pytest.fixture
def vendor_client(new_client):
    test_client = new_client()
    test_client.user = register(test_client, "vendor@example.com")
    return test_client


@pytest.fixture
def other_vendor_client(new_client):
    test_client = new_client()
    test_client.user = register(test_client, "rival@example.com")
    return test_client


@pytest.fixture
def gov_client(new_client):
    test_client = new_client()
    test_client.user = register(test_client, "officer@army.mil", role="government")
    return test_client


@pytest.fixture
def admin_client(new_client, app_storage):
    """Admins cannot self-register, so the account is created in storage."""
    app_storage.create_user(
        UserCreate(
            email="admin@gtead.mil",
            password_hash=hash_password(PASSWORD),
            first_name="Admin",
            last_name="User",
            role=UserRole.ADMIN,
        )
    )
    test_client = new_client()
    test_client.user = login(test_client, "admin@gtead.mil")
    return test_client


# =============================================================================
# Test Data Helpers
# =============================================================================

class SolutionFactory:
    """Factory for solution payloads and stored solutions."""

    @staticmethod
    def payload(title: str = "Drone X", **overrides: Any) -> dict:
        data = {
            "title": title,
            "description": "Small unmanned aircraft for route reconnaissance.",
            "trl": 6,
            "capability_areas": ["Intelligence"],
        }
        data.update(overrides)
        return data

    @staticmethod
    def create(storage, vendor_id: str, **overrides: Any):
        return storage.create_solution(
            SolutionCreate(**SolutionFactory.payload(**overrides), vendor_id=vendor_id)
        )


CHALLENGE_PAYLOAD = {
    "title": "xTechSearch Test",
    "description": "Open call for dual-use technology.",
    "type": "xtech",
    "prize_pool": 100000.0,
    "phases": [{"name": "Phase 1", "description": "White paper"}],
}


@pytest.fixture
def solution_factory():
    """Fixture providing SolutionFactory."""
    return SolutionFactory


@pytest.fixture
def register_as() -> Callable[..., dict]:
    """Register through the API and return the public user."""
    return register


@pytest.fixture
def login_as() -> Callable[..., dict]:
    return login


@pytest.fixture
def challenge_payload() -> dict:
    return dict(CHALLENGE_PAYLOAD)
