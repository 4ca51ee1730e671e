"""
Pytest configuration and fixtures.

Every test gets a fresh in-memory Firestore, geocoding switched off and the
heuristic as the only validation tier (no network).
"""
import os

os.environ["USE_MOCK_DB"] = "true"
os.environ["MOCK_DB_PATH"] = ""
os.environ["GEOCODING_PROVIDER"] = "none"
os.environ["AI_ENABLED"] = "false"
os.environ["GEMINI_API_KEY"] = ""
os.environ["JWT_SECRET"] = "test-secret"
os.environ["INTERNAL_JWT_SECRET"] = "internal-test-secret"
os.environ["AI_BACKEND_URL"] = "http://ai-backend.test"

import pytest
from fastapi.testclient import TestClient

from app.config import firebase
from app.config.mock_firestore import MockFirestore
from app.services.geocoding import reset_geocoding_provider
from app.services.issue_store import IssueStore
from app.services.status_workflow import Actor, IssueStatus, StatusWorkflowEngine
from app.services.validation import reset_validation_orchestrator
from app.utils.security import create_access_token

# Smallest valid PNG header plus padding, comfortably above the 100 byte image check
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 256


@pytest.fixture(autouse=True)
def mock_db(monkeypatch):
    db = MockFirestore()
    monkeypatch.setattr(firebase, "db", db)
    reset_validation_orchestrator()
    reset_geocoding_provider()
    yield db
    reset_validation_orchestrator()
    reset_geocoding_provider()


@pytest.fixture
def store(mock_db):
    return IssueStore(mock_db)


@pytest.fixture
def client():
    from app.main import app
    return TestClient(app)


@pytest.fixture
def png_bytes():
    return PNG_BYTES


def auth_header(user_id: str, role: str = "citizen") -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id, role)}"}


@pytest.fixture
def citizen_headers():
    return auth_header("citizen-1")


@pytest.fixture
def officer_headers():
    return auth_header("officer-1", "officer")


@pytest.fixture
def make_issue(store):
    """Insert an issue directly in the given status."""

    def _make(
        status: str = IssueStatus.LIVE.value,
        reporter_id: str = "citizen-1",
        category: str = "roads",
        lat: float = 12.9716,
        lng: float = 77.5946,
        title: str = "Pothole on 5th",
        description: str = "large pothole causing traffic hazard",
        **extra
    ) -> dict:
        data = {
            "reporter_id": reporter_id,
            "title": title,
            "description": description,
            "category": category,
            "image_url": "data:image/png;base64,iVBORw0KGgo=",
            "location": {"lat": lat, "lng": lng, "coordinates": [lng, lat]},
            "status": status,
            "severity": "medium",
            "upvotes": 0,
            "validation": None,
            "status_history": [
                StatusWorkflowEngine.create_status_history_entry(None, IssueStatus.PENDING, Actor.REPORTER, reporter_id)
            ],
            "reopen_count": 0,
        }
        data.update(extra)
        return store.create(data)

    return _make


@pytest.fixture
def headers_for():
    """Bearer headers for an arbitrary user."""
    return auth_header
