"""
ShipLabel Backend - Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── scratch_dir:      empty temporary scratch directory
    ├── test_settings:    Settings pointing at scratch_dir, fast bcrypt, plain PDFs
    ├── memory_store:     InMemoryArtifactStore
    ├── label_payload:    valid form fields (wire names)
    ├── build_app:        factory for apps with injected collaborators
    ├── test_app:         build_app() with defaults
    ├── test_client:      HTTPX AsyncClient on test_app, lifespan running
    └── logged_in_client: test_client after a successful /login
"""

import os
import tempfile

# Override settings for testing BEFORE any application imports
os.environ["SCRATCH_DIR"] = tempfile.mkdtemp(prefix="shiplabel_test_")
os.environ["PDF_COMPRESSION"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["SESSION_SECRET"] = "test-session-secret"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from shiplabel.config import Settings
from shiplabel.main import create_app
from shiplabel.services.artifact_store import FileArtifactStore, InMemoryArtifactStore
from shiplabel.services.document_service import LabelDocumentComposer

DEFAULT_USERNAME = "test"
DEFAULT_PASSWORD = "test123"


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def scratch_dir(tmp_path):
    path = tmp_path / "barcodes"
    path.mkdir()
    return path


@pytest.fixture
def test_settings(scratch_dir):
    return Settings(
        scratch_dir=str(scratch_dir),
        pdf_compression=False,
        bcrypt_rounds=4,
        session_secret="test-session-secret",
        default_username=DEFAULT_USERNAME,
        default_password=DEFAULT_PASSWORD,
        log_level="WARNING",
        generation_timeout=30.0,
    )


@pytest.fixture
def memory_store():
    return InMemoryArtifactStore()


@pytest.fixture
def plain_composer():
    """Composer with uncompressed content streams so text is visible in the bytes."""
    return LabelDocumentComposer(compress=False)


@pytest.fixture
def label_payload():
    return {
        "senderName": "Alice Sender",
        "senderAddress": "1 Origin Street\nSpringfield",
        "receiverName": "Bob Receiver",
        "receiverAddress": "99 Destination Road",
    }


@pytest.fixture
def build_app(test_settings, scratch_dir):
    """
    Factory for applications with selectively injected collaborators.

    The scratch store defaults to a FileArtifactStore on scratch_dir so the
    tests can inspect the directory directly.
    """
    def _build(**overrides):
        overrides.setdefault("app_settings", test_settings)
        overrides.setdefault("artifact_store", FileArtifactStore(str(scratch_dir)))
        return create_app(**overrides)
    return _build


async def login(client, username=DEFAULT_USERNAME, password=DEFAULT_PASSWORD):
    return await client.post("/login", data={"username": username, "password": password})


@pytest.fixture
def test_app(build_app):
    return build_app()


@pytest_asyncio.fixture
async def test_client(test_app):
    """
    HTTPX AsyncClient talking to test_app, with the lifespan running.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    async with test_app.router.lifespan_context(test_app):
        transport = ASGITransport(app=test_app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client


@pytest_asyncio.fixture
async def logged_in_client(test_client):
    response = await login(test_client)
    assert response.status_code == 303
    return test_client
