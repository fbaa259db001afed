import pytest
from fastapi.testclient import TestClient

from app.back.core.config import Settings
from app.back.main import create_app
from app.back.services.catalog_service import CatalogRepository
from app.back.services.file_service import FileStore
from app.back.services.lifecycle_service import LifecycleService
from app.back.services.session_service import SessionRepository


@pytest.fixture
def settings(tmp_path):
    return Settings(
        UPLOAD_DIR=tmp_path / "uploads",
        SECRET_KEY="test-secret",
        ADMIN_USERNAME="admin",
        ADMIN_PASSWORD="admin123",
        TEMP_MAX_AGE_SECONDS=3600,
        DEBUG=False,
    )


@pytest.fixture
def file_store(settings):
    store = FileStore(settings.UPLOAD_DIR, settings.PUBLIC_UPLOAD_PREFIX)
    store.ensure_directories()
    return store


@pytest.fixture
def catalog(file_store):
    return CatalogRepository(file_store)


@pytest.fixture
def sessions():
    return SessionRepository()


@pytest.fixture
def lifecycle(settings, file_store, catalog, sessions):
    return LifecycleService(settings, file_store, catalog, sessions)


@pytest.fixture
def client(settings):
    app = create_app(settings)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def admin_headers(client):
    resp = client.post("/api/auth/login", json={"username": "admin", "password": "admin123"})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['token']}"}
