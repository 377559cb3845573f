import pytest
from fastapi.testclient import TestClient
from main import app
from app.api.dependencies import get_settings
from app.core.config import Settings
from support import MULTIPART_CONTENT_TYPE, build_multipart

@pytest.fixture
def upload_dir(tmp_path):
    return tmp_path / "uploads"

@pytest.fixture
def test_settings(upload_dir):
    """Settings pointing at a temporary upload directory with a small size cap."""
    return Settings(UPLOAD_DIR=upload_dir, MAX_FILE_SIZE=1024)

@pytest.fixture
def test_client(test_settings):
    """Create a test client for the FastAPI app using the test settings."""
    app.dependency_overrides[get_settings] = lambda: test_settings
    yield TestClient(app)
    app.dependency_overrides.clear()

@pytest.fixture
def post_upload(test_client):
    """Post the given parts to /upload as a multipart body."""
    def _post(parts, content_type=MULTIPART_CONTENT_TYPE):
        return test_client.post(
            "/upload",
            content=build_multipart(parts),
            headers={"Content-Type": content_type},
        )
    return _post

@pytest.fixture
def stored_files(upload_dir):
    """List the files currently in the upload directory."""
    def _list():
        if not upload_dir.exists():
            return []
        return sorted(p for p in upload_dir.iterdir() if p.is_file())
    return _list
