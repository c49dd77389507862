import os
import shutil
import tempfile
from pathlib import Path

import pytest

# Point the module-level app at a scratch database before it is imported.
_SCRATCH = Path(tempfile.mkdtemp(prefix="studygroups-tests-"))
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_SCRATCH / 'default.db'}")
os.environ.setdefault("UPLOAD_DIR", str(_SCRATCH / "uploads"))

from fastapi.testclient import TestClient  # noqa: E402

from studygroups.config import Settings  # noqa: E402
from studygroups.main import create_app  # noqa: E402

TEST_SECRET = "test-secret-key"


@pytest.fixture(scope="session", autouse=True)
def reset_scratch():
    """Remove the scratch database directory once the session ends."""
    yield
    shutil.rmtree(_SCRATCH, ignore_errors=True)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        DATABASE_URL=f"sqlite:///{tmp_path / 'test.db'}",
        UPLOAD_DIR=tmp_path / "uploads",
        JWT_SECRET=TEST_SECRET,
        MAX_UPLOAD_BYTES=1024,
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def make_user(client):
    """Sign up a user and return `(user_id, auth_headers)`."""
    counter = {"n": 0}

    def _make(name=None, email=None, password="password123", department=None):
        counter["n"] += 1
        name = name or f"User {counter['n']}"
        email = email or f"user{counter['n']}@example.com"
        body = {"name": name, "email": email, "password": password}
        if department is not None:
            body["department"] = department
        r = client.post("/auth/signup", json=body)
        assert r.status_code == 201, r.text
        data = r.json()
        return data["user"]["id"], {"Authorization": f"Bearer {data['token']}"}

    return _make


@pytest.fixture
def make_group(client):
    """Create a group owned by the user behind `headers` and return its id."""
    def _make(headers, name="Algorithms", subject="Computer Science", is_public=True, description=None):
        body = {"name": name, "subject": subject, "is_public": is_public}
        if description is not None:
            body["description"] = description
        r = client.post("/groups", json=body, headers=headers)
        assert r.status_code == 201, r.text
        return r.json()["id"]

    return _make
