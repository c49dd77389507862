from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from scripts import seed_demo
from studygroups import services
from studygroups.config import Settings
from studygroups.database import create_engine_for
from studygroups.repositories import GroupRepository, UserRepository
from studygroups.storage import save_upload, validate_upload_filename


def test_health_and_request_id_header(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}
    assert "X-Request-ID" in r.headers

    echoed = client.get("/health", headers={"X-Request-ID": "abc123"})
    assert echoed.headers["X-Request-ID"] == "abc123"


def test_unexpected_errors_become_500(app, make_user, monkeypatch):
    _, headers = make_user()

    def _explode(self, user_id):
        raise RuntimeError("database went away")

    monkeypatch.setattr(services.GroupService, "list_for_member", _explode)
    client = TestClient(app, raise_server_exceptions=False)
    r = client.get("/groups/my-groups", headers=headers)
    assert r.status_code == 500
    assert r.json() == {"detail": "Server error"}


def test_settings_refuse_default_secret_outside_dev(monkeypatch):
    monkeypatch.delenv("JWT_SECRET", raising=False)
    monkeypatch.delenv("ALLOW_INSECURE_JWT", raising=False)
    with pytest.raises(RuntimeError):
        Settings(ENV="prod")
    assert Settings(ENV="prod", JWT_SECRET="s3cret").ENV == "prod"


def test_settings_reject_unknown_override():
    with pytest.raises(TypeError):
        Settings(NOT_A_SETTING=1)


def test_settings_read_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("JWT_EXPIRE_HOURS", "2")
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "files"))
    s = Settings()
    assert s.JWT_EXPIRE_HOURS == 2
    assert s.UPLOAD_DIR == tmp_path / "files"


@pytest.mark.parametrize("name", ["", "../secret.txt", "dir\\file.txt", "x" * 201])
def test_validate_upload_filename_rejects(name):
    with pytest.raises(ValueError):
        validate_upload_filename(name)


def test_save_upload_keeps_same_named_files_apart(tmp_path):
    first = save_upload(tmp_path / "up", "notes v1.txt", b"one")
    second = save_upload(tmp_path / "up", "notes v1.txt", b"two")
    assert first != second
    assert first.read_bytes() == b"one"
    assert second.read_bytes() == b"two"
    assert first.name.endswith("_notes_v1.txt")
    assert Path(first).parent == (tmp_path / "up").resolve()


def test_seed_script_reuses_user_and_groups(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("ENV", "dev")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'seed.db'}")
    seed_demo.main(email="demo@example.com", password="demo")
    seed_demo.main(email="demo@example.com", password="demo")
    assert "Using existing group 'Exam Prep'" in capsys.readouterr().out

    with Session(create_engine_for(Settings())) as session:
        user = UserRepository(session).get_by_email("demo@example.com")
        names = [g.name for g in GroupRepository(session).list_for_member(user.id)]
    assert names == ["Open Study Hall", "Exam Prep"]
