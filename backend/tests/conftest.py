"""
Configuration partagée pour tous les tests.
Aucune connexion réelle : base SQLite en mémoire ou session mockée, hébergeur média factice.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENCRYPTION_SECRET", "test-secret")
os.environ.setdefault("UPLOAD_SWEEP_ENABLED", "false")

from pathlib import Path  # noqa: E402
from unittest.mock import MagicMock  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from student_records.config import settings  # noqa: E402
from student_records.database import Base, get_db  # noqa: E402
from student_records.errors import UpstreamError  # noqa: E402
from student_records.main import app  # noqa: E402
from student_records.services.cipher import FieldCipher, get_cipher  # noqa: E402
from student_records.services.media_host import UploadedAsset, get_media_host  # noqa: E402


class FakeMediaHost:
    """Hébergeur média en mémoire : enregistre les envois et suppressions."""

    def __init__(self, fail_upload=False):
        self.fail_upload = fail_upload
        self.uploads = []
        self.deleted = []

    def upload(self, path: Path, content_type: str) -> UploadedAsset:
        if self.fail_upload:
            raise UpstreamError("Échec de l'envoi de l'image.", detail="timeout")
        assert path.exists()
        asset_id = f"data_entry_app/{path.name}"
        self.uploads.append((asset_id, content_type))
        return UploadedAsset(url=f"https://media.test/{asset_id}", asset_id=asset_id)

    def delete(self, asset_id: str) -> None:
        self.deleted.append(asset_id)


@pytest.fixture
def cipher():
    return FieldCipher.from_secret("test-secret")


@pytest.fixture
def media_host():
    return FakeMediaHost()


@pytest.fixture
def failing_media_host():
    return FakeMediaHost(fail_upload=True)


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    """Dossier temporaire isolé pour chaque test."""
    path = tmp_path / "uploads"
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(path))
    return path


@pytest.fixture
def db_session():
    """Session sur une base SQLite en mémoire, partagée entre threads (TestClient)."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def client(cipher, media_host):
    """Client HTTP de test avec la BDD mockée."""
    mock_db = MagicMock()
    app.dependency_overrides[get_db] = lambda: mock_db
    app.dependency_overrides[get_cipher] = lambda: cipher
    app.dependency_overrides[get_media_host] = lambda: media_host
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def api(db_session, cipher, media_host):
    """Client HTTP de test branché sur la base SQLite en mémoire."""
    app.dependency_overrides[get_db] = lambda: db_session
    app.dependency_overrides[get_cipher] = lambda: cipher
    app.dependency_overrides[get_media_host] = lambda: media_host
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
