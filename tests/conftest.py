import io

import pytest
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import config
import models  # noqa: F401  registers tables on Base
from database import Base
from main import app
from storage import MemoryStorage, SqlStorage, get_storage


# --- Test Database Engine Fixture (Session Scope) ---
@pytest.fixture(scope="session")
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    yield sessionmaker(bind=db_engine, autocommit=False, autoflush=False)

    # Storage commits, so tables are emptied instead of rolled back
    with db_engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture
def sql_storage(session_factory):
    db = session_factory()
    yield SqlStorage(db)
    db.close()


@pytest.fixture
def memory_storage():
    return MemoryStorage()


@pytest.fixture(params=["sql", "memory"])
def storage(request):
    """Runs a test against both storage backends."""
    return request.getfixturevalue(f"{request.param}_storage")


@pytest.fixture
def media_dir(tmp_path, monkeypatch):
    path = tmp_path / "media"
    monkeypatch.setattr(config, "MEDIA_DIR", str(path))
    return path


@pytest.fixture
def client(session_factory, media_dir):
    def _override_get_storage():
        db = session_factory()
        try:
            yield SqlStorage(db)
        finally:
            db.close()

    app.dependency_overrides[get_storage] = _override_get_storage
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_png(size=(8, 8)):
    buffer = io.BytesIO()
    Image.new("RGB", size, "white").save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def png_bytes():
    return make_png()


@pytest.fixture
def create_user(client):
    """Factory creating a user through the API and returning its JSON."""
    def _create_user(email="rider@example.com", name="Asha", vehicle_type="E-Rickshaw"):
        response = client.post("/api/user", json={"name": name, "vehicleType": vehicle_type, "email": email})
        assert response.status_code == 201, response.text
        return response.json()

    return _create_user
