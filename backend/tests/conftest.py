import os

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Use in-memory SQLite for tests by default, can be overridden via TEST_DATABASE_URL
TEST_DB_URL = os.getenv("TEST_DATABASE_URL", "sqlite+pysqlite:///:memory:")

# Ensure the app uses SQLite during imports (erp_files.main creates tables in non-prod).
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DATABASE_URL", TEST_DB_URL)
os.environ.setdefault("PRIVILEGED_ROLES", "gmd,chairman")

from erp_files.core.config import get_settings
from erp_files.main import create_app
from erp_files.db.base import Base
from erp_files.db.session import enable_sqlite_foreign_keys, get_db_session
from erp_files.models import Client, File


@pytest.fixture(scope="function")
def engine():
    # Important: in-memory SQLite needs StaticPool to keep the same DB across connections.
    kwargs = {"connect_args": {"check_same_thread": False}}
    if TEST_DB_URL.endswith(":memory:"):
        kwargs["poolclass"] = StaticPool
    eng = create_engine(TEST_DB_URL, **kwargs)
    if TEST_DB_URL.startswith("sqlite"):
        enable_sqlite_foreign_keys(eng)
    Base.metadata.create_all(bind=eng)
    try:
        yield eng
    finally:
        Base.metadata.drop_all(bind=eng)


@pytest.fixture(scope="function")
def db_session(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def upload_dir(tmp_path, monkeypatch):
    target = tmp_path / "uploads"
    monkeypatch.setattr(get_settings(), "upload_dir", str(target))
    return target


@pytest.fixture(scope="function")
def client(db_session, upload_dir):
    app = create_app()

    # Override the DB session dependency to use the test database
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db_session] = override_get_db
    return TestClient(app)


def make_token(user_id: int, role: str = "staff") -> str:
    settings = get_settings()
    return jwt.encode({"id": user_id, "role": role}, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def auth(user_id: int, role: str = "staff") -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, role)}"}


GMD = auth(1, "gmd")
CHAIRMAN = auth(2, "chairman")
USER_A = auth(10, "staff")
USER_B = auth(11, "accountant")


def add_client(db, name: str = "Acme", code: str = "AC1") -> Client:
    c = Client(name=name, code=code)
    db.add(c)
    db.commit()
    db.refresh(c)
    return c


def add_file(db, client_id: int, uploaded_by: int, path: str = "/nonexistent/file.bin", name: str = "doc") -> File:
    f = File(
        client_id=client_id,
        name=name,
        category="general",
        path=path,
        type="application/octet-stream",
        size=0,
        uploaded_by=uploaded_by,
    )
    db.add(f)
    db.commit()
    db.refresh(f)
    return f
