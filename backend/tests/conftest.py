from pathlib import Path
import os
import tempfile

import pytest

# Point the app at a throwaway SQLite file before `academy` is imported.
_TMP_DIR = Path(tempfile.mkdtemp(prefix="academy-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_DIR / 'test.db'}"
os.environ["ENV"] = "dev"
os.environ["ADMIN_USERNAME"] = "admin"
os.environ["ADMIN_PASSWORD"] = "admin123"
os.environ["ADMIN_EMAIL"] = "admin@example.com"
os.environ["SEED_DEMO_DATA"] = "false"

from fastapi.testclient import TestClient  # noqa: E402
from sqlmodel import Session  # noqa: E402

from academy.database import engine, create_db_and_tables, drop_db_and_tables  # noqa: E402
from academy.main import app  # noqa: E402


@pytest.fixture(autouse=True)
def reset_db():
    """Ensure fresh tables for every test."""
    drop_db_and_tables()
    create_db_and_tables()
    yield


@pytest.fixture
def session():
    with Session(engine) as s:
        yield s


@pytest.fixture
def client():
    """A TestClient with the app lifespan (table creation, admin) applied."""
    with TestClient(app) as c:
        yield c


@pytest.fixture
def admin_client(client):
    r = client.post('/auth/login', json={'username': 'admin', 'password': 'admin123'})
    assert r.status_code == 200
    return client
