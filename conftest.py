import os
import uuid

import pytest
from fastapi.testclient import TestClient

# --- Alembic Imports ---
from alembic.config import Config
from alembic import command
# --- End Alembic Imports ---

# Import app and DB dependency function first
from main import app, get_db

# Import database components needed for setup
from database import Database
from settings import Settings, get_settings

TEST_DATABASE_URL = "sqlite:///./jobtrail-test.db"

test_database = Database(TEST_DATABASE_URL)


def _remove_db_files(db_path: str) -> None:
    # WAL mode leaves -wal/-shm siblings next to the main file
    for path in (db_path, f"{db_path}-wal", f"{db_path}-shm"):
        if os.path.exists(path):
            try:
                os.unlink(path)
                print(f"Removed test database file: {path}")
            except OSError as e:
                print(f"Error removing test database file {path}: {e}")


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create the test database from models and stamp with Alembic head."""
    db_path = TEST_DATABASE_URL.split("///")[-1]
    _remove_db_files(db_path)

    print(f"Creating test database tables from models at {db_path}")
    test_database.create_all()

    print("Stamping database with Alembic head revision")
    alembic_cfg = Config("alembic.ini")
    alembic_cfg.set_main_option("sqlalchemy.url", TEST_DATABASE_URL)
    command.stamp(alembic_cfg, "head")

    # Requests that bypass the get_db override still land in the test database
    original_database = app.state.database
    app.state.database = test_database

    yield  # Tests run here

    app.state.database = original_database
    test_database.dispose()
    _remove_db_files(db_path)


@pytest.fixture(scope="function")
def db_session(setup_test_database):
    """Yields a SQLAlchemy session directly from the test database."""
    session = test_database.session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def user_id() -> str:
    """A fresh owner per test keeps tests independent inside the shared database."""
    return f"user-{uuid.uuid4().hex[:12]}"


@pytest.fixture(scope="function")
def override_get_db():
    """Override the get_db dependency to use our test database.

    This creates a new session for each API call, allowing proper
    transaction handling within FastAPI endpoints.
    """

    def _override_get_db():
        db = test_database.session()
        try:
            yield db
        finally:
            db.close()

    original = app.dependency_overrides.get(get_db)
    app.dependency_overrides[get_db] = _override_get_db

    yield

    if original:
        app.dependency_overrides[get_db] = original
    else:
        del app.dependency_overrides[get_db]


@pytest.fixture(scope="function")
def override_settings():
    """Returns a setter that swaps the app's Settings for the rest of the test."""
    original = app.dependency_overrides.get(get_settings)

    def _override(**values) -> Settings:
        settings = Settings(**values)
        app.dependency_overrides[get_settings] = lambda: settings
        return settings

    yield _override

    if original:
        app.dependency_overrides[get_settings] = original
    else:
        app.dependency_overrides.pop(get_settings, None)


@pytest.fixture(scope="function")
def test_client(override_get_db, user_id):
    """Provides a test client configured with our test database, acting as ``user_id``."""
    client = TestClient(app)
    client.headers.update({"X-User-Id": user_id})
    return client
