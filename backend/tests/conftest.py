import os
import tempfile

# Must be set before any notesync import: settings are read at import time.
os.environ["TESTING"] = "1"
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="notesync-uploads-"))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import notesync.database as _db_mod  # noqa: E402
import notesync.models  # noqa: E402,F401 – registers tables on Base
from notesync.crud import crud  # noqa: E402
from notesync.database import Base  # noqa: E402
from notesync.database import get_db  # noqa: E402
from notesync.database import make_engine  # noqa: E402
from notesync.database import make_sessionmaker  # noqa: E402
from notesync.routers.auth import issue_access_token  # noqa: E402

# Create a test database - using in-memory SQLite for tests
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

test_engine = make_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,  # Use StaticPool for in-memory database
)

TestingSessionLocal = make_sessionmaker(test_engine)

# Code that opens its own sessions (health check) uses the test database too
_db_mod.default_session_factory = TestingSessionLocal

# Import app after all engine setup is in place
from notesync.main import app  # noqa: E402


@pytest.fixture
def db_session():
    """
    Creates a fresh database for each test, then tears it down after the test is done.
    """
    Base.metadata.create_all(bind=test_engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def client(db_session):
    """
    Create a FastAPI TestClient with the test database dependency.
    """

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    client = TestClient(app)
    yield client

    app.dependency_overrides = {}


# ---------------------------------------------------------------------------
# Users & tokens
# ---------------------------------------------------------------------------


@pytest.fixture
def user(db_session):
    return crud.create_user(db_session, username="alice", email="alice@example.com", password="alice-password")


@pytest.fixture
def other_user(db_session):
    return crud.create_user(db_session, username="bob", email="bob@example.com", password="bob-password")


@pytest.fixture
def token(user):
    return issue_access_token(user.id, user.email)


@pytest.fixture
def other_token(other_user):
    return issue_access_token(other_user.id, other_user.email)


@pytest.fixture
def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def other_auth_headers(other_token):
    return {"Authorization": f"Bearer {other_token}"}


# ---------------------------------------------------------------------------
# Sample content
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_category(db_session, user):
    return crud.create_category(db_session, owner_id=user.id, name="Work", color="#3b82f6", icon="briefcase")


@pytest.fixture
def sample_note(db_session, user, sample_category):
    return crud.create_note(
        db_session,
        owner_id=user.id,
        title="Standup",
        content="<p>Discuss the release</p>",
        category_id=sample_category.id,
        tags=["meeting"],
    )
