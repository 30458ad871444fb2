import os
from typing import List, Optional

# Keep the application's own engine off the filesystem during tests.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ADMIN_USERNAME", "admin")
os.environ.setdefault("ADMIN_PASSWORD", "admin123")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from clinicalgoto import schemas  # noqa: E402
from clinicalgoto.database import Base, get_db  # noqa: E402
from clinicalgoto.errors import UpstreamError  # noqa: E402
from clinicalgoto.main import app  # noqa: E402
from clinicalgoto.notifications import Notifier, get_notifier  # noqa: E402
from clinicalgoto.store import RegistrantStore  # noqa: E402
from clinicalgoto.trials import TrialSearchResult, get_trial_search  # noqa: E402

# In-memory SQLite database shared across connections via StaticPool.
TEST_DATABASE_URL = "sqlite://"

engine_test = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine_test,
)


class FakeTrialSearch:
    """Stands in for the ClinicalTrials.gov client."""

    def __init__(self, studies: Optional[List[schemas.TrialSummary]] = None, fail: bool = False):
        self.studies = studies if studies is not None else []
        self.fail = fail
        self.calls = []

    def search(self, location, condition=None, page_size=10):
        self.calls.append({"location": location, "condition": condition, "page_size": page_size})
        if self.fail:
            raise UpstreamError("Failed to fetch clinical trials")
        return TrialSearchResult(total_count=len(self.studies), studies=list(self.studies))


class RecordingNotifier(Notifier):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []

    def send_welcome(self, registrant) -> None:
        if self.fail:
            raise ConnectionError("SMTP server unreachable")
        self.sent.append(registrant.email)


def sample_trial(**overrides) -> schemas.TrialSummary:
    values = {
        "id": "NCT01234567",
        "title": "Metformin in Type 2 Diabetes",
        "description": "A study of metformin dosing.",
        "location": "Massachusetts General Hospital, Boston, Massachusetts, United States",
        "status": "RECRUITING",
        "phase": "PHASE2",
        "condition": "Diabetes",
    }
    values.update(overrides)
    return schemas.TrialSummary(**values)


@pytest.fixture()
def db_session():
    """Provide a fresh test database session for each test.

    The schema is dropped and recreated for every test function.
    """
    Base.metadata.drop_all(bind=engine_test)
    Base.metadata.create_all(bind=engine_test)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def store(db_session) -> RegistrantStore:
    return RegistrantStore(db_session)


@pytest.fixture()
def trial_search() -> FakeTrialSearch:
    return FakeTrialSearch(studies=[sample_trial()])


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def client(db_session, trial_search, notifier):
    """TestClient wired to the in-memory database and the fake collaborators."""

    def override_get_db():
        try:
            yield db_session
        finally:
            # Session cleanup is handled by the db_session fixture.
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_trial_search] = lambda: trial_search
    app.dependency_overrides[get_notifier] = lambda: notifier

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture()
def admin_client(client):
    response = client.post("/api/admin/login", json={"username": "admin", "password": "admin123"})
    assert response.status_code == 200
    return client


@pytest.fixture()
def registration_payload():
    return {
        "fullName": "Jane Doe",
        "email": "Jane.Doe@Example.com",
        "phone": "5551234567",
        "condition": "Diabetes",
        "location": "Boston",
        "consent": True,
    }
