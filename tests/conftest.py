import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from antraege.main import app
from antraege.config import settings
from antraege.database import get_db, Base
from antraege.models import antrag
from antraege.services.antrag_files import AntragFile
from antraege.services.blob_storage import PutBlobResult, get_blob_storage

# Create test database
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

BLOB_BASE_URL = "https://blob.test"


class FakeBlobStorage:
    """In-memory blob store recording every call."""

    def __init__(self):
        self.objects = {}
        self.put_calls = []
        self.delete_calls = []
        self.put_failures = {}  # pathname substring -> remaining failures
        self.delete_failures = 0

    def fail_put(self, name_fragment, times):
        self.put_failures[name_fragment] = times

    async def put(self, pathname, content, *, content_type, access="public",
                  add_random_suffix=False, cache_control_max_age=None):
        self.put_calls.append({
            "pathname": pathname,
            "content_type": content_type,
            "access": access,
            "add_random_suffix": add_random_suffix,
            "cache_control_max_age": cache_control_max_age,
        })
        for fragment, remaining in self.put_failures.items():
            if fragment in pathname and remaining > 0:
                self.put_failures[fragment] = remaining - 1
                raise ConnectionError(f"Upload of {pathname} failed")
        url = f"{BLOB_BASE_URL}/{pathname}"
        self.objects[url] = content
        return PutBlobResult(url=url, pathname=pathname, content_type=content_type)

    async def delete(self, urls):
        self.delete_calls.append(list(urls))
        if self.delete_failures > 0:
            self.delete_failures -= 1
            raise ConnectionError("Delete failed")
        for url in urls:
            self.objects.pop(url, None)


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


def make_file(name="antrag.pdf", size=1024, content_type="application/pdf"):
    return AntragFile(filename=name, content_type=content_type, content=b"x" * size)


def override_get_db():
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


@pytest.fixture
def storage():
    return FakeBlobStorage()


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture(scope="function")
def db_session():
    # Create tables
    Base.metadata.create_all(bind=engine)

    # Create session
    session = TestingSessionLocal()

    yield session

    # Clean up
    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session, storage, monkeypatch):
    monkeypatch.setattr(settings, "upload_retry_delay_ms", 0)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_blob_storage] = lambda: storage
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def sample_antrag_data():
    return {
        "title": "Neue Arbeitsgruppe Verkehr",
        "summary": "Wir möchten eine Arbeitsgruppe zur Verkehrswende gründen.",
        "firstName": "Erika",
        "lastName": "Mustermann",
        "email": "erika.mustermann@linke-ffm.de"
    }
