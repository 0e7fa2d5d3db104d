"""
Test configuration and fixtures.
"""
import os
import tempfile
import uuid
from typing import Generator, List

import pytest
from sqlalchemy.orm import Session, sessionmaker

# Set test configuration before importing app
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(tempfile.gettempdir(), 'bulk_upload_import.db')}"
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")

import boto3  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from moto import mock_aws  # noqa: E402

from bulk_upload.main import app  # noqa: E402
from bulk_upload.core.config import Settings, get_settings  # noqa: E402
from bulk_upload.db.base import Base  # noqa: E402
from bulk_upload.db.session import build_engine, get_db, get_session_factory  # noqa: E402
from bulk_upload.models import (  # noqa: E402
    Department,
    Employee,
    JobRole,
    OfficeLocation,
    Organization,
)
from bulk_upload.services.file_storage import S3FileStore, get_file_store  # noqa: E402
from bulk_upload.services.worker_trigger import WorkerTrigger, get_worker_trigger  # noqa: E402

TEST_BUCKET = "test-bulk-uploads"

CSV_HEADER = (
    "staff_id,first_name,last_name,email,phone_number,gender,contract_type,"
    "employment_status,start_date,end_date,department,job_role,work_location"
)


def csv_line(**overrides) -> str:
    """A valid CSV data line for the test organization, with overrides."""
    values = {
        "staff_id": "EMP001",
        "first_name": "Jane",
        "last_name": "Doe",
        "email": "jane.doe@acme.test",
        "phone_number": "+2348012345678",
        "gender": "female",
        "contract_type": "permanent",
        "employment_status": "confirmed",
        "start_date": "2024-01-15",
        "end_date": "",
        "department": "Engineering",
        "job_role": "Software Engineer",
        "work_location": "12 Admiralty Way, Lekki, Lagos",
    }
    values.update(overrides)
    cells = []
    for key in CSV_HEADER.split(","):
        value = values[key]
        cells.append(f'"{value}"' if "," in value else value)
    return ",".join(cells)


def build_csv(*lines: str) -> bytes:
    return "\n".join([CSV_HEADER, *lines]).encode("utf-8")


def read_object(s3, key: str) -> bytes:
    """Body of a stored upload in the test bucket."""
    return s3.get_object(Bucket=TEST_BUCKET, Key=key)["Body"].read()


def object_exists(s3, key: str) -> bool:
    response = s3.list_objects_v2(Bucket=TEST_BUCKET, Prefix=key)
    return any(obj["Key"] == key for obj in response.get("Contents", []))


class RecordingWorkerTrigger(WorkerTrigger):
    """Worker client that records job ids instead of calling out."""

    def __init__(self, fail: bool = False):
        super().__init__(url="http://worker.test/process-bulk-upload")
        self.fail = fail
        self.triggered: List[uuid.UUID] = []

    def trigger(self, job_id):
        from bulk_upload.core.exceptions import WorkerTriggerError

        if self.fail:
            raise WorkerTriggerError("worker unavailable")
        self.triggered.append(job_id)


@pytest.fixture(scope="function")
def engine(tmp_path):
    """A fresh SQLite database file per test; threads get their own connections."""
    engine = build_engine(f"sqlite:///{tmp_path / 'bulk_upload.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db(session_factory) -> Generator[Session, None, None]:
    """Create a database session for the test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def organization(db: Session) -> Organization:
    """Organization with active and inactive reference data."""
    org = Organization(name="Acme Ltd")
    db.add(org)
    db.flush()

    db.add_all([
        Department(organization_id=org.id, name="Engineering", is_active=True),
        Department(organization_id=org.id, name="Legacy Ops", is_active=False),
        JobRole(organization_id=org.id, title="Software Engineer", is_active=True),
        JobRole(organization_id=org.id, title="Switchboard Operator", is_active=False),
        Employee(organization_id=org.id, first_name="Existing", last_name="Person", email="Existing@Acme.test"),
        OfficeLocation(organization_id=org.id, address="12 Admiralty Way, Lekki, Lagos"),
        OfficeLocation(organization_id=org.id, address=None),
    ])
    db.commit()
    db.refresh(org)
    return org


@pytest.fixture
def other_organization(db: Session) -> Organization:
    """A second tenant whose data must never leak into the first."""
    org = Organization(name="Globex")
    db.add(org)
    db.flush()
    db.add_all([
        Department(organization_id=org.id, name="Research", is_active=True),
        Employee(organization_id=org.id, email="jane.doe@acme.test"),
    ])
    db.commit()
    db.refresh(org)
    return org


@pytest.fixture
def s3():
    with mock_aws():
        yield boto3.client("s3", region_name="us-east-1")


@pytest.fixture
def file_store(s3) -> S3FileStore:
    """File store on a mocked S3; the bucket does not exist yet."""
    return S3FileStore(bucket=TEST_BUCKET, region="us-east-1")


@pytest.fixture
def worker_trigger() -> RecordingWorkerTrigger:
    return RecordingWorkerTrigger()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(ROW_LOG_BATCH_SIZE=2, MAX_FILE_SIZE_BYTES=64 * 1024, MAX_PREVIEW_ROWS=50)


@pytest.fixture(scope="function")
def client(db, session_factory, file_store, worker_trigger, test_settings) -> Generator[TestClient, None, None]:
    """Create test client with database, storage and worker overrides."""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_file_store] = lambda: file_store
    app.dependency_overrides[get_worker_trigger] = lambda: worker_trigger
    app.dependency_overrides[get_settings] = lambda: test_settings

    with TestClient(app, raise_server_exceptions=False) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(organization: Organization) -> dict:
    """Identity headers forwarded by the gateway for the test organization."""
    return {
        "X-User-ID": str(uuid.uuid4()),
        "X-Organization-ID": str(organization.id),
    }
