import io
import os
import tempfile
from datetime import datetime

import pytest

_db_fd, _db_path = tempfile.mkstemp(suffix=".db")
os.environ["DATABASE_URL"] = f"sqlite:///{_db_path}"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["DB_LOG_SLOW_QUERIES"] = "false"

from fastapi.testclient import TestClient  # noqa: E402
from PIL import Image  # noqa: E402

from app.auth import get_current_user  # noqa: E402
from app.database import Base, SessionLocal, engine, get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models import Appointment, Business, Client, Service, User, UserRole  # noqa: E402
from app.services.media_gateway import MediaGateway, get_media_gateway  # noqa: E402
from app.services.task_queue import TaskQueueError, get_task_queue  # noqa: E402


class FakeStorage:
    """In-memory stand-in for the R2 bucket"""

    def __init__(self, fail_on_put: bool = False):
        self.objects = {}
        self.deleted = []
        self.fail_on_put = fail_on_put

    def put(self, key, body, content_type):
        if self.fail_on_put:
            from app.services.media_storage import MediaUploadError

            raise MediaUploadError(f"Failed to upload {key}")
        self.objects[key] = (body, content_type)
        return self.url_for(key)

    def delete(self, key):
        self.deleted.append(key)
        return self.objects.pop(key, None) is not None

    def url_for(self, key):
        return f"https://media.test/{key}"

    def presigned_url(self, key, expiration=3600):
        return f"https://media.test/{key}?signed=1&expires={expiration}"


class FakeTaskQueue:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.jobs = []
        self.statuses = {}

    async def enqueue(self, function_name, *args):
        if self.fail:
            raise TaskQueueError(f"Failed to queue {function_name}")
        job_id = f"job-{len(self.jobs) + 1}"
        self.jobs.append((job_id, function_name, args))
        self.statuses[job_id] = {"jobId": job_id, "status": "queued", "result": None, "error": None}
        return job_id

    async def job_status(self, job_id):
        if self.fail:
            raise TaskQueueError(f"Failed to look up job {job_id}")
        return self.statuses.get(
            job_id, {"jobId": job_id, "status": "not_found", "result": None, "error": None}
        )


def make_image_bytes(size=(64, 48), fmt="PNG", color=(200, 80, 120)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture(scope="session", autouse=True)
def _cleanup_database_file():
    yield
    engine.dispose()
    os.close(_db_fd)
    os.unlink(_db_path)


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def business(db):
    business = Business(name="Bella Spa", email="hola@bellaspa.co", phone="+573001112233", city="Bogota")
    db.add(business)
    db.commit()
    db.refresh(business)
    return business


@pytest.fixture
def other_business(db):
    business = Business(name="Other Salon")
    db.add(business)
    db.commit()
    db.refresh(business)
    return business


def _user(db, business_id, email, role, first_name):
    user = User(business_id=business_id, email=email, role=role, first_name=first_name, last_name="Test")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def owner(db):
    return _user(db, None, "owner@platform.co", UserRole.OWNER, "Olga")


@pytest.fixture
def admin(db, business):
    return _user(db, business.id, "admin@bellaspa.co", UserRole.BUSINESS, "Ana")


@pytest.fixture
def specialist(db, business):
    return _user(db, business.id, "sofia@bellaspa.co", UserRole.SPECIALIST, "Sofia")


@pytest.fixture
def receptionist(db, business):
    return _user(db, business.id, "rita@bellaspa.co", UserRole.RECEPTIONIST, "Rita")


@pytest.fixture
def customer(db, business):
    client = Client(
        business_id=business.id,
        first_name="Laura",
        last_name="Gomez",
        email="laura@example.com",
        phone="+573009998877",
    )
    db.add(client)
    db.commit()
    db.refresh(client)
    return client


@pytest.fixture
def service(db, business):
    service = Service(business_id=business.id, name="Keratina", price=120000, duration=90)
    db.add(service)
    db.commit()
    db.refresh(service)
    return service


@pytest.fixture
def appointment(db, business, customer, service, specialist):
    appointment = Appointment(
        business_id=business.id,
        client_id=customer.id,
        service_id=service.id,
        specialist_id=specialist.id,
        start_time=datetime(2026, 3, 14, 10, 0),
        total_amount=120000,
    )
    db.add(appointment)
    db.commit()
    db.refresh(appointment)
    return appointment


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def gateway(storage, tmp_path):
    return MediaGateway(storage, temp_dir=str(tmp_path / "staging"), root_folder="beauty-control")


@pytest.fixture
def task_queue():
    return FakeTaskQueue()


@pytest.fixture
def api(db, gateway, task_queue):
    """Returns a factory: api(user) -> TestClient authenticated as that user"""

    def _get_db():
        yield db

    def _as(user):
        app.dependency_overrides[get_db] = _get_db
        app.dependency_overrides[get_current_user] = lambda: user
        app.dependency_overrides[get_media_gateway] = lambda: gateway
        app.dependency_overrides[get_task_queue] = lambda: task_queue
        return TestClient(app)

    yield _as
    app.dependency_overrides.clear()
