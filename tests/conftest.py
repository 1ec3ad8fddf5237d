# tests/conftest.py
import os
import tempfile

# Environment must be in place before any servicedesk module reads settings
_TMP_DIR = tempfile.mkdtemp(prefix="servicedesk-tests-")
os.environ["SECRET_KEY"] = "test-secret-key-0123456789-abcdefghijklmnop"
os.environ["ALLOWED_HOSTS"] = "testserver,localhost,127.0.0.1"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["AUDIT_LOG_FILE"] = os.path.join(_TMP_DIR, "audit.log")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TMP_DIR, 'default.db')}"
os.environ["ADMIN_EMAIL"] = "supervisor@example.com"
os.environ["ADMIN_PASSWORD"] = "supervisor-pass"
os.environ["ADMIN_USERNAME"] = "supervisor"
os.environ["ENFORCE_BUSINESS_HOURS"] = "false"
os.environ.pop("REDIS_URL", None)

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from servicedesk.core.config import get_settings
from servicedesk.core.constants import UserRole
from servicedesk.core.users import password_helper
from servicedesk.core.websockets import Fanout
from servicedesk.db.engine import Database
from servicedesk.models.service import Service
from servicedesk.models.user import User
from servicedesk.services.queue_service import QueueService


class RecordingBackend:
    """Fanout backend that keeps what was published."""

    def __init__(self):
        self.published = []

    async def publish(self, channel, payload):
        self.published.append((channel, payload))


# --- Service-level fixtures ---


@pytest_asyncio.fixture
async def database(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await db.create_all()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def session(database):
    async with database.session() as session:
        yield session


@pytest.fixture
def backend():
    return RecordingBackend()


@pytest.fixture
def fanout(backend):
    return Fanout(backend)


async def make_user(session, username, role=UserRole.CUSTOMER_SERVICE):
    user = User(
        username=username,
        email=f"{username}@example.com",
        hashed_password=password_helper.hash("password"),
        role=role.value,
        is_superuser=role is UserRole.SUPERVISOR,
    )
    session.add(user)
    await session.commit()
    return user


@pytest_asyncio.fixture
async def staff(session):
    return await make_user(session, "alice")


@pytest_asyncio.fixture
async def other_staff(session):
    return await make_user(session, "bob")


@pytest_asyncio.fixture
async def supervisor(session):
    return await make_user(session, "sam", UserRole.SUPERVISOR)


@pytest_asyncio.fixture
async def desk_service(session):
    service = Service(name="Admissions", code_prefix="ADM")
    session.add(service)
    await session.commit()
    return service


@pytest_asyncio.fixture
async def queue(session, fanout):
    return QueueService(session, fanout)


# --- API fixtures ---


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'api.db'}")
    get_settings.cache_clear()
    from servicedesk.main import create_app

    with TestClient(create_app()) as test_client:
        yield test_client
    get_settings.cache_clear()


def login(client, username, password):
    response = client.post("/auth/jwt/login", data={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def supervisor_headers(client):
    return login(client, "supervisor", "supervisor-pass")


@pytest.fixture
def staff_headers(client, supervisor_headers):
    response = client.post(
        "/api/users",
        json={"username": "carol", "email": "carol@example.com", "password": "carol-pass"},
        headers=supervisor_headers,
    )
    assert response.status_code == 201, response.text
    return login(client, "carol", "carol-pass")


@pytest.fixture
def service_id(client, supervisor_headers):
    response = client.post(
        "/api/services",
        json={"name": "Admissions", "code_prefix": "adm"},
        headers=supervisor_headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["id"]
