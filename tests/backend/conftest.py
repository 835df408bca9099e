import os
import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from tortoise import Tortoise

from speech_audit.config import settings
from speech_audit.core import db as db_module
from speech_audit.core.security import hash_password
from speech_audit.main import app
from speech_audit.models import AuditTemplate, Question
from speech_audit.models.user import User


TEST_DB_URL = "sqlite://:memory:"
os.environ["DATABASE_URL"] = TEST_DB_URL
db_module.DB_URL = TEST_DB_URL
db_module.TORTOISE_ORM["connections"]["default"] = TEST_DB_URL


async def _init_test_db() -> None:
    """
    Initialize a clean in-memory SQLite database for every test.
    Ensures tables are recreated from scratch.
    """
    if Tortoise._inited:
        await Tortoise.close_connections()
    await Tortoise.init(config=db_module.TORTOISE_ORM)
    await Tortoise.generate_schemas()


@pytest.fixture(autouse=True)
def isolated_storage(tmp_path, monkeypatch):
    """Keep uploaded and synthesized audio inside the test's temp dir; no TTS calls."""
    monkeypatch.setattr(settings, "audio_storage_dir", str(tmp_path / "audio"))
    monkeypatch.setattr(settings, "generate_question_audio", False)
    return tmp_path


@pytest_asyncio.fixture
async def db():
    """Fresh database for tests that talk to the ORM directly."""
    await _init_test_db()
    yield
    await Tortoise.close_connections()


@pytest_asyncio.fixture
async def client(db):
    """
    Provide an HTTPX AsyncClient bound to the FastAPI app with a fresh DB.
    Lifespan is not run, so startup bootstrap does not touch the test DB.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as async_client:
        yield async_client


@pytest_asyncio.fixture
async def create_admin():
    """
    Factory fixture to create admin users directly via ORM for privileged endpoints.
    """

    async def _create_admin(password: str = "AdminPass!23") -> tuple[User, str]:
        user = await User.create(
            email=f"admin_{uuid.uuid4().hex[:6]}@example.com",
            name="Admin",
            password_hash=hash_password(password),
            role="admin",
        )
        return user, password

    return _create_admin


@pytest_asyncio.fixture
async def create_user():
    """
    Factory fixture to create regular users directly.
    """

    async def _create_user(password: str = "UserPass!23", **overrides) -> tuple[User, str]:
        fields = {
            "email": f"user_{uuid.uuid4().hex[:6]}@example.com",
            "name": "Regular User",
            "password_hash": hash_password(password),
            "role": "user",
        }
        fields.update(overrides)
        user = await User.create(**fields)
        return user, password

    return _create_user


@pytest_asyncio.fixture
async def create_template():
    """
    Factory fixture for a template with `count` open-ended questions.
    """

    async def _create_template(count: int = 3, keywords=None, **overrides) -> AuditTemplate:
        fields = {"name": f"Template {uuid.uuid4().hex[:6]}", "estimated_duration_minutes": 15}
        fields.update(overrides)
        template = await AuditTemplate.create(**fields)
        for sequence in range(1, count + 1):
            await Question.create(
                template=template,
                text=f"Question number {sequence}?",
                sequence=sequence,
                expected_keywords=keywords,
            )
        return template

    return _create_template


@pytest_asyncio.fixture
async def auth_header_factory(client):
    """
    Helper fixture to obtain Authorization headers via the login endpoint.
    """

    async def _get_headers(email: str, password: str) -> dict[str, str]:
        resp = await client.post(
            "/api/v1/auth/login",
            json={"email": email, "password": password},
        )
        assert resp.status_code == 200, resp.text
        token = resp.json()["data"]["accessToken"]
        return {"Authorization": f"Bearer {token}"}

    return _get_headers
