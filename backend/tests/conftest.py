"""
StudyHub Backend - Test Configuration (conftest.py)
===================================================

What:  Shared pytest fixtures for the whole suite.
How:   Every test gets its own SQLite file database (aiosqlite) with the
       schema created from Base.metadata, plus a MaterialService wired to it.
       API tests reach that service through app.dependency_overrides.

Fixture Hierarchy (all function-scoped):
    engine ─▶ session_factory ─┬─▶ store ─┐
                               ├─▶ users ─┴─▶ service ─▶ test_client
                               └─▶ add_user
    material_payload:  factory of valid create payloads (unique links)
    make_material:     factory of valid ORM Material objects
"""

import itertools
import os
import tempfile
from datetime import datetime, timedelta, timezone

# Settings are read at import time: point them at a throwaway database
# before any studyhub module is imported.
_TEST_DIR = tempfile.mkdtemp(prefix="studyhub_test_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/app.db"
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["RATE_LIMIT_REQUESTS"] = "10000"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine

from studyhub.database import Base, build_session_factory
from studyhub.models import Material, User
from studyhub.services.material_service import MaterialService, get_material_service
from studyhub.services.material_store import MaterialStore
from studyhub.services.user_directory import UserDirectory

THUMBNAIL_SHARE_LINK = "https://drive.google.com/file/d/ABC123/view?usp=sharing"
CANONICAL_THUMBNAIL = "https://drive.google.com/uc?export=view&id=ABC123"

_link_counter = itertools.count(1)


def next_link() -> str:
    return f"https://files.university.edu/materials/{next(_link_counter)}.pdf"


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'studyhub.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def store(session_factory):
    return MaterialStore(session_factory)


@pytest.fixture
def users(session_factory):
    return UserDirectory(session_factory)


@pytest.fixture
def service(store, users):
    return MaterialService(store=store, users=users)


@pytest.fixture
def add_user(session_factory):
    """
    Insert a row into the identity service's users table.

    Usage:
        await add_user("voter@university.edu")
        await add_user("pending@university.edu", verified=False)
    """

    async def _add(email: str, verified: bool = True) -> User:
        user = User(email=email, name="Test User", is_verified=verified)
        async with session_factory.begin() as session:
            session.add(user)
        return user

    return _add


# ══════════════════════════════════════════════════════════════════════════
# Sample Data
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def material_payload():
    """
    Factory of valid POST /api/materials bodies. Each call gets a fresh
    materialLink unless one is passed in `overrides`.
    """

    def _payload(**overrides):
        payload = {
            "subject": "Data Structures",
            "semester": 3,
            "instructorName": ["Dr. Ada Lovelace"],
            "courseCode": "CS201",
            "desc": "Unit 1 to 5 handwritten notes",
            "author": ["Grace Hopper"],
            "yearOfWriting": 2023,
            "branch": ["CSE", "IT"],
            "materialType": "notes",
            "materialLink": next_link(),
            "thumbnail": THUMBNAIL_SHARE_LINK,
        }
        payload.update(overrides)
        return payload

    return _payload


@pytest.fixture
def make_material():
    """
    Factory of valid, not yet persisted Material objects.

    `age` (seconds) shifts created_at into the past so listing order is
    deterministic.
    """

    def _make(age: int = 0, branch=("CSE",), **overrides) -> Material:
        created = datetime.now(timezone.utc) - timedelta(seconds=age)
        fields = dict(
            subject="Operating Systems",
            semester=4,
            instructor_name=["Dr. Edsger Dijkstra"],
            course_code="CS301",
            desc="",
            author=["Linus Torvalds"],
            year_of_writing=2022,
            material_type="notes",
            material_link=next_link(),
            thumbnail=CANONICAL_THUMBNAIL,
            featured=False,
            contributed_by="Admin",
            verified_by="notVerified",
            created_at=created,
            updated_at=created,
            upvote_entries=[],
        )
        fields.update(overrides)
        material = Material(**fields)
        material.branch = list(branch)
        return material

    return _make


# ══════════════════════════════════════════════════════════════════════════
# HTTP Client
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client(service):
    """
    HTTPX AsyncClient talking to the FastAPI app in-process, with the
    material service bound to this test's database.
    """
    from studyhub.main import app

    app.dependency_overrides[get_material_service] = lambda: service
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
