"""Mini-README: Shared fixtures for SideLedger tests.

Every test gets its own in-memory SQLite database (one shared connection via
`StaticPool`), a factory for principals, and a TestClient whose `get_db` and
narrative-generator dependencies point at that database and an offline
generator. Startup hooks are not triggered, so no migrations touch the
configured database.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from sideledger.database import Base, get_db
from sideledger.llm import NarrativeGenerator
from sideledger.main import app, get_narrative_generator
from sideledger.models import Role, User, WorkerStatus
from sideledger.security import create_session_token, hash_password

TEST_PASSWORD = "Correct-Horse-42"
_PASSWORD_HASH = hash_password(TEST_PASSWORD)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_user(db):
    """Persist a principal; workers default to a daily rate of 500."""

    def _make(
        name: str,
        *,
        role: Role = Role.WORKER,
        email: str | None = None,
        daily_rate: float | None = None,
        status: WorkerStatus = WorkerStatus.ACTIVE,
    ) -> User:
        if daily_rate is None and role == Role.WORKER:
            daily_rate = 500.0
        user = User(
            name=name,
            email=email or f"{name.lower().replace(' ', '.')}@example.com",
            hashed_password=_PASSWORD_HASH,
            role=role,
            status=status,
            daily_rate=daily_rate,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_session_token(user.id, user.role.value)}"}

    return _headers


@pytest.fixture
def client(session_factory):
    def _get_test_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_test_db
    app.dependency_overrides[get_narrative_generator] = lambda: NarrativeGenerator(
        api_key=None,
        model="offline",
        base_url="http://llm.invalid",
        timeout=1.0,
    )
    yield TestClient(app)
    app.dependency_overrides.clear()
