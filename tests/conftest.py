"""Shared fixtures: per-test SQLite database, identities, API client."""

from datetime import date, datetime, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from ipms.database import Base, get_db
from ipms.engine.scoring import EMPLOYER_CRITERIA
from ipms.main import app
from ipms.models import Account
from ipms.notifications import Notification, Outbox, get_notifier
from ipms.schemas.common import Identity, PracticeKind, Role
from ipms.schemas.evaluation import CriterionScore, EmployerEvaluationRequest
from ipms.schemas.practice import CreatePracticeRequest

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)

CAMPUS_ID = 1
PROGRAM_ID = 10
HOST_ORGANIZATION_ID = 500

ADMIN = Identity(user_id=1, role=Role.SUPER_ADMIN, origin="10.0.0.1")
COORDINATOR = Identity(user_id=2, role=Role.COORDINATOR, scope_id=CAMPUS_ID, origin="10.0.0.2")
OTHER_COORDINATOR = Identity(user_id=4, role=Role.COORDINATOR, scope_id=2)
DIRECTOR = Identity(user_id=3, role=Role.PROGRAM_DIRECTOR, scope_id=PROGRAM_ID)
SUPERVISOR = Identity(user_id=20, role=Role.SUPERVISOR)
OTHER_SUPERVISOR = Identity(user_id=22, role=Role.SUPERVISOR)
EMPLOYER = Identity(user_id=30, role=Role.EMPLOYER, scope_id=HOST_ORGANIZATION_ID)
STUDENT = Identity(user_id=100, role=Role.STUDENT)


class RecordingNotifier:
    """Notifier that keeps sent notifications in memory."""

    def __init__(self):
        self.sent: list[Notification] = []

    async def send(self, notification: Notification) -> str:
        self.sent.append(notification)
        return f"msg-{len(self.sent)}"


def practice_request(start: date, end: date, **overrides) -> CreatePracticeRequest:
    values = {
        "student_id": STUDENT.user_id,
        "program_id": PROGRAM_ID,
        "campus_id": CAMPUS_ID,
        "kind": PracticeKind.PROFESSIONAL,
        "start_date": start,
        "end_date": end,
        "host_organization_id": HOST_ORGANIZATION_ID,
    }
    values.update(overrides)
    return CreatePracticeRequest(**values)


def employer_request(score: int = 6, **overrides: int) -> EmployerEvaluationRequest:
    return EmployerEvaluationRequest(
        criteria=[
            CriterionScore(criterion_id=c.id, score=overrides.get(c.id, score))
            for c in EMPLOYER_CRITERIA
        ]
    )


def auth_headers(identity: Identity) -> dict[str, str]:
    headers = {"X-User-Id": str(identity.user_id), "X-User-Role": identity.role.value}
    if identity.scope_id is not None:
        headers["X-Scope-Id"] = str(identity.scope_id)
    return headers


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ipms.db'}", poolclass=NullPool
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
async def accounts(db):
    """Directory entries for the standard identities."""
    rows = [
        Account(user_id=2, role="COORDINATOR", display_name="Coordinadora", email="coord@ipms.local", campus_id=CAMPUS_ID),
        Account(user_id=20, role="SUPERVISOR", display_name="Docente", email="docente@ipms.local", campus_id=CAMPUS_ID, program_id=PROGRAM_ID),
        Account(user_id=22, role="SUPERVISOR", display_name="Docente Dos", email="docente2@ipms.local", campus_id=CAMPUS_ID, program_id=PROGRAM_ID),
        Account(user_id=100, role="STUDENT", display_name="Estudiante", email="estudiante@ipms.local", campus_id=CAMPUS_ID, program_id=PROGRAM_ID),
    ]
    db.add_all(rows)
    await db.commit()
    return rows


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def outbox():
    return Outbox()


@pytest.fixture
async def client(session_maker, notifier):
    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
