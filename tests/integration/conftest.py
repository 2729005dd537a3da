import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

import portal.domain.entities  # noqa: F401  registers tables on SQLModel.metadata
from config import ApplicationConfig
from portal.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from portal.api.utils.jwt import generate_jwt
from portal.app.services.resilient_executor import RetryPolicy
from portal.depends import get_clock, get_retry_policy, get_unit_of_work
from portal.domain.base import utcnow
from portal.domain.entities import Property
from tests.fixtures.clock import FixedClock

OWNER_UID = "owner-1"


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine("sqlite+aiosqlite:///./test.db")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock():
    return FixedClock(utcnow())


@pytest.fixture
def fast_retry_policy():
    return RetryPolicy(max_attempts=3, base_delay=0.001, jitter=0.0)


@pytest_asyncio.fixture
async def client(db_session, clock, fast_retry_policy):
    from portal.api.app import create_app

    app = create_app(ApplicationConfig)

    async def override_get_unit_of_work():
        yield SqlAlchemyUnitOfWork(db_session)

    app.dependency_overrides[get_unit_of_work] = override_get_unit_of_work
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_retry_policy] = lambda: fast_retry_policy

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def seeded_property(db_session):
    """Property P1 owned by owner-1 with two vacant units"""
    property = Property(
        id="P1",
        name="Maple Court",
        owner_ids=[OWNER_UID],
        units=[
            {"id": "U1", "name": "Unit 1", "status": "vacant", "tenant": ""},
            {"id": "U2", "name": "Unit 2", "status": "vacant", "tenant": ""},
        ],
    )
    db_session.add(property)
    await db_session.commit()
    return property


@pytest.fixture
def owner_headers():
    return {"Authorization": f"Bearer {generate_jwt(user_id=OWNER_UID, role='owner')}"}


@pytest.fixture
def admin_headers():
    return {"X-Admin-API-Key": ApplicationConfig.ADMIN_API_KEY}
