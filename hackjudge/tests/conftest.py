"""
Shared fixtures: a fresh file-backed SQLite database per test.
"""
import pytest
import pytest_asyncio

from hackjudge.database import build_engine, build_sessionmaker
from hackjudge.orm.base import Base
from hackjudge.seed.seed_domains import seed_domains

TEST_DOMAINS = [
    ("fintech", "Fintech"),
    ("healthtech", "Healthtech"),
    ("edtech", "Edtech"),
]


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'hackjudge_test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db(engine):
    """Database session with the test domains seeded."""
    session_factory = build_sessionmaker(engine)
    async with session_factory() as session:
        await seed_domains(session, TEST_DOMAINS)
        yield session


@pytest.fixture
def session_factory(engine):
    """For tests that need several independent sessions."""
    return build_sessionmaker(engine)
