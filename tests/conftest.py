"""
Shared fixtures: a throwaway SQLite database per test, a pinned clock and
carrier factories.
"""
import os
import tempfile
from datetime import date

# Point the module-level engine at a scratch file before freightdocs is imported
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{os.path.join(tempfile.mkdtemp(prefix='freightdocs-'), 'app.db')}",
)

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from freightdocs.core.clock import FixedClock
from freightdocs.database import Base, build_engine
import freightdocs.models  # noqa: F401
from freightdocs.schemas.carrier import CarrierCreate, LicenseCreate
from freightdocs.services.cache_service import CacheService, InMemoryCache
from freightdocs.services.carrier_service import CarrierService

TODAY = date(2026, 10, 19)


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock():
    return FixedClock(TODAY)


@pytest.fixture
def cache():
    return CacheService(InMemoryCache(), namespace="test")


@pytest.fixture
def create_carrier(session_factory, cache):
    """Register a carrier in its own committed session and return its id."""

    async def _create(
        name="Transportes Fronteira Ltda",
        home_country="BR",
        registration_number="BR-0001",
        licenses=None,
        initial_crt_number=1,
        initial_mic_dta_number=1,
    ):
        if licenses is None:
            licenses = [
                LicenseCreate(
                    destination_country="PY",
                    license_code="LIC-PY-01",
                    expiry_date=date(2030, 1, 1),
                    idoneidade_number="4521",
                )
            ]
        data = CarrierCreate(
            name=name,
            home_country=home_country,
            registration_number=registration_number,
            initial_crt_number=initial_crt_number,
            initial_mic_dta_number=initial_mic_dta_number,
            licenses=licenses,
        )
        async with session_factory() as session:
            carrier = await CarrierService(session, cache=cache).create_carrier(data)
            return carrier.id

    return _create


@pytest.fixture
async def carrier_id(create_carrier):
    """BR carrier licensed for PY until 2030-01-01, numbering from 1."""
    return await create_carrier()
