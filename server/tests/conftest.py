"""Test configuration and fixtures."""

import os

# Must be set before tour_api is imported so the global engine (used by /ready)
# points at SQLite instead of PostgreSQL
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from tour_api.core.database import Base, get_db
from tour_api.core.dependencies import get_enrichment_service
from tour_api.models import *  # noqa: F403 - Import all models
from tour_api.providers.ports import LookupNotFound, LookupUnavailable
from tour_api.schemas.stop import Location, Weather
from tour_api.services.enrichment_service import StopEnrichmentService

# Test database URL (in-memory SQLite for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


KNOWN_LOCATIONS = {
    "97214": Location(
        postal_code="97214",
        city="Portland",
        region="Oregon",
        region_code="OR",
        country="United States",
        country_code="US",
        latitude=45.5137,
        longitude=-122.6359,
    ),
    "10001": Location(
        postal_code="10001",
        city="New York City",
        region="New York",
        region_code="NY",
        country="United States",
        country_code="US",
        latitude=40.7484,
        longitude=-73.9967,
    ),
}


class FakeGeocoder:
    """In-memory geocoder answering from KNOWN_LOCATIONS."""

    def __init__(self):
        self.calls = []
        self.unavailable = False

    async def geocode(self, postal_code: str) -> Location:
        self.calls.append(postal_code)
        if self.unavailable:
            raise LookupUnavailable("fake-geocoder", "service down", status_code=503)
        try:
            return KNOWN_LOCATIONS[postal_code]
        except KeyError:
            raise LookupNotFound("fake-geocoder", f"no places for '{postal_code}'") from None


class FakeWeather:
    """Weather provider returning fixed conditions unless told to fail."""

    def __init__(self):
        self.calls = []
        self.unavailable = False

    async def current_conditions(self, location: Location) -> Weather:
        self.calls.append(location.postal_code)
        if self.unavailable:
            raise LookupUnavailable("fake-weather", "request timed out")
        return Weather(
            temperature=61.3,
            temperature_unit="fahrenheit",
            wind_speed=4.2,
            weather_code=3,
            condition="Overcast",
        )


@pytest.fixture
def fake_geocoder():
    """Fake geocoder shared by the enrichment service under test."""
    return FakeGeocoder()


@pytest.fixture
def fake_weather():
    """Fake weather provider shared by the enrichment service under test."""
    return FakeWeather()


@pytest.fixture
def enrichment_service(fake_geocoder, fake_weather):
    """Enrichment pipeline wired to the fake providers."""
    return StopEnrichmentService(geocoder=fake_geocoder, weather=fake_weather)


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_session(test_engine):
    """Create a test database session."""
    async_session = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def test_app(test_session, enrichment_service):
    """Create a test FastAPI application."""
    from fastapi import FastAPI
    from fastapi.exceptions import RequestValidationError
    from fastapi.middleware.cors import CORSMiddleware

    from tour_api.core.exceptions import (
        ProblemDetailsException,
        generic_exception_handler,
        problem_details_handler,
        validation_exception_handler,
    )
    from tour_api.routers import health, stop, tour

    # Create a simplified test app without lifespan
    app = FastAPI(
        title="Tour Stops API (Test)",
        description="Test version of the API",
        version="1.0.0-test",
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Simplified for tests
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    # Register exception handlers
    app.add_exception_handler(ProblemDetailsException, problem_details_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # Register API routers
    app.include_router(health.router)
    app.include_router(tour.router)
    app.include_router(stop.router)

    # Override database dependency
    async def override_get_db():
        yield test_session

    # Keep lookups in-process
    async def override_get_enrichment_service():
        return enrichment_service

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_enrichment_service] = override_get_enrichment_service

    yield app

    # Clean up
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app):
    """Create a test HTTP client."""
    from httpx import ASGITransport
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def sample_tour_data():
    """Sample tour data for testing."""
    return {
        "title": "Pacific Northwest Food Trail",
        "activities": ["coffee roasting", "food carts"],
        "launchDate": "2026-06-01T09:00:00Z",
    }
