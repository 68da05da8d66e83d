"""
Pytest Configuration and Fixtures
=================================

Shared fixtures for engine, service and API tests.

Every test gets its own in-memory SQLite database (aiosqlite on a
StaticPool), so no external service is needed.
"""

from datetime import datetime, timedelta
from typing import AsyncGenerator, Callable, Dict

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from rosterguard.config import Settings
from rosterguard.database import build_engine, build_session_factory, create_tables
from rosterguard.services import IntegrityEngine, PlayerUpdateService
from main import create_app


# Fixed engine clock; close to wall-clock time so API tests (real clock)
# see the same "today".
NOW = datetime.utcnow().replace(microsecond=0)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (requires database)"
    )


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        environment="test",
        database_url="sqlite://",
        history_retention_per_player=0,
    )


@pytest_asyncio.fixture(scope="function")
async def db_engine(test_settings: Settings) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory database with all tables created."""
    engine = build_engine(settings=test_settings)
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(db_engine)


@pytest.fixture
def integrity_engine(session_factory, test_settings: Settings) -> IntegrityEngine:
    return IntegrityEngine(session_factory, settings=test_settings, clock=lambda: NOW)


@pytest.fixture
def update_service(integrity_engine: IntegrityEngine) -> PlayerUpdateService:
    return PlayerUpdateService(integrity_engine)


@pytest.fixture
def player_document() -> Callable[..., dict]:
    """
    Builder for a healthy Centre's document.

    Keyword arguments replace whole top-level sections.
    """

    def build(**sections) -> dict:
        document = {
            "personalDetails": {"firstName": "Sam", "lastName": "Carter", "email": "sam.carter@example.com"},
            "rugbyProfile": {"jerseyNumber": 12, "primaryPosition": "Centre", "yearsInTeam": 3},
            "status": {"medical": "cleared", "availability": "available", "fitness": "good"},
            "injuries": [],
            "medicalAppointments": [],
            "trainingAttendance": [],
            "physicalAttributes": [
                {"date": (NOW - timedelta(days=30)).date().isoformat(), "height": 186, "weight": 95, "bodyFat": 12.5},
            ],
            "gameStats": [
                {"season": "2025", "matchesPlayed": 12, "tries": 3, "tackles": 70, "minutesPlayed": 900},
            ],
            "skills": {"passing": 7, "defense": 6, "kicking": 5},
            "aiRating": {
                "overall": 6,
                "physicality": 6,
                "skillset": 7,
                "gameImpact": 6,
                "lastUpdated": (NOW - timedelta(days=2)).isoformat(),
            },
            "playerValue": {"totalScore": 60},
            "cohesionMetrics": {"reliability": 8},
        }
        document.update(sections)
        return document

    return build


@pytest_asyncio.fixture(scope="function")
async def seeded_players(integrity_engine: IntegrityEngine, player_document) -> Dict[str, dict]:
    """
    Two squad members:
    - p1: Centre wearing 12
    - p2: Prop wearing 7
    """
    p1 = await integrity_engine.create_player("p1", player_document())
    p2 = await integrity_engine.create_player(
        "p2",
        player_document(
            personalDetails={"firstName": "Ben", "lastName": "Okafor"},
            rugbyProfile={"jerseyNumber": 7, "primaryPosition": "Prop", "yearsInTeam": 5},
        ),
    )
    return {"p1": p1, "p2": p2}


@pytest_asyncio.fixture(scope="function")
async def client(test_settings: Settings, db_engine: AsyncEngine) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for testing."""
    app = create_app(test_settings, engine=db_engine)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
