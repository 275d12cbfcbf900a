"""Pytest configuration and shared fixtures."""

import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest

from statportal.core.access import Principal, Role
from statportal.core.bulk_import import BulkImportOrchestrator
from statportal.core.mutations import DataMutationEngine
from statportal.core.periods import PeriodNormalizer
from statportal.database.connection import Base, create_db_engine, create_session_factory
from statportal.database.models import Category, Indicator, PeriodType

FIXED_NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return FIXED_NOW


def seed_indicators(session) -> Dict[str, Indicator]:
    """Add one indicator per period shape and category, plus an inactive one."""
    indicators = {
        "monthly": Indicator(
            code="EKO-001", no=1, name="Inflasi Bulanan", category=Category.EKONOMI.value,
            unit="Persen", period_type=PeriodType.MONTHLY.value,
        ),
        "quarterly": Indicator(
            code="EKO-002", no=2, name="Pertumbuhan Ekonomi", category=Category.EKONOMI.value,
            unit="Persen", period_type=PeriodType.QUARTERLY.value,
        ),
        "yearly": Indicator(
            code="DEM-001", no=3, name="Jumlah Penduduk", category=Category.DEMOGRAFI.value,
            unit="Jiwa", period_type=PeriodType.YEARLY.value,
        ),
        "lingkungan": Indicator(
            code="LH-001", no=4, name="Indeks Kualitas Udara", category=Category.LINGKUNGAN.value,
            unit="Indeks", period_type=PeriodType.YEARLY.value,
        ),
        "inactive": Indicator(
            code="EKO-999", no=5, name="Indikator Lama", category=Category.EKONOMI.value,
            unit="Persen", period_type=PeriodType.YEARLY.value, is_active=False,
        ),
    }
    with session.begin():
        session.add_all(indicators.values())
    return indicators


@pytest.fixture
def test_db_engine():
    """Create a test database engine using SQLite in memory."""
    engine = create_db_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(test_db_engine):
    return create_session_factory(test_db_engine)


@pytest.fixture
def test_db_session(session_factory):
    """Session with no open transaction; the code under test owns commits."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def indicators(test_db_session) -> Dict[str, Indicator]:
    return seed_indicators(test_db_session)


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def normalizer() -> PeriodNormalizer:
    """Normalizer pinned to mid-2025, so the last valid year is 2030."""
    return PeriodNormalizer(min_year=2000, years_ahead=5, clock=fixed_clock)


@pytest.fixture
def engine(test_db_session, normalizer) -> DataMutationEngine:
    return DataMutationEngine(test_db_session, normalizer=normalizer, clock=fixed_clock)


@pytest.fixture
def bulk_settings() -> dict:
    return {"BULK_IMPORT_MAX_ROWS": 50, "BULK_IMPORT_SUCCESS_POLICY": "lenient"}


@pytest.fixture
def orchestrator(test_db_session, normalizer, bulk_settings) -> BulkImportOrchestrator:
    return BulkImportOrchestrator(test_db_session, normalizer=normalizer, settings=bulk_settings)


@pytest.fixture
def superadmin() -> Principal:
    return Principal(user_id="user-super", role=Role.SUPERADMIN.value)


@pytest.fixture
def admin_ekonomi() -> Principal:
    return Principal(user_id="user-eko", role=Role.ADMIN_EKONOMI.value)


@pytest.fixture
def admin_demografi() -> Principal:
    return Principal(user_id="user-dem", role=Role.ADMIN_DEMOGRAFI.value)


@pytest.fixture
def viewer() -> Principal:
    return Principal(user_id="user-view", role=Role.VIEWER.value)
