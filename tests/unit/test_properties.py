"""Property tests for period uniqueness and revision numbers."""

from contextlib import contextmanager
from datetime import datetime, timezone

from hypothesis import HealthCheck, given, settings, strategies as st
from hypothesis.strategies import composite

from statportal.core.access import Principal, Role
from statportal.core.bulk_import import BulkImportOrchestrator
from statportal.core.mutations import DataMutationEngine
from statportal.core.periods import PeriodNormalizer
from statportal.database.connection import Base, create_db_engine, create_session_factory
from statportal.database.models import Category, Indicator, IndicatorDataPoint, PeriodType
from statportal.exceptions import DuplicatePeriodError

SUPERADMIN = Principal(user_id="prop-user", role=Role.SUPERADMIN.value)
NORMALIZER = PeriodNormalizer(clock=lambda: datetime(2025, 1, 1, tzinfo=timezone.utc))

# =============================================================================
# STRATEGIES (Generators)
# =============================================================================

@composite
def submissions(draw):
    """A period submission shaped for one of the three indicator types."""
    kind = draw(st.sampled_from([PeriodType.MONTHLY, PeriodType.QUARTERLY, PeriodType.YEARLY]))
    year = draw(st.integers(min_value=2018, max_value=2022))
    month = draw(st.integers(min_value=1, max_value=12)) if kind == PeriodType.MONTHLY else None
    quarter = draw(st.integers(min_value=1, max_value=4)) if kind == PeriodType.QUARTERLY else None
    # absent sub-periods arrive as missing keys, null or empty string
    absent = draw(st.sampled_from(["missing", None, ""]))

    row = {"kind": kind.value, "year": year, "value": draw(st.floats(-1e6, 1e6, allow_nan=False))}
    for name, part in (("period_month", month), ("period_quarter", quarter)):
        if part is not None:
            row[name] = part
        elif absent != "missing":
            row[name] = absent
    return row


def _canonical(row):
    return (
        row["kind"],
        row["year"],
        row.get("period_month") or None,
        row.get("period_quarter") or None,
    )


@contextmanager
def fresh_database():
    """A private in-memory database per example, seeded with one indicator per period type."""
    engine = create_db_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    session = create_session_factory(engine)()
    try:
        indicators = {
            kind.value: Indicator(
                code=f"P-{kind.value}", name=f"Indicator {kind.value}", unit="Unit",
                category=Category.EKONOMI.value, period_type=kind.value,
            )
            for kind in PeriodType
        }
        with session.begin():
            session.add_all(indicators.values())
        yield session, {kind: ind.id for kind, ind in indicators.items()}
    finally:
        session.close()
        engine.dispose()


def _payload(row, indicator_ids):
    payload = {k: v for k, v in row.items() if k != "kind"}
    payload["indicator_id"] = indicator_ids[row["kind"]]
    return payload


# =============================================================================
# PROPERTIES
# =============================================================================

@settings(max_examples=40, deadline=None, suppress_health_check=[HealthCheck.too_slow])
@given(st.lists(submissions(), min_size=1, max_size=20))
def test_single_record_path_keeps_one_row_per_period(rows):
    with fresh_database() as (session, indicator_ids):
        engine = DataMutationEngine(session, normalizer=NORMALIZER)
        duplicates = 0
        for row in rows:
            try:
                engine.create(SUPERADMIN, _payload(row, indicator_ids))
            except DuplicatePeriodError:
                duplicates += 1

        distinct = {_canonical(r) for r in rows}
        assert session.query(IndicatorDataPoint).count() == len(distinct)
        assert duplicates == len(rows) - len(distinct)


@settings(max_examples=40, deadline=None, suppress_health_check=[HealthCheck.too_slow])
@given(st.lists(submissions(), min_size=1, max_size=20), st.sampled_from(["upsert", "skip"]))
def test_bulk_path_keeps_one_row_per_period(rows, operation):
    with fresh_database() as (session, indicator_ids):
        orchestrator = BulkImportOrchestrator(session, normalizer=NORMALIZER)
        result = orchestrator.run(SUPERADMIN, [_payload(r, indicator_ids) for r in rows], operation=operation)

        distinct = {_canonical(r) for r in rows}
        assert result.error_count == 0
        assert result.imported_count == len(distinct)
        repeats = len(rows) - len(distinct)
        if operation == "skip":
            assert result.skipped_count == repeats
        else:
            assert result.updated_count == repeats
        assert session.query(IndicatorDataPoint).count() == len(distinct)


@settings(max_examples=25, deadline=None)
@given(st.lists(st.floats(-1e6, 1e6, allow_nan=False), min_size=1, max_size=15))
def test_revision_number_counts_updates(values):
    with fresh_database() as (session, indicator_ids):
        engine = DataMutationEngine(session, normalizer=NORMALIZER)
        point = engine.create(SUPERADMIN, {"indicator_id": indicator_ids["yearly"], "year": 2020})

        seen = [point.revision_number]
        for value in values:
            seen.append(engine.update(SUPERADMIN, point.id, {"value": value}).revision_number)

        assert seen == list(range(1, len(values) + 2))
