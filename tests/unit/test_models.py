"""Unit tests for database models."""

import pytest
from sqlalchemy.exc import IntegrityError

from statportal.database.models import AuditLogEntry, DataStatus, IndicatorDataPoint


def _point(indicator, year=2024, month=None, quarter=None, key=None):
    return IndicatorDataPoint(
        indicator_id=indicator.id,
        year=year,
        period_month=month,
        period_quarter=quarter,
        period_key=key or str(year),
        value=1.0,
    )


class TestIndicatorDataPoint:
    """Storage-level rules for data points."""

    def test_defaults(self, test_db_session, indicators):
        point = _point(indicators["yearly"])
        test_db_session.add(point)
        test_db_session.commit()

        assert point.id is not None
        assert point.status == DataStatus.DRAFT.value
        assert point.revision_number == 1
        assert point.created_at is not None

    def test_yearly_rows_cannot_repeat(self, test_db_session, indicators):
        """Two rows with NULL month and quarter still collide on period_key."""
        test_db_session.add(_point(indicators["yearly"]))
        test_db_session.commit()

        test_db_session.add(_point(indicators["yearly"]))
        with pytest.raises(IntegrityError):
            test_db_session.commit()
        test_db_session.rollback()

    def test_same_period_other_indicator_allowed(self, test_db_session, indicators):
        test_db_session.add(_point(indicators["yearly"]))
        test_db_session.add(_point(indicators["lingkungan"]))
        test_db_session.commit()

        assert test_db_session.query(IndicatorDataPoint).count() == 2

    def test_month_and_quarter_exclusive(self, test_db_session, indicators):
        test_db_session.add(_point(indicators["monthly"], month=1, quarter=1, key="2024-M01"))
        with pytest.raises(IntegrityError):
            test_db_session.commit()
        test_db_session.rollback()

    def test_indicator_relationship(self, test_db_session, indicators):
        point = _point(indicators["monthly"], month=2, key="2024-M02")
        test_db_session.add(point)
        test_db_session.commit()

        assert point.indicator.name == "Inflasi Bulanan"
        assert point in indicators["monthly"].data_points


class TestAuditLogEntry:
    """Audit entries are append-only."""

    def _entry(self, session):
        entry = AuditLogEntry(
            table_name="indicator_data",
            record_id="abc",
            action="CREATE",
            user_id="u1",
            old_values=None,
            new_values={"value": 1.0},
        )
        session.add(entry)
        session.commit()
        return entry

    def test_entry_ids_increase(self, test_db_session):
        first = self._entry(test_db_session)
        second = self._entry(test_db_session)
        assert second.id > first.id

    def test_update_rejected(self, test_db_session):
        entry = self._entry(test_db_session)

        entry.action = "DELETE"
        with pytest.raises(RuntimeError, match="append-only"):
            test_db_session.flush()
        test_db_session.rollback()

    def test_delete_rejected(self, test_db_session):
        entry = self._entry(test_db_session)

        test_db_session.delete(entry)
        with pytest.raises(RuntimeError, match="append-only"):
            test_db_session.flush()
        test_db_session.rollback()
