"""Duplicate lookup for indicator data periods."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from statportal.core.periods import PeriodKey
from statportal.database.models import IndicatorDataPoint


def _null_safe_eq(column, value):
    # absent must match absent, not "anything but this value"
    if value is None:
        return column.is_(None)
    return column == value


class DuplicateResolver:
    """Find the existing data point for an indicator and canonical period."""

    def __init__(self, db: Session):
        self.db = db

    def find(self, indicator_id: str, period: PeriodKey,
             exclude_id: Optional[str] = None) -> Optional[IndicatorDataPoint]:
        stmt = select(IndicatorDataPoint).where(
            IndicatorDataPoint.indicator_id == indicator_id,
            IndicatorDataPoint.year == period.year,
            _null_safe_eq(IndicatorDataPoint.period_month, period.month),
            _null_safe_eq(IndicatorDataPoint.period_quarter, period.quarter),
        )
        if exclude_id is not None:
            stmt = stmt.where(IndicatorDataPoint.id != exclude_id)

        return self.db.execute(stmt.limit(1)).scalars().first()
