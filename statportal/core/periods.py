"""Period normalization for indicator data.

An indicator's ``period_type`` decides which period fields a data point must
carry. :class:`PeriodNormalizer` turns raw ``year`` / ``period_month`` /
``period_quarter`` input into a canonical :class:`PeriodKey`, which is what all
duplicate lookups and the storage-level unique key are built from.

Yearly indicators accept neither a month nor a quarter.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from statportal.core.validation import coerce_int, coerce_optional_int
from statportal.database.models import PeriodType
from statportal.exceptions import ValidationError

MONTH_NAMES = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


@dataclass(frozen=True)
class PeriodKey:
    """Canonical (year, month-or-None, quarter-or-None) period."""
    year: int
    month: Optional[int] = None
    quarter: Optional[int] = None

    @property
    def storage_key(self) -> str:
        if self.month is not None:
            return f"{self.year}-M{self.month:02d}"
        if self.quarter is not None:
            return f"{self.year}-Q{self.quarter}"
        return str(self.year)

    @property
    def label(self) -> str:
        if self.month is not None:
            return f"{MONTH_NAMES[self.month - 1]} {self.year}"
        if self.quarter is not None:
            return f"Q{self.quarter} {self.year}"
        return f"year {self.year}"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _coerce_period_type(period_type: Any) -> PeriodType:
    try:
        return PeriodType(str(period_type).strip().lower())
    except ValueError:
        raise ValidationError("period_type", period_type, "must be yearly, monthly or quarterly")


class PeriodNormalizer:
    """Validate raw period fields against an indicator's period type."""

    def __init__(self, min_year: int = 2000, years_ahead: int = 5,
                 clock: Callable[[], datetime] = _utc_now):
        self.min_year = min_year
        self.years_ahead = years_ahead
        self.clock = clock

    @property
    def max_year(self) -> int:
        return self.clock().year + self.years_ahead

    def normalize(self, period_type: Any, year: Any,
                  period_month: Any = None, period_quarter: Any = None) -> PeriodKey:
        """Return the canonical period key or raise ValidationError."""
        kind = _coerce_period_type(period_type)

        if year is None:
            raise ValidationError("year", year, "is required")
        year = coerce_int("year", year)
        if year < self.min_year or year > self.max_year:
            raise ValidationError(
                "year", year, f"must be between {self.min_year} and {self.max_year}"
            )

        month = coerce_optional_int("period_month", period_month)
        quarter = coerce_optional_int("period_quarter", period_quarter)

        if kind == PeriodType.MONTHLY:
            if month is None:
                raise ValidationError("period_month", month, "is required for monthly indicators")
            if not 1 <= month <= 12:
                raise ValidationError("period_month", month, "must be between 1 and 12")
            if quarter is not None:
                raise ValidationError("period_quarter", quarter, "must not be set for monthly indicators")
            return PeriodKey(year=year, month=month)

        if kind == PeriodType.QUARTERLY:
            if quarter is None:
                raise ValidationError("period_quarter", quarter, "is required for quarterly indicators")
            if not 1 <= quarter <= 4:
                raise ValidationError("period_quarter", quarter, "must be between 1 and 4")
            if month is not None:
                raise ValidationError("period_month", month, "must not be set for quarterly indicators")
            return PeriodKey(year=year, quarter=quarter)

        if month is not None:
            raise ValidationError("period_month", month, "must not be set for yearly indicators")
        if quarter is not None:
            raise ValidationError("period_quarter", quarter, "must not be set for yearly indicators")
        return PeriodKey(year=year)


def normalizer_from_settings(settings: dict) -> PeriodNormalizer:
    return PeriodNormalizer(
        min_year=int(settings.get("MIN_DATA_YEAR", 2000)),
        years_ahead=int(settings.get("MAX_YEARS_AHEAD", 5)),
    )
