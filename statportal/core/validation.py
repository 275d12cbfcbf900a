"""Field coercion and status lifecycle rules for indicator data."""

import math
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from statportal.database.models import DataStatus
from statportal.exceptions import StatusTransitionError, ValidationError

STATUS_RANK = {
    DataStatus.DRAFT: 0,
    DataStatus.PRELIMINARY: 1,
    DataStatus.FINAL: 2,
}

MAX_SOURCE_DOCUMENT_LENGTH = 500


def coerce_int(field_name: str, value: Any) -> int:
    """Coerce an integer-like value (int or digit string) to int."""
    if isinstance(value, bool):
        raise ValidationError(field_name, value, "must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValidationError(field_name, value, "must be an integer")
    if isinstance(value, str):
        stripped = value.strip()
        if re.fullmatch(r"-?[0-9]+", stripped):
            try:
                return int(stripped)
            except ValueError:
                # longer than the interpreter's digit limit
                pass
    raise ValidationError(field_name, value, "must be an integer")


def coerce_optional_int(field_name: str, value: Any) -> Optional[int]:
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return None
    return coerce_int(field_name, value)


def coerce_value(value: Any) -> Optional[float]:
    """Coerce a statistical value; None stays None."""
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return None
    if isinstance(value, bool):
        raise ValidationError("value", value, "must be numeric")
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            raise ValidationError("value", value, "must be a finite number")
    else:
        try:
            number = float(Decimal(str(value).strip()))
        except (InvalidOperation, ValueError):
            raise ValidationError("value", value, "must be numeric")
    if not math.isfinite(number):
        raise ValidationError("value", value, "must be a finite number")
    return number


def coerce_text(field_name: str, value: Any, max_length: Optional[int] = None) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(field_name, value, "must be a string")
    value = value.strip()
    if not value:
        return None
    if max_length is not None and len(value) > max_length:
        raise ValidationError(field_name, value[:40], f"must be at most {max_length} characters")
    return value


def coerce_status(value: Any) -> DataStatus:
    try:
        return DataStatus(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(s.value for s in DataStatus)
        raise ValidationError("status", value, f"must be one of: {allowed}")


def initial_status(value: Any) -> DataStatus:
    """Status for a new data point: draft unless given, never final."""
    if value is None:
        return DataStatus.DRAFT
    status = coerce_status(value)
    if status == DataStatus.FINAL:
        raise StatusTransitionError(
            current="none",
            requested=status.value,
            reason="New data cannot be created as final; verify it instead",
        )
    return status


def check_status_change(current: Any, requested: DataStatus) -> None:
    """Status only advances, and final is reachable through verification only."""
    current_status = coerce_status(current)
    if requested == current_status:
        return
    if requested == DataStatus.FINAL:
        raise StatusTransitionError(
            current=current_status.value,
            requested=requested.value,
            reason="Status final can only be set by verifying the data",
        )
    if STATUS_RANK[requested] < STATUS_RANK[current_status]:
        raise StatusTransitionError(
            current=current_status.value,
            requested=requested.value,
            reason=f"Status cannot move back from {current_status.value} to {requested.value}",
        )


def check_verifiable(current: Any) -> None:
    current_status = coerce_status(current)
    if current_status == DataStatus.FINAL:
        raise StatusTransitionError(
            current=current_status.value,
            requested=DataStatus.FINAL.value,
            reason="Data already verified",
            error_code="ALREADY_VERIFIED",
        )
