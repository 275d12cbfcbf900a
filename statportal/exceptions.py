"""Custom exception classes for the statistics portal data core."""

from typing import Any, Dict, Optional


class StatPortalError(Exception):
    """Base exception for all portal errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details
        }


def _value_preview(value: Any, limit: int = 200) -> Optional[str]:
    if value is None:
        return None
    try:
        text = str(value)
    except ValueError:
        # ints past the digit limit refuse str()
        return f"<{type(value).__name__}>"
    return text if len(text) <= limit else text[:limit] + "..."


# Data management exceptions
class DataManagementError(StatPortalError):
    """Base exception for indicator data errors."""
    pass


class ValidationError(DataManagementError):
    """Data validation failed."""

    def __init__(self, field_name: str, value: Any, validation_rule: str):
        super().__init__(
            message=f"Validation failed for field '{field_name}': {validation_rule}",
            error_code="VALIDATION_FAILED",
            details={
                "field_name": field_name,
                "value": _value_preview(value),
                "validation_rule": validation_rule
            }
        )


class StatusTransitionError(DataManagementError):
    """Requested status change is not allowed by the status lifecycle."""

    def __init__(self, current: str, requested: str, reason: str, error_code: str = "INVALID_STATUS_TRANSITION"):
        super().__init__(
            message=reason,
            error_code=error_code,
            details={"current_status": current, "requested_status": requested}
        )


class AuthorizationError(DataManagementError):
    """Role is not allowed to act on the category."""

    def __init__(self, role: str, capability: str, category: Optional[str] = None):
        if category:
            message = f"Role '{role}' is not authorized to {capability} data in category '{category}'"
        else:
            message = f"Role '{role}' is not authorized to {capability} data"
        super().__init__(
            message=message,
            error_code="ACCESS_DENIED",
            details={"role": role, "capability": capability, "category": category}
        )


class NotFoundError(DataManagementError):
    """Requested resource does not exist."""

    def __init__(self, resource: str, identifier: Any, reason: Optional[str] = None):
        super().__init__(
            message=reason or f"{resource} not found: {identifier}",
            error_code="NOT_FOUND",
            details={"resource": resource, "identifier": str(identifier)}
        )


class IndicatorNotFoundError(NotFoundError):
    """Indicator missing or inactive."""

    def __init__(self, indicator_id: Any):
        super().__init__(
            resource="Indicator",
            identifier=indicator_id,
            reason="Indicator not found or inactive"
        )
        self.error_code = "INDICATOR_NOT_FOUND"


class DataPointNotFoundError(NotFoundError):
    """Indicator data point not found."""

    def __init__(self, data_id: Any):
        super().__init__(
            resource="Indicator data",
            identifier=data_id,
            reason="Indicator data not found"
        )
        self.error_code = "DATA_NOT_FOUND"


class ConflictError(DataManagementError):
    """Write conflicts with existing data."""
    pass


class DuplicatePeriodError(ConflictError):
    """A data point already exists for the indicator and period."""

    def __init__(self, indicator_id: Any, period_label: str, existing_id: Optional[str] = None):
        super().__init__(
            message=f"Data for {period_label} already exists for this indicator",
            error_code="DUPLICATE_PERIOD",
            details={
                "indicator_id": str(indicator_id),
                "period": period_label,
                "existing_id": existing_id
            }
        )


class InternalError(StatPortalError):
    """Unexpected storage failure."""

    def __init__(self, operation: str, reason: str):
        super().__init__(
            message=f"Internal error during {operation}: {reason}",
            error_code="INTERNAL_ERROR",
            details={"operation": operation}
        )


# Configuration exceptions
class ConfigurationError(StatPortalError):
    """Configuration errors."""

    def __init__(self, config_key: str, reason: str):
        super().__init__(
            message=f"Configuration error for '{config_key}': {reason}",
            error_code="CONFIG_ERROR",
            details={"config_key": config_key, "reason": reason}
        )


# Utility functions for error handling
def is_unique_violation(e: Exception) -> bool:
    """Check whether a driver error reports a unique-constraint violation."""
    error_msg = str(getattr(e, "orig", None) or e).lower()
    return (
        "unique" in error_msg
        or "duplicate key" in error_msg
        or "duplicate entry" in error_msg
    )


def handle_database_error(e: Exception, operation: str, context: Dict[str, Any]) -> StatPortalError:
    """Convert generic database exceptions to specific error types."""
    if is_unique_violation(e):
        return DuplicatePeriodError(
            indicator_id=context.get("indicator_id", "unknown"),
            period_label=context.get("period_label", "this period"),
        )

    return InternalError(operation=operation, reason=str(e))


def log_error_with_context(logger, error: StatPortalError, additional_context: Optional[Dict] = None):
    """Log error with full context information."""
    log_data = {
        "error_type": error.__class__.__name__,
        "error_code": error.error_code,
        "message": error.message,
        "details": error.details
    }

    if additional_context:
        log_data["context"] = additional_context

    logger.error("data_error", **log_data)
