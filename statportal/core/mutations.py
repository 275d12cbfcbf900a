"""Data mutation engine for indicator data points.

Every public operation is its own transaction. When the session is already
inside a transaction (bulk import) the operation runs in a savepoint instead,
so a failing row only rolls back its own writes.
"""

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from structlog import get_logger

from statportal.core.access import ALL_CATEGORIES, AccessGate, Capability, Principal
from statportal.core.audit import (
    AuditLogWriter,
    CreateSnapshot,
    DeleteSnapshot,
    UpdatePatch,
    VerifyTransition,
    snapshot,
)
from statportal.core.catalog import IndicatorCatalog
from statportal.core.duplicates import DuplicateResolver
from statportal.core.periods import PeriodKey, PeriodNormalizer, normalizer_from_settings
from statportal.core.validation import (
    MAX_SOURCE_DOCUMENT_LENGTH,
    check_status_change,
    check_verifiable,
    coerce_status,
    coerce_text,
    coerce_value,
    initial_status,
)
from statportal.database.models import AuditLogEntry, DataStatus, Indicator, IndicatorDataPoint
from statportal.exceptions import (
    AuthorizationError,
    DataPointNotFoundError,
    DuplicatePeriodError,
    IndicatorNotFoundError,
    ValidationError,
    handle_database_error,
    log_error_with_context,
)
from statportal.instrumentation.metrics import record_mutation

logger = get_logger()

PERIOD_FIELDS = ("year", "period_month", "period_quarter")
UPDATABLE_FIELDS = PERIOD_FIELDS + ("value", "status", "notes", "source_document")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def check_patch(patch: Any) -> Dict[str, Any]:
    """Reject non-mapping, empty or unknown-field patches."""
    if not isinstance(patch, Mapping):
        raise ValidationError("patch", type(patch).__name__, "must be an object")
    unknown = sorted(k for k in patch if k not in UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(unknown[0], patch[unknown[0]], "is not an updatable field")
    if not patch:
        raise ValidationError("patch", None, "must contain at least one field")
    return dict(patch)


class DataMutationEngine:
    """Create, update, verify and delete indicator data points."""

    def __init__(
        self,
        db: Session,
        gate: Optional[AccessGate] = None,
        normalizer: Optional[PeriodNormalizer] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.gate = gate or AccessGate()
        self.normalizer = normalizer or PeriodNormalizer()
        self.clock = clock or _utc_now
        self.catalog = IndicatorCatalog(db)
        self.resolver = DuplicateResolver(db)
        self.audit = AuditLogWriter(db)

    @contextmanager
    def transaction(self, operation: str) -> Iterator[None]:
        """Transaction, or a savepoint when one is already open."""
        try:
            if self.db.in_transaction():
                with self.db.begin_nested():
                    yield
            else:
                with self.db.begin():
                    yield
        except SQLAlchemyError as e:
            error = handle_database_error(e, operation, {})
            log_error_with_context(logger, error, {"operation": operation})
            raise error from e

    @contextmanager
    def _write_guard(self, operation: str, indicator_id: str, period: PeriodKey) -> Iterator[None]:
        """Run row writes in a savepoint and translate constraint races."""
        try:
            with self.db.begin_nested():
                yield
                self.db.flush()
        except IntegrityError as e:
            error = handle_database_error(
                e, operation, {"indicator_id": indicator_id, "period_label": period.label}
            )
            logger.warning(
                "data_point_write_conflict",
                operation=operation,
                indicator_id=indicator_id,
                period=period.label,
                error_type=error.__class__.__name__,
            )
            raise error from e

    def _load_for_update(self, data_id: str) -> IndicatorDataPoint:
        stmt = (
            select(IndicatorDataPoint)
            .where(IndicatorDataPoint.id == str(data_id))
            .with_for_update()
        )
        point = self.db.execute(stmt).scalars().first()
        if point is None:
            raise DataPointNotFoundError(data_id)
        return point

    def _indicator_of(self, point: IndicatorDataPoint) -> Indicator:
        indicator = self.catalog.get(point.indicator_id)
        if indicator is None:
            raise IndicatorNotFoundError(point.indicator_id)
        return indicator

    # -- single record operations -------------------------------------------

    def create(self, principal: Principal, payload: Mapping[str, Any]) -> IndicatorDataPoint:
        """Insert a new data point for an active indicator."""
        indicator_id = payload.get("indicator_id")
        if indicator_id is None or str(indicator_id).strip() == "":
            raise ValidationError("indicator_id", indicator_id, "is required")

        with self.transaction("create"):
            indicator = self.catalog.require_active(str(indicator_id).strip())
            self.gate.require(principal, Capability.CREATE, indicator.category)

            period = self.normalizer.normalize(
                indicator.period_type,
                payload.get("year"),
                payload.get("period_month"),
                payload.get("period_quarter"),
            )
            existing = self.resolver.find(indicator.id, period)
            if existing is not None:
                raise DuplicatePeriodError(indicator.id, period.label, existing.id)

            point = self.insert_point(principal, indicator, period, payload)

        logger.info(
            "data_point_created",
            data_id=point.id,
            indicator_id=indicator.id,
            period=period.label,
            user_id=principal.user_id,
        )
        return point

    def update(self, principal: Principal, data_id: str, patch: Mapping[str, Any]) -> IndicatorDataPoint:
        """Apply a partial update and bump the revision number."""
        with self.transaction("update"):
            point = self._load_for_update(data_id)
            indicator = self._indicator_of(point)
            self.gate.require(principal, Capability.UPDATE, indicator.category)
            patch = check_patch(patch)
            applied = self.apply_patch(principal, point, indicator, patch)

        logger.info(
            "data_point_updated",
            data_id=point.id,
            fields=sorted(applied),
            revision_number=point.revision_number,
            user_id=principal.user_id,
        )
        return point

    def verify(self, principal: Principal, data_id: str) -> IndicatorDataPoint:
        """Mark a data point final and record who verified it."""
        with self.transaction("verify"):
            point = self._load_for_update(data_id)
            indicator = self._indicator_of(point)
            self.gate.require(principal, Capability.VERIFY, indicator.category)
            check_verifiable(point.status)

            previous_status = point.status
            verified_at = self.clock()
            point.status = DataStatus.FINAL.value
            point.verified_by = principal.user_id
            point.verified_at = verified_at
            self.db.flush()

            self.audit.record(
                point.id,
                principal.user_id,
                VerifyTransition(previous_status, principal.user_id, verified_at),
            )
            record_mutation("verify", indicator.category)

        logger.info(
            "data_point_verified",
            data_id=point.id,
            previous_status=previous_status,
            user_id=principal.user_id,
        )
        return point

    def delete(self, principal: Principal, data_id: str) -> Dict[str, Any]:
        """Remove a data point; returns the snapshot kept in the audit log."""
        with self.transaction("delete"):
            point = self._load_for_update(data_id)
            indicator = self._indicator_of(point)
            self.gate.require(principal, Capability.DELETE, indicator.category)

            before = snapshot(point)
            self.db.delete(point)
            self.db.flush()

            self.audit.record(before["id"], principal.user_id, DeleteSnapshot(before))
            record_mutation("delete", indicator.category)

        logger.info("data_point_deleted", data_id=before["id"], user_id=principal.user_id)
        return before

    def get(self, principal: Principal, data_id: str) -> Tuple[IndicatorDataPoint, Indicator]:
        point = self.db.get(IndicatorDataPoint, str(data_id))
        if point is None:
            raise DataPointNotFoundError(data_id)
        indicator = self._indicator_of(point)
        self.gate.require(principal, Capability.READ, indicator.category)
        return point, indicator

    def history(self, principal: Principal, data_id: str) -> List[AuditLogEntry]:
        """Audit entries for a record, oldest first, also after deletion."""
        entries = self.audit.history(data_id)
        point = self.db.get(IndicatorDataPoint, str(data_id))
        if point is None and not entries:
            raise DataPointNotFoundError(data_id)

        indicator_id = point.indicator_id if point is not None else None
        if indicator_id is None:
            for entry in entries:
                values = entry.old_values or entry.new_values or {}
                if values.get("indicator_id"):
                    indicator_id = values["indicator_id"]
                    break

        indicator = self.catalog.get(indicator_id) if indicator_id else None
        if indicator is None:
            return self._unowned_entries(principal, data_id, entries)
        self.gate.require(principal, Capability.READ, indicator.category)
        return entries

    def _unowned_entries(self, principal: Principal, record_id: str,
                         entries: List[AuditLogEntry]) -> List[AuditLogEntry]:
        """Entries with no owning indicator, such as batch summaries.

        An entry naming a category is visible to readers of that category.
        Anything else needs read access to every category.
        """
        self.gate.require(principal, Capability.READ)
        readable = self.gate.allowed_categories(principal.role, Capability.READ)
        if readable >= ALL_CATEGORIES:
            return entries

        visible = [e for e in entries if (e.new_values or {}).get("category") in readable]
        if not visible:
            logger.warning(
                "audit_history_denied",
                record_id=str(record_id),
                user_id=principal.user_id,
                role=principal.role,
            )
            raise AuthorizationError(principal.role, Capability.READ.value)
        return visible

    # -- building blocks shared with bulk import ----------------------------

    def insert_point(
        self,
        principal: Principal,
        indicator: Indicator,
        period: PeriodKey,
        payload: Mapping[str, Any],
    ) -> IndicatorDataPoint:
        """Insert a row for an already normalized, unclaimed period."""
        status = initial_status(payload.get("status"))
        fields = {
            "value": coerce_value(payload.get("value")),
            "notes": coerce_text("notes", payload.get("notes")),
            "source_document": coerce_text(
                "source_document", payload.get("source_document"), MAX_SOURCE_DOCUMENT_LENGTH
            ),
        }

        point = IndicatorDataPoint(
            indicator_id=indicator.id,
            year=period.year,
            period_month=period.month,
            period_quarter=period.quarter,
            period_key=period.storage_key,
            status=status.value,
            revision_number=1,
            created_by=principal.user_id,
            **fields,
        )
        with self._write_guard("create", indicator.id, period):
            self.db.add(point)

        self.audit.record(point.id, principal.user_id, CreateSnapshot(snapshot(point)))
        record_mutation("create", indicator.category)
        return point

    def apply_patch(
        self,
        principal: Principal,
        point: IndicatorDataPoint,
        indicator: Indicator,
        patch: Mapping[str, Any],
    ) -> Dict[str, Any]:
        """Validate a checked patch, then write it and bump the revision.

        Returns the coerced values that were applied.
        """
        before = snapshot(point)
        changes: Dict[str, Any] = {}

        period = PeriodKey(point.year, point.period_month, point.period_quarter)
        if any(name in patch for name in PERIOD_FIELDS):
            period = self.normalizer.normalize(
                indicator.period_type,
                patch["year"] if "year" in patch else point.year,
                patch["period_month"] if "period_month" in patch else point.period_month,
                patch["period_quarter"] if "period_quarter" in patch else point.period_quarter,
            )
            if period.storage_key != point.period_key:
                existing = self.resolver.find(indicator.id, period, exclude_id=point.id)
                if existing is not None:
                    raise DuplicatePeriodError(indicator.id, period.label, existing.id)
            changes.update(
                year=period.year,
                period_month=period.month,
                period_quarter=period.quarter,
            )

        if "value" in patch:
            changes["value"] = coerce_value(patch["value"])

        if "status" in patch:
            requested = coerce_status(patch["status"])
            check_status_change(point.status, requested)
            changes["status"] = requested.value

        if "notes" in patch:
            changes["notes"] = coerce_text("notes", patch["notes"])

        if "source_document" in patch:
            changes["source_document"] = coerce_text(
                "source_document", patch["source_document"], MAX_SOURCE_DOCUMENT_LENGTH
            )

        with self._write_guard("update", indicator.id, period):
            for name, value in changes.items():
                setattr(point, name, value)
            point.period_key = period.storage_key
            point.revision_number = (point.revision_number or 1) + 1

        applied = {name: value for name, value in changes.items()
                   if name in patch or name not in PERIOD_FIELDS}
        self.audit.record(point.id, principal.user_id, UpdatePatch(before, applied))
        record_mutation("update", indicator.category)
        return applied


def engine_for(db: Session, settings: Optional[dict] = None) -> DataMutationEngine:
    """Engine wired with the configured period rules."""
    return DataMutationEngine(db, normalizer=normalizer_from_settings(settings or {}))
