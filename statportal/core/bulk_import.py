"""Bulk import of indicator data rows.

A batch runs in one transaction. Each row gets its own savepoint, so a row that
fails validation, authorization or a duplicate check is reported and rolled
back on its own while the rest of the batch goes through. Storage failures
(:class:`InternalError`) abort and roll back the whole batch.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.orm import Session
from structlog import get_logger

from statportal.core.access import AccessGate, Capability, Principal
from statportal.core.audit import BulkImportSummary
from statportal.core.mutations import DataMutationEngine
from statportal.core.periods import PeriodNormalizer, normalizer_from_settings
from statportal.database.models import Category
from statportal.exceptions import (
    ConfigurationError,
    DuplicatePeriodError,
    InternalError,
    NotFoundError,
    StatPortalError,
    ValidationError,
)
from statportal.instrumentation.metrics import BULK_IMPORT_DURATION, record_import_rows

logger = get_logger()

BULK_IMPORT_RECORD_ID = "bulk_import"
ROW_UPDATE_FIELDS = ("value", "status", "notes", "source_document")
SUCCESS_POLICIES = ("lenient", "strict")


class ImportOperation(str, Enum):
    """What to do with a row whose period already has data."""
    UPSERT = "upsert"
    UPDATE = "update"
    SKIP = "skip"


@dataclass
class RowError:
    row: int
    error: str
    data: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"row": self.row, "error": self.error, "data": self.data}


@dataclass
class BulkImportResult:
    total_rows: int = 0
    imported_count: int = 0
    updated_count: int = 0
    skipped_count: int = 0
    errors: List[RowError] = field(default_factory=list)
    success: bool = False

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def counts(self) -> Dict[str, int]:
        return {
            "imported": self.imported_count,
            "updated": self.updated_count,
            "skipped": self.skipped_count,
            "errors": self.error_count,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "imported_count": self.imported_count,
            "updated_count": self.updated_count,
            "skipped_count": self.skipped_count,
            "error_count": self.error_count,
            "errors": [e.to_dict() for e in self.errors],
        }


def _coerce_operation(operation: Any) -> ImportOperation:
    try:
        return ImportOperation(str(operation or ImportOperation.UPSERT.value).strip().lower())
    except ValueError:
        raise ValidationError("operation", operation, "must be one of: upsert, update, skip")


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


class BulkImportOrchestrator:
    """Run a batch of rows through the mutation engine with per-row reporting."""

    def __init__(
        self,
        db: Session,
        gate: Optional[AccessGate] = None,
        normalizer: Optional[PeriodNormalizer] = None,
        settings: Optional[dict] = None,
    ):
        settings = settings or {}
        self.db = db
        self.gate = gate or AccessGate()
        self.normalizer = normalizer or normalizer_from_settings(settings)
        self.engine = DataMutationEngine(db, gate=self.gate, normalizer=self.normalizer)
        self.max_rows = int(settings.get("BULK_IMPORT_MAX_ROWS", 5000))
        self.success_policy = str(settings.get("BULK_IMPORT_SUCCESS_POLICY", "lenient")).lower()
        if self.success_policy not in SUCCESS_POLICIES:
            raise ConfigurationError("BULK_IMPORT_SUCCESS_POLICY", "must be lenient or strict")

    def run(
        self,
        principal: Principal,
        rows: Any,
        category: Optional[str] = None,
        operation: Any = ImportOperation.UPSERT.value,
    ) -> BulkImportResult:
        op = _coerce_operation(operation)
        category = None if _blank(category) else str(category).strip()
        self._check_request(principal, rows, category)

        started = time.perf_counter()
        result = BulkImportResult(total_rows=len(rows))

        logger.info(
            "bulk_import_started",
            user_id=principal.user_id,
            total_rows=result.total_rows,
            operation=op.value,
            category=category,
        )

        with self.engine.transaction("bulk_import"):
            for number, row in enumerate(rows, start=1):
                self._process_row(principal, number, row, category, op, result)

            self.engine.audit.record(
                BULK_IMPORT_RECORD_ID,
                principal.user_id,
                BulkImportSummary(op.value, category, result.total_rows, result.counts()),
            )

        result.success = self._is_success(result)

        BULK_IMPORT_DURATION.observe(time.perf_counter() - started)
        for outcome, count in result.counts().items():
            record_import_rows(outcome, count)

        logger.info(
            "bulk_import_completed",
            user_id=principal.user_id,
            success=result.success,
            **result.counts(),
        )
        return result

    def _check_request(self, principal: Principal, rows: Any, category: Optional[str]) -> None:
        if not isinstance(rows, list) or not rows:
            raise ValidationError("data", type(rows).__name__, "Data array is required and cannot be empty")
        if len(rows) > self.max_rows:
            raise ValidationError("data", len(rows), f"must contain at most {self.max_rows} rows")

        self.gate.require(principal, Capability.IMPORT)
        if category is not None:
            if category not in {c.value for c in Category}:
                raise ValidationError("category", category, "is not a known category")
            self.gate.require(principal, Capability.IMPORT, category)

    def _process_row(
        self,
        principal: Principal,
        number: int,
        row: Any,
        category: Optional[str],
        op: ImportOperation,
        result: BulkImportResult,
    ) -> None:
        try:
            with self.db.begin_nested():
                outcome = self._import_row(principal, row, category, op)
        except InternalError:
            raise
        except StatPortalError as e:
            result.errors.append(RowError(row=number, error=e.message, data=row))
            logger.debug("bulk_import_row_failed", row=number, error_code=e.error_code)
            return

        if outcome == "imported":
            result.imported_count += 1
        elif outcome == "updated":
            result.updated_count += 1
        else:
            result.skipped_count += 1

    def _import_row(
        self,
        principal: Principal,
        row: Any,
        category: Optional[str],
        op: ImportOperation,
    ) -> str:
        if not isinstance(row, Mapping):
            raise ValidationError("row", type(row).__name__, "must be an object")
        if _blank(row.get("indicator_id")) or _blank(row.get("year")):
            raise ValidationError("indicator_id", row.get("indicator_id"), "indicator_id and year are required")

        indicator = self.engine.catalog.require_active(str(row["indicator_id"]).strip())
        if category is not None and indicator.category != category:
            raise ValidationError(
                "indicator_id", indicator.id, "Indicator does not belong to specified category"
            )
        self.gate.require(principal, Capability.IMPORT, indicator.category)

        period = self.normalizer.normalize(
            indicator.period_type,
            row.get("year"),
            row.get("period_month"),
            row.get("period_quarter"),
        )
        existing = self.engine.resolver.find(indicator.id, period)

        if existing is None:
            if op == ImportOperation.UPDATE:
                raise NotFoundError(
                    "Indicator data", period.label, reason="Data does not exist for update operation"
                )
            try:
                self.engine.insert_point(principal, indicator, period, row)
            except DuplicatePeriodError:
                # lost a race with a concurrent writer
                if op == ImportOperation.SKIP:
                    return "skipped"
                raise
            return "imported"

        if op == ImportOperation.SKIP:
            return "skipped"

        # a row with none of these still counts as a revision
        patch = {k: row[k] for k in ROW_UPDATE_FIELDS if k in row}
        self.engine.apply_patch(principal, existing, indicator, patch)
        return "updated"

    def _is_success(self, result: BulkImportResult) -> bool:
        if result.error_count == 0:
            return True
        if self.success_policy == "strict":
            return False
        return result.error_count < result.total_rows / 2

    def template(self) -> Dict[str, Any]:
        """Field schema and a sample row for import files."""
        return {
            "fields": [
                {"name": "indicator_id", "type": "string", "required": True,
                 "description": "UUID of the indicator"},
                {"name": "year", "type": "number", "required": True,
                 "description": f"Data year ({self.normalizer.min_year}-{self.normalizer.max_year})"},
                {"name": "period_month", "type": "number", "required": False,
                 "description": "1-12, required for monthly indicators"},
                {"name": "period_quarter", "type": "number", "required": False,
                 "description": "1-4, required for quarterly indicators"},
                {"name": "value", "type": "number", "required": False,
                 "description": "Numerical value"},
                {"name": "status", "type": "string", "required": False,
                 "description": "draft|preliminary (default: draft); final is set by verification"},
                {"name": "notes", "type": "string", "required": False,
                 "description": "Additional notes"},
                {"name": "source_document", "type": "string", "required": False,
                 "description": "Source document reference"},
            ],
            "operations": [op.value for op in ImportOperation],
            "sample_data": [
                {
                    "indicator_id": "f40d7462-a66c-49f5-a4ba-1cf5742b87f2",
                    "year": self.normalizer.clock().year,
                    "value": 17500.50,
                    "status": "draft",
                    "notes": "Preliminary estimate",
                    "source_document": "BPS Survey",
                }
            ],
        }

    def visible_indicators(self, principal: Principal, category: Optional[str] = None) -> List[Dict[str, Any]]:
        indicators = self.engine.catalog.visible_to(
            principal, self.gate, None if _blank(category) else category
        )
        return [
            {
                "id": i.id,
                "code": i.code,
                "name": i.name,
                "category": i.category,
                "unit": i.unit,
                "period_type": i.period_type,
            }
            for i in indicators
        ]
