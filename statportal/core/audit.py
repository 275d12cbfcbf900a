"""Audit trail payloads and writer.

Payloads are stored as opaque JSON in ``data_audit_log``; in code every action
has its own payload type so callers cannot mix up old/new values.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import select
from sqlalchemy.orm import Session
from structlog import get_logger

from statportal.database.models import AuditAction, AuditLogEntry, IndicatorDataPoint

logger = get_logger()

DATA_TABLE = IndicatorDataPoint.__tablename__

SNAPSHOT_FIELDS = (
    "id", "indicator_id", "year", "period_month", "period_quarter", "value",
    "status", "notes", "source_document", "revision_number", "created_by",
    "verified_by", "verified_at", "created_at", "updated_at",
)


def _json_safe(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def snapshot(point: IndicatorDataPoint) -> Dict[str, Any]:
    """Serializable copy of a data point's columns."""
    return {name: _json_safe(getattr(point, name)) for name in SNAPSHOT_FIELDS}


@dataclass(frozen=True)
class CreateSnapshot:
    record: Dict[str, Any]
    action = AuditAction.CREATE

    def old_values(self) -> Optional[Dict[str, Any]]:
        return None

    def new_values(self) -> Dict[str, Any]:
        return self.record


@dataclass(frozen=True)
class UpdatePatch:
    before: Dict[str, Any]
    patch: Dict[str, Any]
    action = AuditAction.UPDATE

    def old_values(self) -> Dict[str, Any]:
        return self.before

    def new_values(self) -> Dict[str, Any]:
        return {k: _json_safe(v) for k, v in self.patch.items()}


@dataclass(frozen=True)
class DeleteSnapshot:
    record: Dict[str, Any]
    action = AuditAction.DELETE

    def old_values(self) -> Dict[str, Any]:
        return self.record

    def new_values(self) -> Dict[str, Any]:
        return {"deleted": True}


@dataclass(frozen=True)
class VerifyTransition:
    previous_status: str
    verified_by: str
    verified_at: datetime
    action = AuditAction.VERIFY

    def old_values(self) -> Dict[str, Any]:
        return {"status": self.previous_status}

    def new_values(self) -> Dict[str, Any]:
        return {
            "status": "final",
            "verified_by": self.verified_by,
            "verified_at": _json_safe(self.verified_at),
        }


@dataclass(frozen=True)
class BulkImportSummary:
    operation: str
    category: Optional[str]
    total_rows: int
    counts: Dict[str, int] = field(default_factory=dict)
    action = AuditAction.BULK_IMPORT

    def old_values(self) -> Optional[Dict[str, Any]]:
        return None

    def new_values(self) -> Dict[str, Any]:
        return {
            "operation": self.operation,
            "category": self.category or "mixed",
            "total_rows": self.total_rows,
            "counts": dict(self.counts),
        }


AuditPayload = Union[CreateSnapshot, UpdatePatch, DeleteSnapshot, VerifyTransition, BulkImportSummary]


class AuditLogWriter:
    """Append audit entries inside the caller's transaction."""

    def __init__(self, db: Session, table_name: str = DATA_TABLE):
        self.db = db
        self.table_name = table_name

    def record(self, record_id: str, user_id: str, payload: AuditPayload) -> AuditLogEntry:
        entry = AuditLogEntry(
            table_name=self.table_name,
            record_id=str(record_id),
            action=payload.action.value,
            user_id=user_id,
            old_values=payload.old_values(),
            new_values=payload.new_values(),
        )
        self.db.add(entry)
        self.db.flush()

        logger.debug(
            "audit_entry_written",
            audit_id=entry.id,
            action=entry.action,
            record_id=entry.record_id,
        )
        return entry

    def history(self, record_id: str) -> List[AuditLogEntry]:
        stmt = (
            select(AuditLogEntry)
            .where(
                AuditLogEntry.table_name == self.table_name,
                AuditLogEntry.record_id == str(record_id),
            )
            .order_by(AuditLogEntry.id.asc())
        )
        return list(self.db.execute(stmt).scalars().all())


def entry_to_dict(entry: AuditLogEntry) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "table_name": entry.table_name,
        "record_id": entry.record_id,
        "action": entry.action,
        "user_id": entry.user_id,
        "old_values": entry.old_values,
        "new_values": entry.new_values,
        "created_at": _json_safe(entry.created_at),
    }
