"""Database models for the indicator data core."""

import uuid
from enum import Enum

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from statportal.database.connection import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class Category(str, Enum):
    """Statistical category domains."""
    DEMOGRAFI = "Statistik Demografi & Sosial"
    EKONOMI = "Statistik Ekonomi"
    LINGKUNGAN = "Statistik Lingkungan Hidup & Multi-Domain"


class PeriodType(str, Enum):
    """Indicator period granularity."""
    YEARLY = "yearly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"


class DataStatus(str, Enum):
    """Data point publication status."""
    DRAFT = "draft"
    PRELIMINARY = "preliminary"
    FINAL = "final"


class AuditAction(str, Enum):
    """Audit log actions."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    VERIFY = "VERIFY"
    BULK_IMPORT = "BULK_IMPORT"
    DEACTIVATE = "DEACTIVATE"


class Indicator(Base):
    """Indicator catalog entry."""
    __tablename__ = "indicators"

    id = Column(String(36), primary_key=True, default=_new_id)
    code = Column(String(50))
    no = Column(Integer, nullable=False, default=0)  # display sequence
    name = Column(String(255), nullable=False)
    category = Column(String(100), nullable=False)  # Category enum
    subcategory = Column(String(100))
    unit = Column(String(50), nullable=False)
    period_type = Column(String(20), nullable=False, default=PeriodType.YEARLY.value)
    is_active = Column(Boolean, nullable=False, default=True)

    # Descriptive metadata
    source = Column(String(255))
    description = Column(Text)
    methodology = Column(Text)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    data_points = relationship("IndicatorDataPoint", back_populates="indicator")

    __table_args__ = (
        Index("ix_indicators_category", "category"),
        Index("ix_indicators_active", "is_active"),
    )


class IndicatorDataPoint(Base):
    """One dated value of an indicator."""
    __tablename__ = "indicator_data"

    id = Column(String(36), primary_key=True, default=_new_id)
    indicator_id = Column(String(36), ForeignKey("indicators.id"), nullable=False)

    # Period
    year = Column(Integer, nullable=False)
    period_month = Column(Integer)  # 1-12, monthly indicators only
    period_quarter = Column(Integer)  # 1-4, quarterly indicators only
    period_key = Column(String(16), nullable=False)  # "2024", "2024-M01", "2024-Q1"

    value = Column(Float)
    status = Column(String(20), nullable=False, default=DataStatus.DRAFT.value)
    notes = Column(Text)
    source_document = Column(String(500))
    revision_number = Column(Integer, nullable=False, default=1)

    # Provenance
    created_by = Column(String(36))
    verified_by = Column(String(36))
    verified_at = Column(DateTime(timezone=True))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    indicator = relationship("Indicator", back_populates="data_points")

    # period_key is never NULL, so this holds for yearly rows too
    __table_args__ = (
        UniqueConstraint("indicator_id", "period_key", name="uq_indicator_data_period"),
        CheckConstraint("period_month IS NULL OR period_quarter IS NULL", name="ck_indicator_data_one_subperiod"),
        CheckConstraint("revision_number >= 1", name="ck_indicator_data_revision"),
        Index("ix_indicator_data_indicator_year", "indicator_id", "year"),
        Index("ix_indicator_data_status", "status"),
    )


class AuditLogEntry(Base):
    """Append-only audit trail for data mutations."""
    __tablename__ = "data_audit_log"

    id = Column(Integer, primary_key=True, autoincrement=True)  # insertion order
    table_name = Column(String(64), nullable=False)
    record_id = Column(String(64), nullable=False)
    action = Column(String(20), nullable=False)  # AuditAction enum
    user_id = Column(String(36))
    old_values = Column(JSON)
    new_values = Column(JSON)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_audit_log_record", "table_name", "record_id"),
        Index("ix_audit_log_created_at", "created_at"),
    )


@event.listens_for(AuditLogEntry, "before_update")
def _reject_audit_update(mapper, connection, target):
    raise RuntimeError("Audit log entries are append-only")


@event.listens_for(AuditLogEntry, "before_delete")
def _reject_audit_delete(mapper, connection, target):
    raise RuntimeError("Audit log entries are append-only")
