"""Request body models for the admin API.

Shapes only; period, value and status rules are enforced by the data core so
that the single-record and bulk paths reject the same input the same way.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CreateDataPointRequest(BaseModel):
    """Body of ``POST /indicator-data``."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    indicator_id: str = Field(..., min_length=1)
    year: Any = None
    period_month: Any = None
    period_quarter: Any = None
    value: Any = None
    status: Optional[str] = None
    notes: Optional[str] = None
    source_document: Optional[str] = None


class UpdateDataPointRequest(BaseModel):
    """Body of ``PUT /indicator-data/{id}``; only fields that were sent are applied."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    year: Any = None
    period_month: Any = None
    period_quarter: Any = None
    value: Any = None
    status: Optional[str] = None
    notes: Optional[str] = None
    source_document: Optional[str] = None

    def patch(self) -> dict:
        return self.model_dump(exclude_unset=True)


class BulkImportRequest(BaseModel):
    """Body of ``POST /bulk-import``."""
    model_config = ConfigDict(str_strip_whitespace=True)

    data: Any = None
    category: Optional[str] = None
    operation: str = "upsert"

    @field_validator("operation")
    @classmethod
    def validate_operation(cls, v: str) -> str:
        v = (v or "upsert").lower()
        if v not in ("upsert", "update", "skip"):
            raise ValueError("operation must be one of: upsert, update, skip")
        return v
