"""Indicator data endpoints: single-record create, read, update, verify, delete."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends

from statportal.api.dependencies import get_engine
from statportal.core.access import Principal
from statportal.core.audit import entry_to_dict, snapshot
from statportal.core.mutations import DataMutationEngine
from statportal.core.periods import PeriodKey
from statportal.database.models import Indicator, IndicatorDataPoint
from statportal.security.auth import get_current_principal
from statportal.validators import CreateDataPointRequest, UpdateDataPointRequest

router = APIRouter(prefix="/indicator-data", tags=["Indicator Data"])


def serialize_point(point: IndicatorDataPoint, indicator: Optional[Indicator] = None) -> Dict[str, Any]:
    """Data point with its period label and indicator summary."""
    indicator = indicator or point.indicator
    data = snapshot(point)
    data["period_key"] = point.period_key
    data["period_label"] = PeriodKey(point.year, point.period_month, point.period_quarter).label
    if indicator is not None:
        data["indicator_name"] = indicator.name
        data["category"] = indicator.category
        data["unit"] = indicator.unit
        data["period_type"] = indicator.period_type
    return data


@router.post("", status_code=201)
def create_indicator_data(
    body: CreateDataPointRequest,
    principal: Principal = Depends(get_current_principal),
    engine: DataMutationEngine = Depends(get_engine),
):
    point = engine.create(principal, body.model_dump())
    return {
        "success": True,
        "message": "Indicator data created successfully",
        "data": serialize_point(point),
    }


@router.get("/{data_id}")
def get_indicator_data(
    data_id: str,
    principal: Principal = Depends(get_current_principal),
    engine: DataMutationEngine = Depends(get_engine),
):
    point, indicator = engine.get(principal, data_id)
    return {"success": True, "data": serialize_point(point, indicator)}


@router.put("/{data_id}")
def update_indicator_data(
    data_id: str,
    body: UpdateDataPointRequest,
    principal: Principal = Depends(get_current_principal),
    engine: DataMutationEngine = Depends(get_engine),
):
    point = engine.update(principal, data_id, body.patch())
    return {
        "success": True,
        "message": "Indicator data updated successfully",
        "data": serialize_point(point),
    }


@router.delete("/{data_id}")
def delete_indicator_data(
    data_id: str,
    principal: Principal = Depends(get_current_principal),
    engine: DataMutationEngine = Depends(get_engine),
):
    deleted = engine.delete(principal, data_id)
    return {
        "success": True,
        "message": "Indicator data deleted successfully",
        "data": {"id": deleted["id"]},
    }


@router.post("/{data_id}/verify")
def verify_indicator_data(
    data_id: str,
    principal: Principal = Depends(get_current_principal),
    engine: DataMutationEngine = Depends(get_engine),
):
    point = engine.verify(principal, data_id)
    return {
        "success": True,
        "message": "Data verified successfully",
        "data": serialize_point(point),
    }


@router.get("/{data_id}/history")
def get_indicator_data_history(
    data_id: str,
    principal: Principal = Depends(get_current_principal),
    engine: DataMutationEngine = Depends(get_engine),
):
    entries = engine.history(principal, data_id)
    return {"success": True, "data": [entry_to_dict(e) for e in entries]}
