"""Bulk import endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from statportal.api.dependencies import get_orchestrator
from statportal.core.access import Principal
from statportal.core.bulk_import import BulkImportOrchestrator
from statportal.exceptions import ValidationError
from statportal.security.auth import get_current_principal
from statportal.validators import BulkImportRequest

router = APIRouter(prefix="/bulk-import", tags=["Bulk Import"])


@router.post("")
def bulk_import(
    body: BulkImportRequest,
    principal: Principal = Depends(get_current_principal),
    orchestrator: BulkImportOrchestrator = Depends(get_orchestrator),
):
    """Import rows; 207 Multi-Status when the batch did not meet the success policy."""
    result = orchestrator.run(principal, body.data, category=body.category, operation=body.operation)
    return JSONResponse(
        status_code=200 if result.success else 207,
        content=result.to_dict(),
    )


@router.get("")
def bulk_import_info(
    action: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    principal: Principal = Depends(get_current_principal),
    orchestrator: BulkImportOrchestrator = Depends(get_orchestrator),
):
    if action == "template":
        return orchestrator.template()
    if action == "indicators":
        return {"indicators": orchestrator.visible_indicators(principal, category)}
    raise ValidationError("action", action, "must be template or indicators")
