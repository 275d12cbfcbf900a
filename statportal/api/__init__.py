"""Admin API routers."""

from fastapi import APIRouter

from .bulk_import import router as bulk_import_router
from .indicator_data import router as indicator_data_router

# Main admin router that combines all sub-routers
router = APIRouter(prefix="/api/admin")

router.include_router(indicator_data_router)
router.include_router(bulk_import_router)
