"""Shared FastAPI dependencies for the admin routers."""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from statportal.core.access import AccessGate
from statportal.core.bulk_import import BulkImportOrchestrator
from statportal.core.mutations import DataMutationEngine
from statportal.core.periods import normalizer_from_settings
from statportal.database.connection import get_db

ACCESS_GATE = AccessGate()


def get_settings(request: Request) -> dict:
    return getattr(request.app.state, "settings", None) or {}


def get_engine(db: Session = Depends(get_db), settings: dict = Depends(get_settings)) -> DataMutationEngine:
    return DataMutationEngine(db, gate=ACCESS_GATE, normalizer=normalizer_from_settings(settings))


def get_orchestrator(db: Session = Depends(get_db),
                     settings: dict = Depends(get_settings)) -> BulkImportOrchestrator:
    return BulkImportOrchestrator(db, gate=ACCESS_GATE, settings=settings)
