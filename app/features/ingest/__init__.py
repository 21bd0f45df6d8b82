"""Ingest feature: idempotent, all-or-nothing contact imports."""

from app.features.ingest.routes import router
from app.features.ingest.schemas import ContactImportRequest, ContactImportResponse
from app.features.ingest.service import ImportOrchestrator, ImportOutcome

__all__ = [
    "ContactImportRequest",
    "ContactImportResponse",
    "ImportOrchestrator",
    "ImportOutcome",
    "router",
]
