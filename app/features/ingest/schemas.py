"""Pydantic schemas for the contact import API."""

from pydantic import BaseModel, Field

from app.core.config import MAX_IMPORT_RECORDS
from app.features.contacts.schemas import ImportRecord


class ContactImportRequest(BaseModel):
    """Request body for POST /ingest/contacts."""

    records: list[ImportRecord] = Field(
        ...,
        min_length=1,
        max_length=MAX_IMPORT_RECORDS,
        description="Contacts to upsert, applied all-or-nothing",
    )


class ContactImportResponse(BaseModel):
    """Response body for POST /ingest/contacts."""

    job_id: str = Field(..., description="Ledger job that performed (or already performed) the import")
    token: str = Field(..., description="Idempotency token the job is recorded under")
    total: int = Field(..., ge=0, description="Distinct emails in the batch")
    inserted: int = Field(..., ge=0, description="Contacts created")
    updated: int = Field(..., ge=0, description="Existing contacts overwritten")
    duplicate: bool = Field(
        False,
        description="True when this token had already completed and nothing was written",
    )
    note: str | None = Field(None, description="Advisory message, e.g. about a generated token")
    duration_ms: float = Field(..., ge=0, description="Processing duration in milliseconds")
