"""Pydantic schemas for contact records and read endpoints."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.features.contacts.models import EMAIL_MAX_LENGTH, NAME_MAX_LENGTH


class ImportRecord(BaseModel):
    """One candidate contact in an import batch.

    Only the shape is validated here; the email is compared byte-for-byte
    against stored contacts, so no case folding or trimming is applied.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=NAME_MAX_LENGTH, description="Display name")
    email: str = Field(
        ...,
        min_length=3,
        max_length=EMAIL_MAX_LENGTH,
        pattern=r"^[^@\s]+@[^@\s]+$",
        description="Email address (natural key, exact match)",
    )
    metadata: dict[str, Any] | None = Field(
        None,
        description="Opaque JSON object stored alongside the contact",
    )


class ContactResponse(BaseModel):
    """A stored contact."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int = Field(..., description="System-generated contact ID")
    name: str
    email: str
    metadata: dict[str, Any] | None = Field(
        None,
        validation_alias="meta",
        description="Caller-supplied JSON object",
    )
    created_at: datetime = Field(..., description="When the contact was first imported")
    updated_at: datetime = Field(..., description="When the contact was last overwritten")
