"""Contacts feature: target store and batch upsert engine."""

from app.features.contacts.models import Contact
from app.features.contacts.routes import router
from app.features.contacts.schemas import ContactResponse, ImportRecord
from app.features.contacts.service import (
    ContactStore,
    UpsertResult,
    collapse_duplicate_emails,
    iter_chunks,
    upsert_contacts_batch,
)

__all__ = [
    "Contact",
    "ContactResponse",
    "ContactStore",
    "ImportRecord",
    "UpsertResult",
    "collapse_duplicate_emails",
    "iter_chunks",
    "router",
    "upsert_contacts_batch",
]
