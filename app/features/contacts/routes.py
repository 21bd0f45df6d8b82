"""Read-only API routes for imported contacts."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.exceptions import NotFoundError
from app.features.contacts.schemas import ContactResponse
from app.features.contacts.service import ContactStore
from app.shared.schemas import PaginatedResponse, PaginationParams

router = APIRouter(prefix="/contacts", tags=["contacts"])


@router.get(
    "",
    response_model=PaginatedResponse[ContactResponse],
    summary="List contacts",
)
async def list_contacts(
    db: AsyncSession = Depends(get_db),
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    page_size: int = Query(50, ge=1, le=1000, description="Contacts per page"),
    email: str | None = Query(None, max_length=320, description="Exact email filter"),
) -> PaginatedResponse[ContactResponse]:
    """List contacts ordered by ID, optionally filtered by exact email."""
    pagination = PaginationParams(page=page, page_size=page_size)
    contacts, total = await ContactStore().list_contacts(db, pagination, email=email)
    return PaginatedResponse[ContactResponse].build(
        [ContactResponse.model_validate(c) for c in contacts],
        total,
        pagination,
    )


@router.get(
    "/{contact_id}",
    response_model=ContactResponse,
    summary="Get contact by ID",
)
async def get_contact(
    contact_id: int,
    db: AsyncSession = Depends(get_db),
) -> ContactResponse:
    """Get a single contact.

    Raises:
        NotFoundError: If no contact has this ID.
    """
    contact = await ContactStore().get_contact(db, contact_id)
    if contact is None:
        raise NotFoundError(
            message=f"Contact not found: {contact_id}",
            details={"contact_id": contact_id},
        )
    return ContactResponse.model_validate(contact)
