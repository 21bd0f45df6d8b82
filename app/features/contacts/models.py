"""Contact ORM model: the target store of the import pipeline.

Grain: one row per email address, enforced by uq_contact_email.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import CheckConstraint, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base, TimestampMixin

NAME_MAX_LENGTH = 255
# RFC 5321 path limit
EMAIL_MAX_LENGTH = 320


class Contact(TimestampMixin, Base):
    """Business entity keyed by email.

    Created on the first import that mentions an email. Later imports
    overwrite name/meta/updated_at and keep id/created_at. Never deleted
    by the import pipeline.

    Attributes:
        id: Primary key (system-generated).
        name: Display name.
        email: Natural key, exact match.
        meta: Opaque caller-supplied JSON object (API field `metadata`).
    """

    __tablename__ = "contact"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(NAME_MAX_LENGTH), nullable=False)
    email: Mapped[str] = mapped_column(String(EMAIL_MAX_LENGTH), nullable=False)
    meta: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)

    __table_args__ = (
        UniqueConstraint("email", name="uq_contact_email"),
        CheckConstraint("char_length(name) > 0", name="ck_contact_name_not_empty"),
        CheckConstraint("char_length(email) > 0", name="ck_contact_email_not_empty"),
    )
