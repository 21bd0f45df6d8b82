"""Building blocks shared by the contacts and jobs features."""

from app.shared.schemas import PaginatedResponse, PaginationParams

__all__ = [
    "PaginatedResponse",
    "PaginationParams",
]
