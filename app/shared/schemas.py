"""Shared Pydantic schemas for paginated read endpoints."""

import math
from typing import Generic, Self, TypeVar

from pydantic import BaseModel, Field


class PaginationParams(BaseModel):
    """Page-based pagination translated to SQL offset/limit."""

    page: int = Field(1, ge=1, description="Page number (1-indexed)")
    page_size: int = Field(50, ge=1, le=1000, description="Items per page")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def limit(self) -> int:
        return self.page_size


T = TypeVar("T")


class PaginatedResponse(BaseModel, Generic[T]):
    """One page of items with paging metadata."""

    items: list[T] = Field(..., description="Page of items")
    total: int = Field(..., ge=0, description="Total item count")
    page: int = Field(..., ge=1, description="Current page number")
    page_size: int = Field(..., ge=1, description="Items per page")
    pages: int = Field(..., ge=0, description="Total number of pages (0 when nothing matched)")

    @classmethod
    def build(cls, items: list[T], total: int, pagination: PaginationParams) -> Self:
        """Wrap a page of query results."""
        return cls(
            items=items,
            total=total,
            page=pagination.page,
            page_size=pagination.page_size,
            pages=math.ceil(total / pagination.page_size) if total else 0,
        )
