"""Shared error envelope and pagination schemas."""

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """A single field-level or contextual error detail."""

    field: str | None = None
    message: str


class ErrorBody(BaseModel):
    """Structured error body returned inside every error response."""

    code: str
    message: str
    details: list[ErrorDetail] = []
    request_id: str = Field(alias="requestId")

    model_config = {"populate_by_name": True}


class ErrorResponse(BaseModel):
    """Top-level error envelope, referenced from route ``responses=`` docs."""

    error: ErrorBody


class PaginationMeta(BaseModel):
    """Page-based pagination counters."""

    page: int
    limit: int
    total_items: int = Field(alias="totalItems")
    total_pages: int = Field(alias="totalPages")

    model_config = {"populate_by_name": True}

    @classmethod
    def build(cls, page: int, limit: int, total_items: int) -> "PaginationMeta":
        total_pages = (total_items + limit - 1) // limit if limit else 0
        return cls(page=page, limit=limit, total_items=total_items, total_pages=total_pages)
