"""Response envelopes.

Success: {"data": ...}, plus {"meta": ...} for paged collections.
Failure: {"error": {"code", "message", "details"}}.
"""

from typing import Generic, TypeVar

from pydantic import BaseModel, computed_field

T = TypeVar("T")


class PaginationMeta(BaseModel):
    """Paging info for GET /users.

    Attributes:
        total: Matching rows across all pages.
        page: 1-indexed page that was returned.
        per_page: Page size that was requested.
    """

    total: int
    page: int
    per_page: int

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_pages(self) -> int:
        # Ceiling division; an empty result has zero pages
        return -(-self.total // self.per_page) if self.total else 0


class DataResponse(BaseModel, Generic[T]):
    data: T


class ListResponse(BaseModel, Generic[T]):
    data: list[T]
    meta: PaginationMeta


class ErrorDetail(BaseModel):
    code: str
    message: str
    details: list[dict] | None = None


class ErrorResponse(BaseModel):
    """Body written by every exception handler in app.main."""

    error: ErrorDetail
