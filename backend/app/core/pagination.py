"""page / per_page query parameters for the admin user listing."""

from dataclasses import dataclass

from fastapi import Query

_DEFAULT_PER_PAGE = 20
_MAX_PER_PAGE = 100


@dataclass(frozen=True)
class PaginationParams:
    page: int
    per_page: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page

    @property
    def limit(self) -> int:
        return self.per_page


def pagination_params(
    page: int = Query(default=1, ge=1, description="1-indexed page"),
    per_page: int = Query(
        default=_DEFAULT_PER_PAGE,
        ge=1,
        le=_MAX_PER_PAGE,
        description=f"Users per page (max {_MAX_PER_PAGE})",
    ),
) -> PaginationParams:
    """FastAPI dependency; out-of-range values fail request validation (400)."""
    return PaginationParams(page=page, per_page=per_page)
