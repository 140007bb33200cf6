"""
Query parameter models for list endpoints: paging, sorting, searching and
filtering. Consumed by app.services.query and exposed through
app.api.dependencies.
"""

from typing import Literal

from pydantic import BaseModel, Field, computed_field

from app.config import PaginationDefaults


class PagingParams(BaseModel):
    """Common pagination query parameters."""

    page_number: int = Field(default=PaginationDefaults.PAGE_NUMBER, ge=1, description="Page number")
    page_size: int = Field(
        default=PaginationDefaults.PAGE_SIZE,
        ge=1,
        le=PaginationDefaults.MAX_PAGE_SIZE,
        description="Items per page",
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def offset(self) -> int:
        """Calculate offset from page_number and page_size."""
        return (self.page_number - 1) * self.page_size


class SortParams(BaseModel):
    """Sort field and direction."""

    sort_by: str | None = Field(default=None, description="Field to sort by")
    sort_order: Literal["asc", "desc"] = Field(default="asc", description="Sort order")

    @property
    def is_descending(self) -> bool:
        return self.sort_order == "desc"


class SearchParams(BaseModel):
    """
    Free-text search over string fields.

    Without ``search_fields`` every searchable field of the resource is used;
    a row matches when any field matches.
    """

    search_term: str | None = Field(default=None, description="Text to search for")
    search_fields: list[str] | None = Field(default=None, description="Fields to search in")
    case_sensitive: bool = False
    exact_match: bool = False
    starts_with: bool = False


class FilterParams(BaseModel):
    """
    Filter expression as a query string, for example
    ``title[contains]=home&or_colour[eq]=#FF5733``.
    """

    filters: str | None = Field(default=None, description="Filter expression")
