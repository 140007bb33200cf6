"""
Response envelope shared by every endpoint.

Success and failure both travel as ``ApiResponse``: the payload in ``data``,
typed errors in ``errors``, paging in ``pagination``. ``error_response`` turns
a list of domain errors into a JSONResponse with the matching HTTP status.
"""

import math
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from app.config import settings
from app.core.errors import Error, status_code_for
from app.core.logging import get_request_id
from app.models.base import utc_now
from app.schemas.base import UTCDatetime

T = TypeVar("T")

DEFAULT_ERROR_MESSAGE = "An error occurred"


class ErrorDetail(BaseModel):
    code: str
    description: str
    type: str

    @classmethod
    def from_error(cls, error: Error) -> "ErrorDetail":
        return cls(code=error.code, description=error.description, type=error.type.value)


class PaginationMetadata(BaseModel):
    """Paging information for list responses."""

    current_page: int
    page_size: int
    total_items: int
    total_pages: int
    has_previous: bool
    has_next: bool
    first_item_index: int
    last_item_index: int

    @classmethod
    def create(cls, page_number: int, page_size: int, total_items: int) -> "PaginationMetadata":
        total_pages = math.ceil(total_items / page_size) if page_size > 0 else 0
        first = (page_number - 1) * page_size + 1 if total_items > 0 else 0
        last = min(page_number * page_size, total_items) if total_items > 0 else 0
        return cls(
            current_page=page_number,
            page_size=page_size,
            total_items=total_items,
            total_pages=total_pages,
            has_previous=page_number > 1,
            has_next=page_number < total_pages,
            first_item_index=first,
            last_item_index=last,
        )


@dataclass
class PagedList(Generic[T]):
    """One page of results plus the total count across all pages."""

    items: list[T]
    page_number: int
    page_size: int
    total_count: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.page_size) if self.page_size > 0 else 0

    @property
    def has_previous(self) -> bool:
        return self.page_number > 1

    @property
    def has_next(self) -> bool:
        return self.page_number < self.total_pages

    def metadata(self) -> PaginationMetadata:
        return PaginationMetadata.create(self.page_number, self.page_size, self.total_count)


class ApiResponse(BaseModel, Generic[T]):
    """
    Standard API envelope.

    Example success body::

        {"is_success": true, "data": {...}, "message": null, "errors": [],
         "timestamp": "2024-01-01T00:00:00Z", "api_version": "1.0",
         "request_id": "...", "pagination": null, "links": null, "metadata": null}
    """

    is_success: bool
    data: T | None = None
    message: str | None = None
    errors: list[ErrorDetail] = Field(default_factory=list)
    timestamp: UTCDatetime = Field(default_factory=utc_now)
    api_version: str = Field(default_factory=lambda: settings.API_VERSION)
    request_id: str | None = Field(default_factory=get_request_id)
    pagination: PaginationMetadata | None = None
    links: dict[str, str] | None = None
    metadata: dict[str, Any] | None = None

    @classmethod
    def success(cls, data: T, message: str | None = None) -> "ApiResponse[T]":
        return cls(is_success=True, data=data, message=message)

    @classmethod
    def success_without_data(cls, message: str | None = None) -> "ApiResponse[T]":
        return cls(is_success=True, message=message)

    @classmethod
    def error(
        cls, errors: list[Error], message: str = DEFAULT_ERROR_MESSAGE
    ) -> "ApiResponse[T]":
        return cls(
            is_success=False,
            message=message,
            errors=[ErrorDetail.from_error(e) for e in errors],
        )

    @classmethod
    def paginated(cls, paged: PagedList[Any], message: str | None = None) -> "ApiResponse[T]":
        return cls(
            is_success=True,
            data=paged.items,  # type: ignore[arg-type]
            message=message,
            pagination=paged.metadata(),
        )


def error_response(errors: list[Error], message: str = DEFAULT_ERROR_MESSAGE) -> JSONResponse:
    """Envelope a list of domain errors; the first error picks the HTTP status."""
    body = ApiResponse[Any].error(errors, message)
    return JSONResponse(status_code=status_code_for(errors), content=body.model_dump(mode="json"))
