"""
Common query parameter dependencies for API endpoints.

The parameter models live in app.schemas.query; these aliases let routes
declare them in one line. Search is built by a function because FastAPI
only reads repeated query values (``search_fields``) from explicit Query()
parameters.
"""

from typing import Annotated

from fastapi import Depends, Query

from app.schemas.query import FilterParams, PagingParams, SearchParams, SortParams


def get_search_params(
    search_term: Annotated[str | None, Query(description="Text to search for")] = None,
    search_fields: Annotated[list[str] | None, Query(description="Fields to search in")] = None,
    case_sensitive: bool = False,
    exact_match: bool = False,
    starts_with: bool = False,
) -> SearchParams:
    return SearchParams(
        search_term=search_term,
        search_fields=search_fields,
        case_sensitive=case_sensitive,
        exact_match=exact_match,
        starts_with=starts_with,
    )


Paging = Annotated[PagingParams, Depends()]
Sorting = Annotated[SortParams, Depends()]
Searching = Annotated[SearchParams, Depends(get_search_params)]
Filtering = Annotated[FilterParams, Depends()]
