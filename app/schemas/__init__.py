"""
Pydantic schemas for API responses and requests
"""
from app.models.todo import TodoItemBase, TodoListBase  # Re-export from models
from app.models.user import UserBase  # Re-export from models
from app.schemas.auth import (
    CurrentUserResponse,
    LoginRequest,
    LogoutAllResponse,
    LogoutRequest,
    RefreshRequest,
    TokenResponse,
    UserAuthorizationData,
)
from app.schemas.query import FilterParams, PagingParams, SearchParams, SortParams
from app.schemas.response import ApiResponse, ErrorDetail, PagedList, PaginationMetadata
from app.schemas.todo import (
    TodoItemCreate,
    TodoItemDetailResponse,
    TodoItemResponse,
    TodoItemUpdate,
    TodoListCreate,
    TodoListDetailResponse,
    TodoListResponse,
    TodoListSummary,
    TodoListUpdate,
)

__all__ = [
    # Auth schemas
    "UserBase",
    "UserAuthorizationData",
    "LoginRequest",
    "RefreshRequest",
    "LogoutRequest",
    "TokenResponse",
    "CurrentUserResponse",
    "LogoutAllResponse",
    # Query schemas
    "PagingParams",
    "SortParams",
    "SearchParams",
    "FilterParams",
    # Envelope
    "ApiResponse",
    "ErrorDetail",
    "PaginationMetadata",
    "PagedList",
    # Todo schemas
    "TodoListBase",
    "TodoListCreate",
    "TodoListUpdate",
    "TodoListResponse",
    "TodoListDetailResponse",
    "TodoListSummary",
    "TodoItemBase",
    "TodoItemCreate",
    "TodoItemUpdate",
    "TodoItemResponse",
    "TodoItemDetailResponse",
]
