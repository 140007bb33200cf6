"""
Todo list API endpoints.

Every route requires the matching ``todo.lists.*`` permission. Domain
errors come back as an ``ApiResponse`` whose HTTP status follows the first
error's type.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import Filtering, Paging, Searching, Sorting
from app.core.database import get_db
from app.core.permission_deps import require_permission
from app.core.permissions import Permission
from app.core.unit_of_work import UnitOfWorkDep
from app.schemas.response import ApiResponse, error_response
from app.schemas.todo import (
    TodoListCreate,
    TodoListDetailResponse,
    TodoListResponse,
    TodoListUpdate,
)
from app.services import todo_lists as service

router = APIRouter(prefix="/api/todos/lists", tags=["todo-lists"])


@router.post(
    "",
    response_model=ApiResponse[TodoListResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission(Permission.TODO_LISTS_CREATE))],
)
async def create_todo_list(
    body: TodoListCreate,
    uow: UnitOfWorkDep,
) -> ApiResponse[TodoListResponse] | JSONResponse:
    result = await service.create_todo_list(uow, body)
    if isinstance(result, list):
        return error_response(result)
    return ApiResponse.success(TodoListResponse.model_validate(result), "Todo list created")


@router.get(
    "",
    response_model=ApiResponse[list[TodoListResponse]],
    dependencies=[Depends(require_permission(Permission.TODO_LISTS_LIST))],
)
async def list_todo_lists(
    paging: Paging,
    sorting: Sorting,
    searching: Searching,
    filtering: Filtering,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ApiResponse[list[TodoListResponse]]:
    """
    Page through todo lists.

    Supports free-text search, sorting and filter expressions such as
    ``filters=title[contains]=home&colour[eq]=#FF5733``.
    """
    paged = await service.get_todo_lists(db, paging, sorting, searching, filtering.filters)
    paged.items = [TodoListResponse.model_validate(item) for item in paged.items]  # type: ignore[misc]
    return ApiResponse.paginated(paged)


@router.get(
    "/{list_id}",
    response_model=ApiResponse[TodoListDetailResponse],
    dependencies=[Depends(require_permission(Permission.TODO_LISTS_VIEW))],
)
async def get_todo_list(
    list_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ApiResponse[TodoListDetailResponse] | JSONResponse:
    result = await service.get_todo_list(db, list_id)
    if isinstance(result, list):
        return error_response(result)
    todo_list, is_completed = result
    detail = TodoListDetailResponse.model_validate(todo_list)
    detail.is_completed = is_completed
    return ApiResponse.success(detail)


@router.put(
    "/{list_id}",
    response_model=ApiResponse[TodoListResponse],
    dependencies=[Depends(require_permission(Permission.TODO_LISTS_UPDATE))],
)
async def update_todo_list(
    list_id: int,
    body: TodoListUpdate,
    uow: UnitOfWorkDep,
) -> ApiResponse[TodoListResponse] | JSONResponse:
    result = await service.update_todo_list(uow, list_id, body)
    if isinstance(result, list):
        return error_response(result)
    return ApiResponse.success(TodoListResponse.model_validate(result), "Todo list updated")


@router.delete(
    "/{list_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    dependencies=[Depends(require_permission(Permission.TODO_LISTS_DELETE))],
)
async def delete_todo_list(list_id: int, uow: UnitOfWorkDep) -> Response:
    """Delete a list together with all of its items."""
    result = await service.delete_todo_list(uow, list_id)
    if isinstance(result, list):
        return error_response(result)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
