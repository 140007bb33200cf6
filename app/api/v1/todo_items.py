"""Todo item API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.permission_deps import require_permission
from app.core.permissions import Permission
from app.core.unit_of_work import UnitOfWorkDep
from app.schemas.response import ApiResponse, error_response
from app.schemas.todo import (
    TodoItemCreate,
    TodoItemDetailResponse,
    TodoItemResponse,
    TodoItemUpdate,
    TodoListSummary,
)
from app.services import todo_items as service

router = APIRouter(prefix="/api/todos/items", tags=["todo-items"])


@router.post(
    "",
    response_model=ApiResponse[TodoItemResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission(Permission.TODO_ITEMS_CREATE))],
)
async def create_todo_item(
    body: TodoItemCreate,
    uow: UnitOfWorkDep,
) -> ApiResponse[TodoItemResponse] | JSONResponse:
    result = await service.create_todo_item(uow, body)
    if isinstance(result, list):
        return error_response(result)
    return ApiResponse.success(TodoItemResponse.model_validate(result), "Todo item created")


@router.get(
    "/{item_id}",
    response_model=ApiResponse[TodoItemDetailResponse],
    dependencies=[Depends(require_permission(Permission.TODO_ITEMS_VIEW))],
)
async def get_todo_item(
    item_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ApiResponse[TodoItemDetailResponse] | JSONResponse:
    result = await service.get_todo_item(db, item_id)
    if isinstance(result, list):
        return error_response(result)
    item, todo_list = result
    detail = TodoItemDetailResponse.model_validate(item)
    if todo_list is not None:
        detail.todo_list = TodoListSummary.model_validate(todo_list)
    return ApiResponse.success(detail)


@router.put(
    "/{item_id}",
    response_model=ApiResponse[TodoItemResponse],
    dependencies=[Depends(require_permission(Permission.TODO_ITEMS_UPDATE))],
)
async def update_todo_item(
    item_id: int,
    body: TodoItemUpdate,
    uow: UnitOfWorkDep,
) -> ApiResponse[TodoItemResponse] | JSONResponse:
    result = await service.update_todo_item(uow, item_id, body)
    if isinstance(result, list):
        return error_response(result)
    return ApiResponse.success(TodoItemResponse.model_validate(result), "Todo item updated")


@router.patch(
    "/{item_id}/complete",
    response_model=ApiResponse[TodoItemResponse],
    dependencies=[Depends(require_permission(Permission.TODO_ITEMS_TRACK))],
)
async def complete_todo_item(
    item_id: int,
    uow: UnitOfWorkDep,
) -> ApiResponse[TodoItemResponse] | JSONResponse:
    """Mark an item as done; completing it twice is a conflict (409)."""
    result = await service.complete_todo_item(uow, item_id)
    if isinstance(result, list):
        return error_response(result)
    return ApiResponse.success(TodoItemResponse.model_validate(result), "Todo item completed")


@router.delete(
    "/{item_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    dependencies=[Depends(require_permission(Permission.TODO_ITEMS_DELETE))],
)
async def delete_todo_item(item_id: int, uow: UnitOfWorkDep) -> Response:
    result = await service.delete_todo_item(uow, item_id)
    if isinstance(result, list):
        return error_response(result)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
