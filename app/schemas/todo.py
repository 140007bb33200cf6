"""
Todo list and todo item schemas.

Request bodies are deliberately loose (plain strings and ints): the todo
services validate them and report every problem with a stable error code.
"""

from datetime import datetime

from pydantic import BaseModel

from app.models.todo import TodoItemBase, TodoListBase
from app.schemas.base import UTCDatetimeOptional

# ===== Lists =====


class TodoListCreate(BaseModel):
    title: str = ""
    colour: str = ""


class TodoListUpdate(TodoListCreate):
    pass


class TodoListResponse(TodoListBase):
    """Todo list as returned by list and create endpoints."""

    id: int
    created_at: UTCDatetimeOptional = None
    created_by: str | None = None

    model_config = {"from_attributes": True}


class TodoListDetailResponse(TodoListResponse):
    updated_at: UTCDatetimeOptional = None
    updated_by: str | None = None
    is_completed: bool = False


class TodoListSummary(BaseModel):
    id: int
    title: str

    model_config = {"from_attributes": True}


# ===== Items =====


class TodoItemCreate(BaseModel):
    list_id: int
    title: str = ""
    note: str | None = None
    priority: int = 0
    reminder: datetime | None = None


class TodoItemUpdate(BaseModel):
    title: str = ""
    note: str | None = None
    priority: int = 0
    reminder: datetime | None = None


class TodoItemResponse(TodoItemBase):
    id: int
    list_id: int
    done: bool = False
    done_at: UTCDatetimeOptional = None
    reminder: UTCDatetimeOptional = None

    model_config = {"from_attributes": True}


class TodoItemDetailResponse(TodoItemResponse):
    created_at: UTCDatetimeOptional = None
    created_by: str | None = None
    updated_at: UTCDatetimeOptional = None
    updated_by: str | None = None
    todo_list: TodoListSummary | None = None
