"""Domain events raised by todo lists and todo items."""

from dataclasses import dataclass
from typing import TYPE_CHECKING

from app.core.events import DomainEvent

if TYPE_CHECKING:
    from app.models.todo import TodoItems, TodoLists


@dataclass(frozen=True, kw_only=True)
class TodoListCreated(DomainEvent):
    todo_list: "TodoLists"


@dataclass(frozen=True, kw_only=True)
class TodoListUpdated(DomainEvent):
    todo_list: "TodoLists"


@dataclass(frozen=True, kw_only=True)
class TodoListDeleted(DomainEvent):
    todo_list: "TodoLists"


@dataclass(frozen=True, kw_only=True)
class TodoItemCreated(DomainEvent):
    item: "TodoItems"


@dataclass(frozen=True, kw_only=True)
class TodoItemUpdated(DomainEvent):
    item: "TodoItems"


@dataclass(frozen=True, kw_only=True)
class TodoItemCompleted(DomainEvent):
    item: "TodoItems"


@dataclass(frozen=True, kw_only=True)
class TodoItemDeleted(DomainEvent):
    item: "TodoItems"
