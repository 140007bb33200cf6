"""
SQLModel-based Todo models

A TodoList owns its TodoItems (deleting a list removes its items). Both raise
domain events on create, update and delete; items also on completion.

Validation limits and error values used by the todo use cases live here too,
next to the entities they describe.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum

from sqlalchemy import ForeignKeyConstraint, Index
from sqlmodel import Field, SQLModel

from app.core.errors import Error
from app.core.events import HasDomainEvents
from app.models.base import AuditFields, utc_now
from app.models.todo_events import (
    TodoItemCompleted,
    TodoItemCreated,
    TodoItemDeleted,
    TodoItemUpdated,
    TodoListCreated,
    TodoListDeleted,
    TodoListUpdated,
)


class PriorityLevel(IntEnum):
    NONE = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3


class TodoConstraints:
    """Field limits shared by list and item validation"""

    TITLE_MIN_LENGTH = 1
    TITLE_MAX_LENGTH = 100
    TITLE_PATTERN = re.compile(r"^[a-zA-Z0-9 _-]{1,100}$")
    NOTE_MAX_LENGTH = 500
    COLOUR_PATTERN = re.compile(r"^#([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


# ===== Colour =====


@dataclass(frozen=True)
class Colour:
    """A colour from the supported palette, stored as an upper-case hex code."""

    code: str

    @classmethod
    def create(cls, code: str | None) -> "Colour | list[Error]":
        if not code or not code.strip():
            return [ColourErrors.EMPTY_CODE]
        colour = cls(code.strip().upper())
        if colour not in SUPPORTED_COLOURS:
            return [ColourErrors.NOT_SUPPORTED]
        return colour

    def __str__(self) -> str:
        return self.code


class ColourErrors:
    EMPTY_CODE = Error.validation("Colour.EmptyCode", "Colour code cannot be empty.")
    NOT_SUPPORTED = Error.validation("Colour.NotSupported", "Colour is not supported.")


WHITE = Colour("#FFFFFF")
RED = Colour("#FF5733")
ORANGE = Colour("#FFC300")
YELLOW = Colour("#FFFF66")
GREEN = Colour("#CCFF99")
BLUE = Colour("#6666FF")
PURPLE = Colour("#9966CC")
GREY = Colour("#999999")

SUPPORTED_COLOURS = (WHITE, RED, ORANGE, YELLOW, GREEN, BLUE, PURPLE, GREY)


# ===== Errors =====


class TodoListErrors:
    TITLE_REQUIRED = Error.validation("TodoList.TitleRequired", "Title is required.")
    TITLE_TOO_SHORT = Error.validation(
        "TodoList.TitleTooShort",
        f"Title must be at least {TodoConstraints.TITLE_MIN_LENGTH} character long.",
    )
    TITLE_TOO_LONG = Error.validation(
        "TodoList.TitleTooLong",
        f"Title must be at most {TodoConstraints.TITLE_MAX_LENGTH} characters long.",
    )
    TITLE_INVALID_FORMAT = Error.validation(
        "TodoList.TitleInvalidFormat",
        "Title contains invalid characters. Only alphanumeric characters, spaces, "
        "underscores, and hyphens are allowed.",
    )
    COLOUR_REQUIRED = Error.validation("TodoList.ColourRequired", "Colour is required.")
    COLOUR_INVALID_FORMAT = Error.validation(
        "TodoList.ColourInvalidFormat",
        "Colour must be a valid hex color code (e.g., #RRGGBB or #RGB).",
    )
    NOT_FOUND = Error.not_found("TodoList.TodoListNotFound", "Todo list not found.")

    @staticmethod
    def already_exists(title: str) -> Error:
        return Error.conflict(
            "TodoList.TodoListAlreadyExists",
            f"A todo list with the title '{title}' already exists.",
        )


class TodoItemErrors:
    TITLE_TOO_SHORT = Error.validation(
        "TodoItem.TitleTooShort",
        f"Title must be at least {TodoConstraints.TITLE_MIN_LENGTH} character long.",
    )
    TITLE_TOO_LONG = Error.validation(
        "TodoItem.TitleTooLong",
        f"Title must be at most {TodoConstraints.TITLE_MAX_LENGTH} characters long.",
    )
    TITLE_INVALID_FORMAT = Error.validation(
        "TodoItem.TitleInvalidFormat",
        "Title contains invalid characters. Only alphanumeric characters, spaces, "
        "underscores, and hyphens are allowed.",
    )
    NOTE_TOO_LONG = Error.validation(
        "TodoItem.NoteTooLong",
        f"Note must be at most {TodoConstraints.NOTE_MAX_LENGTH} characters long.",
    )
    PRIORITY_LEVEL_INVALID = Error.validation(
        "TodoItem.PriorityLevelInvalid", "Priority level is not valid."
    )
    REMINDER_MUST_BE_IN_FUTURE = Error.validation(
        "TodoItem.ReminderMustBeInFuture", "Reminder must be set to a future date and time."
    )
    NOT_FOUND = Error.not_found("TodoItem.TodoItemNotFound", "Todo item not found.")
    ALREADY_COMPLETED = Error.conflict(
        "TodoItem.TodoItemAlreadyCompleted", "This todo item is already completed."
    )

    @staticmethod
    def already_exists(title: str) -> Error:
        return Error.conflict(
            "TodoItem.TodoItemAlreadyExists",
            f"A todo item with the title '{title}' already exists.",
        )


# ===== TodoLists =====


class TodoListBase(SQLModel):
    title: str = Field(max_length=TodoConstraints.TITLE_MAX_LENGTH)
    colour: str = Field(default=WHITE.code, max_length=7)


class TodoLists(TodoListBase, AuditFields, HasDomainEvents, table=True):
    """Database table for todo lists."""

    __tablename__ = "todo_lists"

    __table_args__ = (Index("idx_todo_lists_title", "title"),)

    id: int | None = Field(default=None, primary_key=True)

    @classmethod
    def create(cls, title: str, colour: Colour) -> "TodoLists":
        todo_list = cls(title=title.strip(), colour=colour.code)
        todo_list.add_domain_event(TodoListCreated(todo_list=todo_list))
        return todo_list

    def update(self, title: str, colour: Colour) -> None:
        self.title = title.strip()
        self.colour = colour.code
        self.add_domain_event(TodoListUpdated(todo_list=self))

    def mark_deleted(self) -> None:
        self.add_domain_event(TodoListDeleted(todo_list=self))

    @staticmethod
    def is_completed(items: list["TodoItems"]) -> bool:
        """A list is completed when every item is done (an empty list counts as completed)."""
        return all(item.done for item in items)


# ===== TodoItems =====


class TodoItemBase(SQLModel):
    title: str = Field(max_length=TodoConstraints.TITLE_MAX_LENGTH)
    note: str | None = Field(default=None, max_length=TodoConstraints.NOTE_MAX_LENGTH)
    priority: int = Field(default=PriorityLevel.NONE)
    reminder: datetime | None = Field(default=None)


class TodoItems(TodoItemBase, AuditFields, HasDomainEvents, table=True):
    """
    Database table for todo items.

    ``done`` flips at most once; ``done_at`` records when.
    """

    __tablename__ = "todo_items"

    __table_args__ = (
        ForeignKeyConstraint(
            ["list_id"],
            ["todo_lists.id"],
            ondelete="CASCADE",
            name="fk_todo_items_list_id",
        ),
        Index("idx_todo_items_list_id", "list_id"),
    )

    id: int | None = Field(default=None, primary_key=True)
    list_id: int

    done: bool = Field(default=False)
    done_at: datetime | None = Field(default=None)

    @classmethod
    def create(
        cls,
        list_id: int,
        title: str,
        note: str | None = None,
        priority: PriorityLevel = PriorityLevel.NONE,
        reminder: datetime | None = None,
    ) -> "TodoItems":
        item = cls(
            list_id=list_id,
            title=title.strip(),
            note=note,
            priority=int(priority),
            reminder=reminder,
        )
        item.add_domain_event(TodoItemCreated(item=item))
        return item

    def update(
        self,
        title: str,
        note: str | None,
        priority: PriorityLevel,
        reminder: datetime | None,
    ) -> None:
        self.title = title.strip()
        self.note = note
        self.priority = int(priority)
        self.reminder = reminder
        self.add_domain_event(TodoItemUpdated(item=self))

    def mark_as_done(self) -> Error | None:
        """Complete the item; a second call returns a conflict and leaves done_at alone."""
        if self.done:
            return TodoItemErrors.ALREADY_COMPLETED
        self.done = True
        self.done_at = utc_now()
        self.add_domain_event(TodoItemCompleted(item=self))
        return None

    def mark_deleted(self) -> None:
        self.add_domain_event(TodoItemDeleted(item=self))
