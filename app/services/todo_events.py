"""
Handlers for todo domain events.

Registered on the process-wide dispatcher at import time (app.main imports
this module). They only log for now.
"""

from app.core.events import dispatcher
from app.core.logging import get_logger
from app.models.todo_events import (
    TodoItemCompleted,
    TodoItemCreated,
    TodoItemDeleted,
    TodoItemUpdated,
    TodoListCreated,
    TodoListDeleted,
    TodoListUpdated,
)

logger = get_logger(__name__)


@dispatcher.register(TodoListCreated)
async def on_todo_list_created(event: TodoListCreated) -> None:
    logger.info("todo_list_created_event", list_id=event.todo_list.id, title=event.todo_list.title)


@dispatcher.register(TodoListUpdated)
async def on_todo_list_updated(event: TodoListUpdated) -> None:
    logger.info("todo_list_updated_event", list_id=event.todo_list.id)


@dispatcher.register(TodoListDeleted)
async def on_todo_list_deleted(event: TodoListDeleted) -> None:
    logger.info("todo_list_deleted_event", list_id=event.todo_list.id)


@dispatcher.register(TodoItemCreated)
async def on_todo_item_created(event: TodoItemCreated) -> None:
    logger.info("todo_item_created_event", item_id=event.item.id, list_id=event.item.list_id)


@dispatcher.register(TodoItemUpdated)
async def on_todo_item_updated(event: TodoItemUpdated) -> None:
    logger.info("todo_item_updated_event", item_id=event.item.id)


@dispatcher.register(TodoItemCompleted)
async def on_todo_item_completed(event: TodoItemCompleted) -> None:
    logger.info(
        "todo_item_completed_event",
        item_id=event.item.id,
        done_at=event.item.done_at.isoformat() if event.item.done_at else None,
    )


@dispatcher.register(TodoItemDeleted)
async def on_todo_item_deleted(event: TodoItemDeleted) -> None:
    logger.info("todo_item_deleted_event", item_id=event.item.id, list_id=event.item.list_id)
