"""Todo item use cases."""

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import Error
from app.core.logging import get_logger
from app.core.unit_of_work import UnitOfWork
from app.models.base import to_naive_utc, utc_now
from app.models.todo import (
    PriorityLevel,
    TodoConstraints,
    TodoItemErrors,
    TodoItems,
    TodoListErrors,
    TodoLists,
)
from app.schemas.todo import TodoItemCreate, TodoItemUpdate

logger = get_logger(__name__)


def validate_todo_item(
    title: str | None,
    note: str | None,
    priority: int,
    reminder: datetime | None,
    now: datetime | None = None,
) -> list[Error]:
    """
    Check item fields. Title rules only apply to a non-blank title.

    The reminder is compared in naive UTC.
    """
    errors: list[Error] = []

    if title and title.strip():
        if len(title) < TodoConstraints.TITLE_MIN_LENGTH:
            errors.append(TodoItemErrors.TITLE_TOO_SHORT)
        elif len(title) > TodoConstraints.TITLE_MAX_LENGTH:
            errors.append(TodoItemErrors.TITLE_TOO_LONG)
        elif not TodoConstraints.TITLE_PATTERN.match(title):
            errors.append(TodoItemErrors.TITLE_INVALID_FORMAT)

    if note is not None and len(note) > TodoConstraints.NOTE_MAX_LENGTH:
        errors.append(TodoItemErrors.NOTE_TOO_LONG)

    if priority not in {level.value for level in PriorityLevel}:
        errors.append(TodoItemErrors.PRIORITY_LEVEL_INVALID)

    reminder = to_naive_utc(reminder)
    if reminder is not None and reminder < (now or utc_now()):
        errors.append(TodoItemErrors.REMINDER_MUST_BE_IN_FUTURE)

    return errors


async def _get(db: AsyncSession, item_id: int) -> TodoItems | None:
    result = await db.execute(select(TodoItems).where(TodoItems.id == item_id))  # type: ignore[arg-type]
    return result.scalar_one_or_none()


async def _title_taken(
    db: AsyncSession, list_id: int, title: str, exclude_id: int | None = None
) -> bool:
    query = select(TodoItems.id).where(  # type: ignore[call-overload]
        TodoItems.list_id == list_id,
        func.lower(TodoItems.title) == title.strip().lower(),
    )
    if exclude_id is not None:
        query = query.where(TodoItems.id != exclude_id)
    result = await db.execute(query.limit(1))
    return result.first() is not None


async def create_todo_item(uow: UnitOfWork, data: TodoItemCreate) -> TodoItems | list[Error]:
    """Create an item in an existing list; titles are unique within a list."""
    errors = validate_todo_item(data.title, data.note, data.priority, data.reminder)
    if errors:
        return errors

    result = await uow.session.execute(
        select(TodoLists.id).where(TodoLists.id == data.list_id)  # type: ignore[call-overload]
    )
    if result.first() is None:
        return [TodoListErrors.NOT_FOUND]

    if await _title_taken(uow.session, data.list_id, data.title):
        return [TodoItemErrors.already_exists(data.title.strip())]

    item = TodoItems.create(
        list_id=data.list_id,
        title=data.title,
        note=data.note,
        priority=PriorityLevel(data.priority),
        reminder=to_naive_utc(data.reminder),
    )
    uow.session.add(item)
    await uow.save_changes()

    logger.info("todo_item_created", item_id=item.id, list_id=item.list_id)
    return item


async def get_todo_item(
    db: AsyncSession, item_id: int
) -> tuple[TodoItems, TodoLists | None] | list[Error]:
    """The item and a summary of its list."""
    item = await _get(db, item_id)
    if item is None:
        return [TodoItemErrors.NOT_FOUND]
    result = await db.execute(select(TodoLists).where(TodoLists.id == item.list_id))  # type: ignore[arg-type]
    return item, result.scalar_one_or_none()


async def update_todo_item(
    uow: UnitOfWork, item_id: int, data: TodoItemUpdate
) -> TodoItems | list[Error]:
    errors = validate_todo_item(data.title, data.note, data.priority, data.reminder)
    if errors:
        return errors

    item = await _get(uow.session, item_id)
    if item is None:
        return [TodoItemErrors.NOT_FOUND]

    if await _title_taken(uow.session, item.list_id, data.title, exclude_id=item_id):
        return [TodoItemErrors.already_exists(data.title.strip())]

    item.update(
        title=data.title,
        note=data.note,
        priority=PriorityLevel(data.priority),
        reminder=to_naive_utc(data.reminder),
    )
    await uow.save_changes()

    logger.info("todo_item_updated", item_id=item_id)
    return item


async def complete_todo_item(uow: UnitOfWork, item_id: int) -> TodoItems | list[Error]:
    """Mark an item done; a second completion is a conflict."""
    item = await _get(uow.session, item_id)
    if item is None:
        return [TodoItemErrors.NOT_FOUND]

    error = item.mark_as_done()
    if error is not None:
        return [error]

    await uow.save_changes()
    logger.info("todo_item_completed", item_id=item_id)
    return item


async def delete_todo_item(uow: UnitOfWork, item_id: int) -> None | list[Error]:
    item = await _get(uow.session, item_id)
    if item is None:
        return [TodoItemErrors.NOT_FOUND]

    item.mark_deleted()
    await uow.session.delete(item)
    await uow.save_changes()

    logger.info("todo_item_deleted", item_id=item_id)
    return None
