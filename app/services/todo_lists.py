"""
Todo list use cases.

Each operation returns the result or a list of ``Error`` values; the router
turns errors into an ``ApiResponse`` with the matching status code.
"""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import Error
from app.core.logging import get_logger
from app.core.unit_of_work import UnitOfWork
from app.models.todo import Colour, TodoConstraints, TodoItems, TodoListErrors, TodoLists
from app.schemas.query import PagingParams, SearchParams, SortParams
from app.schemas.response import PagedList
from app.schemas.todo import TodoListCreate, TodoListUpdate
from app.services.query import (
    apply_filters,
    apply_search,
    apply_sort,
    paginate,
    parse_filter_string,
)

logger = get_logger(__name__)

SEARCHABLE_FIELDS = ("title", "colour")
SORTABLE_FIELDS = ("id", "title", "colour", "created_at", "created_by", "updated_at")
FILTERABLE_FIELDS = SORTABLE_FIELDS


def validate_todo_list(title: str | None, colour: str | None) -> list[Error]:
    """First failing rule per field: title, then colour."""
    errors: list[Error] = []

    title = title or ""
    if not title.strip():
        errors.append(TodoListErrors.TITLE_REQUIRED)
    elif len(title) > TodoConstraints.TITLE_MAX_LENGTH:
        errors.append(TodoListErrors.TITLE_TOO_LONG)
    elif len(title) < TodoConstraints.TITLE_MIN_LENGTH:
        errors.append(TodoListErrors.TITLE_TOO_SHORT)
    elif not TodoConstraints.TITLE_PATTERN.match(title):
        errors.append(TodoListErrors.TITLE_INVALID_FORMAT)

    colour = colour or ""
    if not colour.strip():
        errors.append(TodoListErrors.COLOUR_REQUIRED)
    elif not TodoConstraints.COLOUR_PATTERN.match(colour):
        errors.append(TodoListErrors.COLOUR_INVALID_FORMAT)

    return errors


async def _get(db: AsyncSession, list_id: int) -> TodoLists | None:
    result = await db.execute(select(TodoLists).where(TodoLists.id == list_id))  # type: ignore[arg-type]
    return result.scalar_one_or_none()


async def _title_taken(db: AsyncSession, title: str, exclude_id: int | None = None) -> bool:
    query = select(TodoLists.id).where(  # type: ignore[call-overload]
        func.lower(TodoLists.title) == title.strip().lower()
    )
    if exclude_id is not None:
        query = query.where(TodoLists.id != exclude_id)
    result = await db.execute(query.limit(1))
    return result.first() is not None


async def is_list_completed(db: AsyncSession, list_id: int) -> bool:
    """True when no item of the list is still open (an empty list is completed)."""
    result = await db.execute(
        select(func.count())
        .select_from(TodoItems)
        .where(TodoItems.list_id == list_id, TodoItems.done == False)  # type: ignore[arg-type]  # noqa: E712
    )
    return result.scalar_one() == 0


async def create_todo_list(uow: UnitOfWork, data: TodoListCreate) -> TodoLists | list[Error]:
    """Validate, reject duplicate titles, create and save a list."""
    errors = validate_todo_list(data.title, data.colour)
    if errors:
        return errors

    colour = Colour.create(data.colour)
    if isinstance(colour, list):
        return colour

    if await _title_taken(uow.session, data.title):
        return [TodoListErrors.already_exists(data.title.strip())]

    todo_list = TodoLists.create(data.title, colour)
    uow.session.add(todo_list)
    await uow.save_changes()

    logger.info("todo_list_created", list_id=todo_list.id)
    return todo_list


async def get_todo_list(db: AsyncSession, list_id: int) -> tuple[TodoLists, bool] | list[Error]:
    """The list and whether all of its items are done."""
    todo_list = await _get(db, list_id)
    if todo_list is None:
        return [TodoListErrors.NOT_FOUND]
    return todo_list, await is_list_completed(db, list_id)


async def get_todo_lists(
    db: AsyncSession,
    paging: PagingParams,
    sort: SortParams | None = None,
    search: SearchParams | None = None,
    filters: str | None = None,
) -> PagedList[TodoLists]:
    """Filter, search, sort and page todo lists."""
    query = select(TodoLists)
    query = apply_filters(query, TodoLists, parse_filter_string(filters), FILTERABLE_FIELDS)
    if search is not None:
        query = apply_search(query, TodoLists, search, SEARCHABLE_FIELDS)
    query = apply_sort(query, TodoLists, sort or SortParams(), SORTABLE_FIELDS)
    return await paginate(db, query, paging)


async def update_todo_list(
    uow: UnitOfWork, list_id: int, data: TodoListUpdate
) -> TodoLists | list[Error]:
    errors = validate_todo_list(data.title, data.colour)
    if errors:
        return errors

    colour = Colour.create(data.colour)
    if isinstance(colour, list):
        return colour

    todo_list = await _get(uow.session, list_id)
    if todo_list is None:
        return [TodoListErrors.NOT_FOUND]

    if await _title_taken(uow.session, data.title, exclude_id=list_id):
        return [TodoListErrors.already_exists(data.title.strip())]

    todo_list.update(data.title, colour)
    await uow.save_changes()

    logger.info("todo_list_updated", list_id=list_id)
    return todo_list


async def delete_todo_list(uow: UnitOfWork, list_id: int) -> None | list[Error]:
    """
    Delete a list and all of its items in one transaction.

    Raises an item-deleted event per item and a list-deleted event. Any
    failure (including a failing event handler) rolls everything back and
    propagates.
    """
    async with uow.transaction():
        todo_list = await _get(uow.session, list_id)
        if todo_list is None:
            return [TodoListErrors.NOT_FOUND]

        result = await uow.session.execute(
            select(TodoItems).where(TodoItems.list_id == list_id).order_by(TodoItems.id)  # type: ignore[arg-type]
        )
        items = list(result.scalars().all())

        for item in items:
            item.mark_deleted()
            await uow.session.delete(item)
        # Items go first so the list row is never deleted under them
        await uow.save_changes()

        todo_list.mark_deleted()
        await uow.session.delete(todo_list)
        await uow.save_changes()

    logger.info("todo_list_deleted", list_id=list_id, items_deleted=len(items))
    return None
