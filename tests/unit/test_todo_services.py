"""Tests for the todo list and todo item use cases."""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import func, select

from app.core.events import EventDispatcher
from app.core.unit_of_work import UnitOfWork
from app.models.todo import (
    ColourErrors,
    PriorityLevel,
    TodoItemErrors,
    TodoItems,
    TodoListErrors,
    TodoLists,
)
from app.models.todo_events import TodoItemDeleted, TodoListDeleted
from app.schemas.query import PagingParams, SearchParams, SortParams
from app.schemas.todo import TodoItemCreate, TodoItemUpdate, TodoListCreate, TodoListUpdate
from app.services.todo_items import (
    complete_todo_item,
    create_todo_item,
    delete_todo_item,
    get_todo_item,
    update_todo_item,
    validate_todo_item,
)
from app.services.todo_lists import (
    create_todo_list,
    delete_todo_list,
    get_todo_list,
    get_todo_lists,
    update_todo_list,
    validate_todo_list,
)


@pytest.fixture
def uow(db_session) -> UnitOfWork:
    return UnitOfWork(db_session)


async def make_list(uow: UnitOfWork, title: str = "Groceries", colour: str = "#FF5733") -> TodoLists:
    todo_list = await create_todo_list(uow, TodoListCreate(title=title, colour=colour))
    assert isinstance(todo_list, TodoLists)
    return todo_list


async def make_item(uow: UnitOfWork, list_id: int, title: str = "Milk", **extra) -> TodoItems:
    item = await create_todo_item(uow, TodoItemCreate(list_id=list_id, title=title, **extra))
    assert isinstance(item, TodoItems)
    return item


async def count(db, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


@pytest.mark.unit
class TestTodoListValidation:
    def test_valid(self):
        assert validate_todo_list("Home chores", "#FFF") == []

    @pytest.mark.parametrize(
        "title,error",
        [
            ("", TodoListErrors.TITLE_REQUIRED),
            ("   ", TodoListErrors.TITLE_REQUIRED),
            ("x" * 101, TodoListErrors.TITLE_TOO_LONG),
            ("Groceries!", TodoListErrors.TITLE_INVALID_FORMAT),
        ],
    )
    def test_title_rules(self, title, error):
        assert validate_todo_list(title, "#FFFFFF") == [error]

    @pytest.mark.parametrize(
        "colour,error",
        [
            ("", TodoListErrors.COLOUR_REQUIRED),
            ("red", TodoListErrors.COLOUR_INVALID_FORMAT),
            ("#12345", TodoListErrors.COLOUR_INVALID_FORMAT),
        ],
    )
    def test_colour_rules(self, colour, error):
        assert validate_todo_list("Groceries", colour) == [error]

    def test_one_error_per_field(self):
        assert validate_todo_list("", "") == [
            TodoListErrors.TITLE_REQUIRED,
            TodoListErrors.COLOUR_REQUIRED,
        ]


@pytest.mark.unit
class TestTodoLists:
    async def test_create(self, uow):
        todo_list = await make_list(uow, title="  Groceries ", colour="#ff5733")

        assert todo_list.id is not None
        assert todo_list.title == "Groceries"
        assert todo_list.colour == "#FF5733"
        assert todo_list.created_at is not None

    async def test_unsupported_colour(self, uow):
        result = await create_todo_list(uow, TodoListCreate(title="Groceries", colour="#123456"))
        assert result == [ColourErrors.NOT_SUPPORTED]

    async def test_duplicate_title_case_insensitive(self, uow):
        await make_list(uow, title="Groceries")

        result = await create_todo_list(uow, TodoListCreate(title="GROCERIES", colour="#FFFFFF"))

        assert isinstance(result, list)
        assert result[0].code == "TodoList.TodoListAlreadyExists"
        assert result[0].status_code == 409

    async def test_update(self, uow):
        todo_list = await make_list(uow)

        updated = await update_todo_list(
            uow, todo_list.id, TodoListUpdate(title="Shopping", colour="#999999")
        )

        assert isinstance(updated, TodoLists)
        assert updated.title == "Shopping"
        assert updated.colour == "#999999"
        assert updated.updated_at is not None

    async def test_update_may_keep_own_title(self, uow):
        todo_list = await make_list(uow)
        updated = await update_todo_list(
            uow, todo_list.id, TodoListUpdate(title="groceries", colour="#FFFFFF")
        )
        assert isinstance(updated, TodoLists)

    async def test_update_to_taken_title(self, uow):
        await make_list(uow, title="Groceries")
        other = await make_list(uow, title="Chores")

        result = await update_todo_list(
            uow, other.id, TodoListUpdate(title="Groceries", colour="#FFFFFF")
        )

        assert isinstance(result, list)
        assert result[0].code == "TodoList.TodoListAlreadyExists"

    async def test_update_missing(self, uow):
        result = await update_todo_list(uow, 999, TodoListUpdate(title="Chores", colour="#FFFFFF"))
        assert result == [TodoListErrors.NOT_FOUND]

    async def test_get_reports_completion(self, uow):
        todo_list = await make_list(uow)

        result = await get_todo_list(uow.session, todo_list.id)
        assert isinstance(result, tuple)
        assert result[1] is True  # empty list

        item = await make_item(uow, todo_list.id)
        result = await get_todo_list(uow.session, todo_list.id)
        assert isinstance(result, tuple)
        assert result[1] is False

        await complete_todo_item(uow, item.id)
        result = await get_todo_list(uow.session, todo_list.id)
        assert isinstance(result, tuple)
        assert result[1] is True

    async def test_get_missing(self, uow):
        assert await get_todo_list(uow.session, 999) == [TodoListErrors.NOT_FOUND]

    async def test_paged_search_and_sort(self, uow):
        for title in ("Alpha", "Bravo", "Charlie", "Alpine"):
            await make_list(uow, title=title)

        page = await get_todo_lists(
            uow.session,
            PagingParams(page_number=1, page_size=2),
            SortParams(sort_by="title", sort_order="desc"),
            SearchParams(search_term="al"),
        )

        assert page.total_count == 2
        assert [t.title for t in page.items] == ["Alpine", "Alpha"]
        assert not page.has_next

    async def test_paged_filters(self, uow):
        await make_list(uow, title="Alpha", colour="#FF5733")
        await make_list(uow, title="Bravo", colour="#999999")
        await make_list(uow, title="Charlie", colour="#999999")

        page = await get_todo_lists(
            uow.session, PagingParams(page_size=1), filters="colour[eq]=#999999"
        )

        assert page.total_count == 2
        assert page.total_pages == 2
        assert page.has_next
        assert len(page.items) == 1


@pytest.mark.unit
class TestDeleteTodoList:
    async def test_deletes_list_and_items(self, db_session):
        received = []
        events_dispatcher = EventDispatcher()

        @events_dispatcher.register(TodoItemDeleted)
        async def on_item_deleted(event):
            received.append(event.name)

        @events_dispatcher.register(TodoListDeleted)
        async def on_list_deleted(event):
            received.append(event.name)

        uow = UnitOfWork(db_session, event_dispatcher=events_dispatcher)
        todo_list = await make_list(uow)
        await make_item(uow, todo_list.id, "Milk")
        await make_item(uow, todo_list.id, "Bread")

        assert await delete_todo_list(uow, todo_list.id) is None

        assert await count(db_session, TodoLists) == 0
        assert await count(db_session, TodoItems) == 0
        assert received == ["TodoItemDeleted", "TodoItemDeleted", "TodoListDeleted"]

    async def test_missing_list(self, uow):
        assert await delete_todo_list(uow, 999) == [TodoListErrors.NOT_FOUND]
        assert not uow.has_active_transaction

    async def test_failure_rolls_back_everything(self, db_session):
        events_dispatcher = EventDispatcher()

        @events_dispatcher.register(TodoListDeleted)
        async def explode(event):
            raise RuntimeError("list handler failed")

        uow = UnitOfWork(db_session, event_dispatcher=events_dispatcher)
        todo_list = await make_list(uow)
        list_id = todo_list.id
        await make_item(uow, list_id, "Milk")
        await make_item(uow, list_id, "Bread")

        with pytest.raises(RuntimeError, match="list handler failed"):
            await delete_todo_list(uow, list_id)

        assert not uow.has_active_transaction
        assert await count(db_session, TodoLists) == 1
        assert await count(db_session, TodoItems) == 2


@pytest.mark.unit
class TestTodoItemValidation:
    def test_valid(self):
        future = datetime.now(UTC) + timedelta(days=1)
        assert validate_todo_item("Milk", "2 litres", 2, future) == []

    def test_blank_title_is_not_checked(self):
        assert validate_todo_item("", None, 0, None) == []

    @pytest.mark.parametrize(
        "title,error",
        [
            ("x" * 101, TodoItemErrors.TITLE_TOO_LONG),
            ("Milk?", TodoItemErrors.TITLE_INVALID_FORMAT),
        ],
    )
    def test_title_rules(self, title, error):
        assert validate_todo_item(title, None, 0, None) == [error]

    def test_note_too_long(self):
        assert validate_todo_item("Milk", "n" * 501, 0, None) == [TodoItemErrors.NOTE_TOO_LONG]

    @pytest.mark.parametrize("priority", [-1, 4, 99])
    def test_priority_out_of_range(self, priority):
        assert validate_todo_item("Milk", None, priority, None) == [
            TodoItemErrors.PRIORITY_LEVEL_INVALID
        ]

    def test_reminder_in_past(self):
        past = datetime.now(UTC) - timedelta(minutes=5)
        assert validate_todo_item("Milk", None, 0, past) == [
            TodoItemErrors.REMINDER_MUST_BE_IN_FUTURE
        ]

    def test_all_errors_reported(self):
        past = datetime.now(UTC) - timedelta(minutes=5)
        errors = validate_todo_item("Milk?", "n" * 501, 7, past)
        assert len(errors) == 4


@pytest.mark.unit
class TestTodoItems:
    async def test_create(self, uow):
        todo_list = await make_list(uow)
        reminder = datetime.now(UTC) + timedelta(days=1)

        item = await make_item(uow, todo_list.id, " Milk ", priority=3, reminder=reminder)

        assert item.title == "Milk"
        assert item.priority == PriorityLevel.HIGH
        assert item.done is False
        assert item.reminder == reminder.replace(tzinfo=None)

    async def test_create_in_missing_list(self, uow):
        result = await create_todo_item(uow, TodoItemCreate(list_id=999, title="Milk"))
        assert result == [TodoListErrors.NOT_FOUND]

    async def test_duplicate_title_within_list(self, uow):
        todo_list = await make_list(uow)
        other = await make_list(uow, title="Chores")
        await make_item(uow, todo_list.id, "Milk")

        duplicate = await create_todo_item(uow, TodoItemCreate(list_id=todo_list.id, title="MILK"))
        elsewhere = await create_todo_item(uow, TodoItemCreate(list_id=other.id, title="Milk"))

        assert isinstance(duplicate, list)
        assert duplicate[0].code == "TodoItem.TodoItemAlreadyExists"
        assert isinstance(elsewhere, TodoItems)

    async def test_update(self, uow):
        todo_list = await make_list(uow)
        item = await make_item(uow, todo_list.id)

        updated = await update_todo_item(
            uow, item.id, TodoItemUpdate(title="Oat milk", note="Barista", priority=1)
        )

        assert isinstance(updated, TodoItems)
        assert updated.title == "Oat milk"
        assert updated.note == "Barista"
        assert updated.priority == PriorityLevel.LOW

    async def test_update_missing(self, uow):
        result = await update_todo_item(uow, 999, TodoItemUpdate(title="Milk"))
        assert result == [TodoItemErrors.NOT_FOUND]

    async def test_complete_twice_is_conflict(self, uow):
        todo_list = await make_list(uow)
        item = await make_item(uow, todo_list.id)

        completed = await complete_todo_item(uow, item.id)
        assert isinstance(completed, TodoItems)
        done_at = completed.done_at
        assert completed.done is True
        assert done_at is not None

        again = await complete_todo_item(uow, item.id)

        assert again == [TodoItemErrors.ALREADY_COMPLETED]
        assert again[0].status_code == 409
        assert item.done_at == done_at

    async def test_get_includes_list_summary(self, uow):
        todo_list = await make_list(uow)
        item = await make_item(uow, todo_list.id)

        result = await get_todo_item(uow.session, item.id)

        assert isinstance(result, tuple)
        assert result[0].id == item.id
        assert result[1] is not None and result[1].title == "Groceries"

    async def test_delete(self, uow):
        todo_list = await make_list(uow)
        item = await make_item(uow, todo_list.id)

        assert await delete_todo_item(uow, item.id) is None
        assert await get_todo_item(uow.session, item.id) == [TodoItemErrors.NOT_FOUND]
        assert await delete_todo_item(uow, item.id) == [TodoItemErrors.NOT_FOUND]
