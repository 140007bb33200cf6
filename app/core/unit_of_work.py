"""
Unit of Work over an AsyncSession.

Wraps multi-step persistence operations (token rotation, list deletion with
its items) in one database transaction. An asyncio lock guards the
transaction state so a second begin on the same instance fails instead of
nesting. On save, audit fields are stamped and the domain events raised by
tracked entities are dispatched once the flush has succeeded.
"""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Annotated, Any

from fastapi import Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.events import DomainEvent, EventDispatcher, HasDomainEvents, dispatcher
from app.core.logging import get_logger, user_id_ctx
from app.models.base import utc_now

logger = get_logger(__name__)

SYSTEM_ACTOR = "system"


class UnitOfWork:
    """
    Transaction boundary for one request or one background job.

    ``save_changes`` outside an explicit transaction persists immediately
    (flush + commit). Inside ``begin_transaction``/``commit_transaction`` it
    only flushes, and everything is committed or rolled back together.
    """

    def __init__(self, session: AsyncSession, event_dispatcher: EventDispatcher | None = None):
        self.session = session
        self._dispatcher = event_dispatcher or dispatcher
        self._lock = asyncio.Lock()
        self._in_transaction = False
        self._disposed = False

    @property
    def has_active_transaction(self) -> bool:
        return self._in_transaction

    def _ensure_not_disposed(self) -> None:
        if self._disposed:
            raise RuntimeError("UnitOfWork has been disposed.")

    async def begin_transaction(self) -> None:
        """
        Start a transaction.

        Raises:
            RuntimeError: If a transaction is already in progress or the unit is disposed
        """
        self._ensure_not_disposed()
        async with self._lock:
            if self._in_transaction:
                raise RuntimeError("Transaction already in progress")
            self._in_transaction = True
        logger.debug("transaction_started")

    async def commit_transaction(self) -> None:
        """
        Flush pending changes and commit.

        Raises:
            RuntimeError: If no transaction is in progress
        """
        self._ensure_not_disposed()
        async with self._lock:
            if not self._in_transaction:
                raise RuntimeError("No transaction is in progress.")
            try:
                await self.session.commit()
            except Exception:
                await self.session.rollback()
                raise
            finally:
                self._in_transaction = False
        logger.debug("transaction_committed")

    async def rollback_transaction(self) -> None:
        """
        Discard every change made since the transaction began.

        Raises:
            RuntimeError: If no transaction is in progress
        """
        self._ensure_not_disposed()
        async with self._lock:
            if not self._in_transaction:
                raise RuntimeError("No transaction is in progress.")
            try:
                await self.session.rollback()
            finally:
                self._in_transaction = False
        logger.info("transaction_rolled_back")

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator["UnitOfWork", None]:
        """
        Run a block in one transaction: commit on success, rollback and re-raise otherwise.

        Example:
            async with uow.transaction():
                uow.session.add(token)
                await uow.save_changes()
        """
        await self.begin_transaction()
        try:
            yield self
        except BaseException:
            if self._in_transaction:
                await self.rollback_transaction()
            raise
        else:
            await self.commit_transaction()

    def _tracked_entities(self) -> list[Any]:
        seen: dict[int, Any] = {}
        for obj in (
            *self.session.new,
            *self.session.dirty,
            *self.session.deleted,
            *self.session.identity_map.values(),
        ):
            seen.setdefault(id(obj), obj)
        return list(seen.values())

    def _stamp_audit_fields(self) -> None:
        actor = user_id_ctx.get(None)
        actor_name = str(actor) if actor else SYSTEM_ACTOR
        now = utc_now()

        for obj in self.session.new:
            if hasattr(obj, "created_at") and getattr(obj, "created_at", None) is None:
                obj.created_at = now
            if hasattr(obj, "created_by") and getattr(obj, "created_by", None) is None:
                obj.created_by = actor_name

        for obj in self.session.dirty:
            if hasattr(obj, "updated_at") and self.session.is_modified(obj):
                obj.updated_at = now
                obj.updated_by = actor_name

    async def save_changes(self) -> None:
        """
        Persist tracked changes and dispatch the domain events they raised.

        Errors are logged and re-raised.
        """
        self._ensure_not_disposed()
        self._stamp_audit_fields()
        entities = [e for e in self._tracked_entities() if isinstance(e, HasDomainEvents)]

        try:
            await self.session.flush()
            if not self._in_transaction:
                await self.session.commit()
        except Exception as e:
            logger.error(
                "save_changes_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            if not self._in_transaction:
                await self.session.rollback()
            raise

        events: list[DomainEvent] = []
        for entity in entities:
            events.extend(entity.clear_domain_events())
        if events:
            await self._dispatcher.dispatch(events)

    async def execute_sql(self, sql: str, params: dict[str, Any] | None = None) -> int:
        """Execute a raw SQL statement and return the affected row count."""
        self._ensure_not_disposed()
        result = await self.session.execute(text(sql), params or {})
        return int(getattr(result, "rowcount", 0) or 0)

    async def dispose(self) -> None:
        """Roll back any open transaction; further use raises RuntimeError."""
        if self._disposed:
            return
        if self._in_transaction:
            await self.rollback_transaction()
        self._disposed = True

    async def __aenter__(self) -> "UnitOfWork":
        self._ensure_not_disposed()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.dispose()


async def get_unit_of_work(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> AsyncGenerator[UnitOfWork, None]:
    """FastAPI dependency: one Unit of Work per request, sharing the request session."""
    uow = UnitOfWork(db)
    try:
        yield uow
    finally:
        await uow.dispose()


UnitOfWorkDep = Annotated[UnitOfWork, Depends(get_unit_of_work)]
