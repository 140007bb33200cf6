"""Security maintenance jobs for the arq worker."""

from typing import Any

from app.core.database import get_async_session
from app.core.logging import get_logger, job_context
from app.core.unit_of_work import UnitOfWork
from app.services.refresh_tokens import RefreshTokenService

logger = get_logger(__name__)


async def refresh_token_cleanup_job(ctx: dict[str, Any]) -> dict[str, int]:
    """
    Delete expired refresh tokens and long-revoked ones.

    Runs in its own transaction; on failure the transaction is rolled back
    and the error re-raised so arq records the failed run.

    Returns:
        dict with the number of deleted rows
    """
    with job_context("refresh_token_cleanup", job_try=ctx.get("job_try")):
        deleted = await _cleanup()
        logger.info("refresh_token_cleanup_completed", deleted=deleted)
    return {"deleted": deleted}


async def _cleanup() -> int:
    async with get_async_session() as db:
        uow = UnitOfWork(db)
        await uow.begin_transaction()
        try:
            deleted = await RefreshTokenService(uow).cleanup_expired()
            await uow.commit_transaction()
        except Exception as e:
            if uow.has_active_transaction:
                await uow.rollback_transaction()
            logger.error(
                "refresh_token_cleanup_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise
        finally:
            await uow.dispose()

    return deleted
