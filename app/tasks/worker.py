"""
ARQ worker configuration and cron schedule.

Run worker with: arq app.tasks.worker.WorkerSettings
"""

from typing import Any

from arq.connections import RedisSettings
from arq.cron import cron

from app.config import settings
from app.core.logging import configure_logging, get_logger
from app.tasks.security_jobs import refresh_token_cleanup_job
from app.tasks.store_jobs import (
    abandoned_cart_email_job,
    daily_sales_report_job,
    inventory_update_job,
    low_stock_alert_job,
)

logger = get_logger(__name__)


async def startup(ctx: dict[str, Any]) -> None:
    """Worker startup - configure logging."""
    configure_logging()
    logger.info("arq_worker_starting", redis_url=settings.ARQ_REDIS_URL)


async def shutdown(ctx: dict[str, Any]) -> None:
    logger.info("arq_worker_shutdown")


class WorkerSettings:
    """ARQ worker configuration."""

    redis_settings = RedisSettings.from_dsn(settings.ARQ_REDIS_URL)

    # Worker behavior
    max_jobs = 10
    job_timeout = settings.JOB_TIMEOUT_SECONDS
    keep_result = settings.ARQ_KEEP_RESULT
    max_tries = settings.ARQ_MAX_TRIES

    # Lifecycle hooks
    on_startup = startup
    on_shutdown = shutdown

    # Times are UTC
    cron_jobs = [
        # security
        cron(refresh_token_cleanup_job, hour={2}, minute={0}, run_at_startup=False),
        # store
        cron(inventory_update_job, minute={0}),
        cron(abandoned_cart_email_job, hour={0, 6, 12, 18}, minute={0}),
        cron(daily_sales_report_job, hour={1}, minute={0}),
        cron(low_stock_alert_job, hour={8}, minute={0}),
    ]
