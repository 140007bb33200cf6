"""
Scheduled store jobs.

The store domain (inventory, carts, orders) is not modelled yet, so these
jobs only log their runs; the schedule lives in the worker settings.
"""

from typing import Any

from app.core.logging import get_logger, job_context

logger = get_logger(__name__)


async def _run(task: str) -> dict[str, bool]:
    with job_context(task):
        logger.info("store_job_started")
        logger.info("store_job_completed")
    return {"success": True}


async def inventory_update_job(ctx: dict[str, Any]) -> dict[str, bool]:
    return await _run("inventory_update")


async def abandoned_cart_email_job(ctx: dict[str, Any]) -> dict[str, bool]:
    return await _run("abandoned_cart_email")


async def daily_sales_report_job(ctx: dict[str, Any]) -> dict[str, bool]:
    return await _run("daily_sales_report")


async def low_stock_alert_job(ctx: dict[str, Any]) -> dict[str, bool]:
    return await _run("low_stock_alert")
