"""
Structured logging configuration using structlog.

Every log event carries the request id (and the authenticated user id once
known) so that a single request can be followed through the API, the
authorization provider and the Unit of Work. Background jobs wrap their run
in ``job_context`` instead.

Credentials never reach the output: values of password and token keys are
masked before rendering.
"""

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, cast

import structlog
from structlog.types import EventDict, Processor

from app.config import settings

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)
user_id_ctx: ContextVar[int | None] = ContextVar("user_id", default=None)

REDACTED = "***"
SENSITIVE_KEYS = frozenset(
    {"password", "access_token", "refresh_token", "token", "authorization", "secret"}
)


def add_request_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    request_id = request_id_ctx.get(None)
    if request_id:
        event_dict["request_id"] = request_id

    user_id = user_id_ctx.get(None)
    if user_id:
        event_dict.setdefault("user_id", user_id)

    return event_dict


def redact_secrets(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    for key in SENSITIVE_KEYS.intersection(event_dict):
        event_dict[key] = REDACTED
    return event_dict


def _renderer() -> list[Processor]:
    console = settings.LOG_FORMAT == "console" or (
        settings.ENVIRONMENT == "development" and settings.LOG_FORMAT != "json"
    )
    if console:
        return [structlog.dev.ConsoleRenderer(colors=True)]
    return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]


def configure_logging() -> None:
    """
    Configure structlog and the standard library root logger.

    LOG_FORMAT selects JSON lines or the coloured console renderer; the
    development environment defaults to the console.
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_request_context,
        redact_secrets,
        structlog.processors.StackInfoRenderer(),
        *_renderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(logging.NOTSET),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.LOG_LEVEL.upper()),
    )

    # Third-party noise
    for name in ("sqlalchemy.engine", "httpx", "aiosmtplib", "arq.jobs"):
        logging.getLogger(name).setLevel(logging.WARNING)
    if settings.ENVIRONMENT != "development":
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Logger bound to a module name.

    Example:
        logger = get_logger(__name__)
        logger.info("refresh_token_rotated", user_id=123, ip="192.168.1.1")
    """
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))


def new_request_id(incoming: str | None = None) -> str:
    """Reuse a caller supplied request id (truncated to 64 chars) or generate one."""
    if incoming and incoming.strip():
        return incoming.strip()[:64]
    return uuid.uuid4().hex


def get_request_id() -> str | None:
    return request_id_ctx.get(None)


def set_request_context(request_id: str, user_id: int | None = None) -> None:
    request_id_ctx.set(request_id)
    if user_id:
        user_id_ctx.set(user_id)


def set_user_context(user_id: int) -> None:
    """Attach the authenticated user id once the bearer token is verified."""
    user_id_ctx.set(user_id)


def clear_request_context() -> None:
    request_id_ctx.set(None)
    user_id_ctx.set(None)


@contextmanager
def job_context(job: str, **kwargs: Any) -> Iterator[None]:
    """
    Bind ``job`` (and any extra keys) to every log line emitted inside the block.

    Example:
        with job_context("refresh_token_cleanup", job_try=ctx.get("job_try")):
            logger.info("job_started")
    """
    with structlog.contextvars.bound_contextvars(job=job, **kwargs):
        yield
