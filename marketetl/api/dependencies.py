"""API dependencies for shared-secret auth and service wiring."""

from __future__ import annotations

from collections.abc import AsyncIterator

import httpx
from fastapi import Depends, Header

from marketetl.core.config import settings
from marketetl.core.exceptions import AuthenticationError
from marketetl.core.logging import get_logger
from marketetl.core.security import extract_bearer_token, verify_shared_secret
from marketetl.database.connection import Database, get_database
from marketetl.services.batch_processor import BatchProcessor, build_batch_processor
from marketetl.services.queue_control import QueueController


logger = get_logger("api.dependencies")


async def require_cron_secret(
    authorization: str | None = Header(default=None),
) -> None:
    """
    Require ``Authorization: Bearer <CRON_SECRET>``.

    Raises AuthenticationError (401) before any side effect when the token
    is missing or does not match. An unset secret rejects every call.
    """
    if not settings.cron_secret:
        logger.error("CRON_SECRET is not configured; rejecting ETL call")
        raise AuthenticationError()

    token = extract_bearer_token(authorization)
    if not verify_shared_secret(token, settings.cron_secret):
        raise AuthenticationError()


def get_db() -> Database:
    """The process-wide database handle."""
    return get_database()


def get_queue_controller(database: Database = Depends(get_db)) -> QueueController:
    return QueueController.from_settings(database, settings)


async def get_batch_processor(
    database: Database = Depends(get_db),
) -> AsyncIterator[BatchProcessor]:
    """A processor with its own HTTP client, closed after the request."""
    async with httpx.AsyncClient() as client:
        yield build_batch_processor(database, client, settings)
