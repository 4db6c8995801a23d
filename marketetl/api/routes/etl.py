"""ETL queue routes, called by an external scheduler.

All routes require the shared cron secret. Only POST is routed; other
verbs get 405 from the router.
"""

from __future__ import annotations

import math

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import SQLAlchemyError

from marketetl.api.dependencies import (
    get_batch_processor,
    get_queue_controller,
    require_cron_secret,
)
from marketetl.core.config import settings
from marketetl.core.exceptions import StoreError
from marketetl.core.logging import get_logger
from marketetl.schemas.etl import (
    BatchResponse,
    InstrumentResultSchema,
    StartResponse,
    StopResponse,
)
from marketetl.services.batch_processor import BatchProcessor
from marketetl.services.queue_control import QueueController


router = APIRouter(dependencies=[Depends(require_cron_secret)])

logger = get_logger("api.etl")


@router.post(
    "/start",
    response_model=StartResponse,
    summary="Start the daily queue",
    description="Mark every instrument pending for today's refresh.",
)
async def start_queue(
    controller: QueueController = Depends(get_queue_controller),
) -> StartResponse:
    try:
        summary = await controller.start()
    except SQLAlchemyError as e:
        logger.error(f"Queue start failed: {e}")
        raise StoreError(message=f"Failed to reset watermarks: {type(e).__name__}")

    if summary.skipped:
        message = f"Skipped: {summary.reason}"
    else:
        message = (
            f"Queue started: {summary.total_pending} instruments pending, "
            f"estimated {summary.estimated_minutes} minutes"
        )
    return StartResponse(
        success=not summary.skipped,
        message=message,
        reset_count=summary.reset_count,
        total_pending=summary.total_pending,
        estimated_minutes=summary.estimated_minutes,
        skipped=summary.skipped,
        exchange_time=summary.exchange_time,
    )


@router.post(
    "/process-batch",
    response_model=BatchResponse,
    summary="Process one batch",
    description="Refresh up to batch_size pending instruments.",
)
async def process_batch(
    batch_size: int = Query(
        default=settings.etl_batch_size, ge=1, le=1000, description="Instruments to process"
    ),
    processor: BatchProcessor = Depends(get_batch_processor),
) -> BatchResponse:
    try:
        result = await processor.run_batch(batch_size)
    except SQLAlchemyError as e:
        logger.error(f"Batch failed: {e}")
        raise StoreError(message=f"Batch aborted by a store error: {type(e).__name__}")

    batches_left = math.ceil(result.remaining / batch_size)
    return BatchResponse(
        processed=result.processed,
        errors=result.errors,
        remaining=result.remaining,
        estimated_batches_left=batches_left,
        estimated_minutes_left=batches_left * settings.etl_batch_interval_minutes,
        results=[
            InstrumentResultSchema(
                symbol=r.symbol,
                ok=r.ok,
                reason=r.reason,
                detail=r.detail,
                market_status=r.market_status.value if r.market_status else None,
                tags=r.tags,
            )
            for r in result.results
        ],
    )


@router.post(
    "/stop",
    response_model=StopResponse,
    summary="Stop the daily queue",
    description="Force every still-pending instrument to done for today.",
)
async def stop_queue(
    controller: QueueController = Depends(get_queue_controller),
) -> StopResponse:
    try:
        summary = await controller.stop()
    except SQLAlchemyError as e:
        logger.error(f"Queue stop failed: {e}")
        raise StoreError(message=f"Failed to complete pending instruments: {type(e).__name__}")

    return StopResponse(
        message=(
            f"Queue stopped: {summary.force_completed} force-completed, "
            f"{summary.already_done} already done"
        ),
        force_completed=summary.force_completed,
        already_done=summary.already_done,
        total=summary.total,
        last_processed_at=summary.last_processed_at,
        exchange_time=summary.exchange_time,
    )
