"""ETL queue control schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class StartResponse(BaseModel):
    """Result of opening the day's refresh queue."""

    success: bool = Field(True, description="False only when the start was skipped")
    message: str = Field(..., description="Human-readable summary")
    reset_count: int = Field(..., ge=0, description="Instruments whose watermark was cleared")
    total_pending: int = Field(..., ge=0, description="Instruments pending after the reset")
    estimated_minutes: int = Field(..., ge=0, description="Estimated minutes to drain the queue")
    skipped: bool = Field(False, description="True when start was a no-op (non-trading day)")
    exchange_time: datetime = Field(..., description="Exchange local time of the request")


class InstrumentResultSchema(BaseModel):
    """Per-instrument outcome within a batch."""

    symbol: str
    ok: bool
    reason: str | None = Field(None, description="Failure reason when not ok")
    detail: str | None = None
    market_status: str | None = None
    tags: list[str] = Field(default_factory=list, description="Derived tags now linked")

    model_config = {"from_attributes": True}


class BatchResponse(BaseModel):
    """Result of one process-batch invocation."""

    success: bool = True
    processed: int = Field(..., ge=0, description="Instruments refreshed successfully")
    errors: int = Field(..., ge=0, description="Instruments that failed and stay pending")
    remaining: int = Field(..., ge=0, description="Instruments still pending for today")
    estimated_batches_left: int = Field(..., ge=0)
    estimated_minutes_left: int = Field(..., ge=0)
    results: list[InstrumentResultSchema] = Field(default_factory=list)


class StopResponse(BaseModel):
    """Result of freezing the day's refresh queue."""

    success: bool = True
    message: str
    force_completed: int = Field(..., ge=0, description="Pending instruments forced to done")
    already_done: int = Field(..., ge=0, description="Instruments already refreshed today")
    total: int = Field(..., ge=0)
    last_processed_at: datetime | None = Field(
        None, description="Latest refresh among instruments done today"
    )
    exchange_time: datetime
