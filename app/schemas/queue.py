"""Pydantic schemas for the formula queue introspection endpoint."""

from pydantic import BaseModel, Field


class QueueEntry(BaseModel):
    spreadsheet_id: str
    enqueued_at: float = Field(..., description="Epoch milliseconds of the latest signal.")


class LastUpdateEntry(BaseModel):
    spreadsheet_id: str
    updated_at: float = Field(..., description="Epoch milliseconds of the last successful refresh.")


class QueueMetricsResponse(BaseModel):
    """Snapshot of the background formula update queue."""

    queue_depth: int
    queue: list[QueueEntry]
    last_updates: list[LastUpdateEntry]
    armed: bool
    stats: dict[str, int]
