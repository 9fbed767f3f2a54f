"""Pydantic v2 response schemas for the queue monitor endpoints."""

from typing import Any

from pydantic import BaseModel


class JobError(BaseModel):
    message: str
    trace: str | None = None


class JobResponse(BaseModel):
    job_id: str
    job: str
    queue: str
    status: str
    attempts: int
    started_at: str | None = None
    finished_at: str | None = None
    failed_at: str | None = None
    duration_seconds: int | None = None
    kwargs: dict[str, Any] = {}
    error: JobError | None = None


class JobListResponse(BaseModel):
    items: list[JobResponse]
    total: int


class QueueMetricsResponse(BaseModel):
    active_count: int
    completed_count: int
    failed_count: int
    total_monitored: int
    success_rate: float


class ClearJobsResponse(BaseModel):
    deleted: int
