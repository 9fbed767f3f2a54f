"""Queue monitor API router — read-only view of worker activity, plus cleanup."""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from subtrack.api.deps import get_current_user, get_queue_monitor
from subtrack.models.user import User
from subtrack.schemas.job import ClearJobsResponse, JobListResponse, JobResponse, QueueMetricsResponse
from subtrack.worker.monitor import JobState, QueueMonitor

router = APIRouter(prefix="/api/v1/jobs", tags=["jobs"])


@router.get("/metrics", response_model=QueueMetricsResponse, summary="Queue metrics")
async def get_metrics(
    monitor: QueueMonitor = Depends(get_queue_monitor),
    current_user: User = Depends(get_current_user),
) -> dict:
    return monitor.metrics()


@router.get("", response_model=JobListResponse, summary="List monitored jobs")
async def list_jobs(
    state: JobState | None = Query(None, alias="status", description="active, completed or failed"),
    limit: int = Query(50, ge=1, le=500),
    monitor: QueueMonitor = Depends(get_queue_monitor),
    current_user: User = Depends(get_current_user),
) -> dict:
    items = monitor.list_jobs(state, limit=limit)
    return {"items": items, "total": len(items)}


@router.get("/{job_id}", response_model=JobResponse, summary="Get a monitored job")
async def get_job(
    job_id: str,
    monitor: QueueMonitor = Depends(get_queue_monitor),
    current_user: User = Depends(get_current_user),
) -> dict:
    job = monitor.get_job(job_id)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Job not found",
        )
    return job


@router.delete("", response_model=ClearJobsResponse, summary="Clear finished job records")
async def clear_jobs(
    state: JobState | None = Query(None, alias="status", description="completed or failed; both when omitted"),
    monitor: QueueMonitor = Depends(get_queue_monitor),
    current_user: User = Depends(get_current_user),
) -> dict:
    if state is JobState.ACTIVE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Active jobs cannot be cleared",
        )
    return {"deleted": monitor.clear(state)}
