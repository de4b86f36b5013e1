"""
Job endpoints

POST /jobs/{name}/run starts the job in the background and returns 202.
A job whose previous run is still active answers 409 instead.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from codex_api.api.deps import get_scheduler
from codex_api.jobs.scheduler import CodexScheduler
from codex_api.schemas.api import JobsStatusResponse, JobTriggerResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["Jobs"])


@router.get("", response_model=JobsStatusResponse)
async def list_jobs(scheduler: CodexScheduler = Depends(get_scheduler)):
    return scheduler.status()


@router.post("/{job_name}/run", response_model=JobTriggerResponse, status_code=status.HTTP_202_ACCEPTED)
async def run_job(job_name: str, scheduler: CodexScheduler = Depends(get_scheduler)):
    if job_name not in scheduler.guards:
        raise HTTPException(status_code=404, detail=f"Unknown job: {job_name}")

    if scheduler.is_running(job_name):
        raise HTTPException(status_code=409, detail=f"Job {job_name} is already running")

    scheduler.trigger(job_name)
    logger.info(f"[jobs] {job_name} triggered via API")
    return JobTriggerResponse(job=job_name, status="started")
