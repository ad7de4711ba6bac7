"""
Job Status Tracking for Background Tasks
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..services.task_queue import TaskQueue, get_task_queue

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["Jobs"])


class JobStatusResponse(BaseModel):
    jobId: str
    status: str  # queued, in_progress, complete, failed, not_found
    result: Optional[dict] = None
    error: Optional[str] = None


async def get_job_status_with_retry(
    queue: TaskQueue, job_id: str, max_retries: int = 3, retry_delay: float = 1.0
) -> JobStatusResponse:
    """
    Get job status with exponential backoff retry logic
    """
    for attempt in range(max_retries):
        try:
            status = await asyncio.wait_for(queue.job_status(job_id), timeout=20.0)
            return JobStatusResponse(**status)
        except asyncio.TimeoutError:
            logger.warning(f"⏰ Timeout on attempt {attempt + 1}/{max_retries} for job {job_id}")
            if attempt == max_retries - 1:
                raise HTTPException(
                    status_code=504, detail="Timeout connecting to job queue - please try again"
                ) from None
        except Exception as e:
            logger.warning(f"🔄 Retry {attempt + 1}/{max_retries} for job {job_id}: {str(e)}")
            if attempt == max_retries - 1:
                logger.error(f"❌ All retries failed for job {job_id}: {str(e)}")
                raise HTTPException(
                    status_code=500, detail="Failed to retrieve job status after retries"
                ) from e
        # Exponential backoff
        await asyncio.sleep(retry_delay * (2**attempt))


@router.get("/status/{job_id}", response_model=JobStatusResponse)
async def get_job_status(job_id: str, queue: TaskQueue = Depends(get_task_queue)):
    """
    Get the status of a background job, e.g. consent PDF generation.
    Includes retry logic for Redis connectivity issues
    """
    response = await get_job_status_with_retry(queue, job_id)
    if response.status == "not_found":
        return JSONResponse(status_code=404, content=response.model_dump())
    return response
