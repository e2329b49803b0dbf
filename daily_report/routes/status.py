"""Status and manual trigger routes."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from daily_report.pipeline import ReportPipeline
from daily_report.scheduler import DailyScheduler
from daily_report.schemas.report import StatusResponse, TriggerResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["report"])


def get_pipeline(request: Request) -> ReportPipeline:
    return request.app.state.pipeline


def get_scheduler(request: Request) -> Optional[DailyScheduler]:
    return getattr(request.app.state, "scheduler", None)


@router.get("/", response_model=StatusResponse)
def status(
    pipeline: ReportPipeline = Depends(get_pipeline),
    scheduler: Optional[DailyScheduler] = Depends(get_scheduler),
):
    """Liveness and schedule status."""
    next_run = None
    if scheduler is not None:
        next_run = scheduler.next_run or scheduler.next_run_time()

    return StatusResponse(
        status="Running",
        nextRun=next_run,
        recipients=len(pipeline.notifier.recipients),
    )


@router.post("/trigger", response_model=TriggerResponse)
async def trigger(pipeline: ReportPipeline = Depends(get_pipeline)):
    """Run the full pipeline and report whether the email went out."""
    logger.info("Manual trigger received")
    outcome = await pipeline.run()

    if not outcome.succeeded:
        return JSONResponse(status_code=500, content={"error": outcome.error})

    return TriggerResponse(status="sent")


@router.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "healthy"}
