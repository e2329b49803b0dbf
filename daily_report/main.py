"""FastAPI application entry point."""

import asyncio
import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI

from daily_report import __version__
from daily_report.config import Settings, get_settings
from daily_report.pipeline import ReportPipeline
from daily_report.routes import status
from daily_report.scheduler import DailyScheduler
from daily_report.services.formatter import ReportFormatter
from daily_report.services.notifier import Notifier
from daily_report.services.workflow_client import WorkflowClient

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


def build_pipeline(settings: Settings) -> ReportPipeline:
    """Wire the production collaborators from settings."""
    return ReportPipeline(
        workflow_client=WorkflowClient.from_settings(settings),
        formatter=ReportFormatter(title=settings.REPORT_TITLE, company_name=settings.COMPANY_NAME),
        notifier=Notifier.from_settings(settings),
        report_type=settings.REPORT_TYPE,
    )


def create_app(
    settings: Optional[Settings] = None,
    pipeline: Optional[ReportPipeline] = None,
    scheduler: Optional[DailyScheduler] = None,
) -> FastAPI:
    """Create the application with its collaborators attached to ``app.state``."""
    if settings is None:
        settings = get_settings()
    if pipeline is None:
        pipeline = build_pipeline(settings)
    if scheduler is None:
        scheduler = DailyScheduler(
            pipeline.run,
            run_at=settings.SCHEDULE_TIME,
            timezone_name=settings.SCHEDULE_TIMEZONE,
        )

    app = FastAPI(
        title="Daily Report",
        description="Scheduled workflow report delivered by email",
        version=__version__,
    )
    app.state.settings = settings
    app.state.pipeline = pipeline
    app.state.scheduler = scheduler
    app.state.background_runs = set()

    app.include_router(status.router)

    @app.on_event("startup")
    async def startup_event():
        """Start the scheduler and optionally kick off an immediate run."""
        logger.info("Starting application...")
        scheduler.start()

        if settings.RUN_ON_START:
            logger.info("RUN_ON_START enabled, running report now")
            task = asyncio.create_task(pipeline.run())
            app.state.background_runs.add(task)
            task.add_done_callback(app.state.background_runs.discard)

    @app.on_event("shutdown")
    async def shutdown_event():
        """Stop the scheduler, cancel pending runs and release the HTTP client."""
        logger.info("Shutting down application...")
        await scheduler.stop()

        pending = list(app.state.background_runs)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.info(f"Cancelled {len(pending)} pending report run(s)")

        await pipeline.workflow_client.aclose()

    return app


def main():
    """Entry point for the report server."""
    settings = get_settings()
    app = create_app(settings)
    logger.info(f"Server running on port {settings.PORT}")
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)


if __name__ == "__main__":
    main()
