"""Report pipeline: workflow run -> HTML report -> email."""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from daily_report.errors import InvalidResponse
from daily_report.schemas.report import PipelineOutcome
from daily_report.schemas.workflow import WorkflowResult
from daily_report.services.formatter import ReportFormatter, format_date
from daily_report.services.notifier import Notifier
from daily_report.services.workflow_client import WorkflowClient

logger = logging.getLogger(__name__)


class ReportPipeline:
    """Run the workflow, format its result and deliver it by email.

    Failures never escape ``run``: they are logged, reported to the
    recipients with an error document and returned in the outcome.
    Concurrent invocations are not serialized.
    """

    def __init__(
        self,
        workflow_client: WorkflowClient,
        formatter: ReportFormatter,
        notifier: Notifier,
        report_type: str = "daily",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.workflow_client = workflow_client
        self.formatter = formatter
        self.notifier = notifier
        self.report_type = report_type
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def build_inputs(self, now: datetime) -> Dict[str, Any]:
        """Workflow inputs for a run started at ``now``."""
        return {
            "date": format_date(now),
            "timestamp": now.isoformat(),
            "report_type": self.report_type,
        }

    async def execute_workflow(self) -> WorkflowResult:
        """Start the workflow and wait for its result if it is not resolved inline."""
        handle = await self.workflow_client.start(self.build_inputs(self.clock()))
        logger.info("Workflow triggered successfully")

        if handle.is_resolved:
            return handle.result

        if not handle.workflow_run_id:
            raise InvalidResponse("Invalid workflow response - no outputs or run ID")

        logger.info(f"Workflow run ID: {handle.workflow_run_id}")
        result = await self.workflow_client.await_completion(handle.workflow_run_id)
        if result is None:
            raise InvalidResponse(f"Workflow run {handle.workflow_run_id} produced no result")
        return result

    async def run(self) -> PipelineOutcome:
        """Run the pipeline once."""
        logger.info(f"[{self.clock().isoformat()}] Starting {self.report_type} report generation...")

        try:
            result = await self.execute_workflow()
            logger.info("Workflow completed successfully")

            document = self.formatter.format(result)
            receipt = await self.notifier.send(document)
        except Exception as e:
            logger.error(f"[{self.clock().isoformat()}] Report generation failed: {e}", exc_info=True)
            await self.notify_failure(e)
            return PipelineOutcome(status="failed", error=str(e))

        logger.info(f"[{self.clock().isoformat()}] Report completed successfully")
        return PipelineOutcome(status="sent", receipt=receipt)

    async def notify_failure(self, error: Exception) -> None:
        """Best-effort error notification; failures are only logged."""
        try:
            document = self.formatter.format_error(error)
            await self.notifier.send(document)
        except Exception as e:
            logger.error(f"Failed to send error notification: {e}")
