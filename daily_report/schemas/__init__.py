"""Pydantic schemas."""

from daily_report.schemas.report import (
    DeliveryReceipt,
    PipelineOutcome,
    ReportDocument,
    StatusResponse,
    TriggerResponse,
)
from daily_report.schemas.workflow import (
    RunHandle,
    RunRequest,
    WorkflowResult,
    WorkflowRun,
    WorkflowStatus,
)

__all__ = [
    "DeliveryReceipt",
    "PipelineOutcome",
    "ReportDocument",
    "StatusResponse",
    "TriggerResponse",
    "RunHandle",
    "RunRequest",
    "WorkflowResult",
    "WorkflowRun",
    "WorkflowStatus",
]
