"""Workflow engine schemas."""

import json
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, field_validator


class WorkflowStatus(str, Enum):
    """Run status reported by the workflow engine."""

    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    STOPPED = "stopped"

    @property
    def is_terminal(self) -> bool:
        return self is not WorkflowStatus.RUNNING


class WorkflowResult(BaseModel):
    """Outputs of a succeeded run."""

    run_id: Optional[str] = None
    outputs: Any = None
    elapsed_time: Optional[float] = None
    total_tokens: Optional[int] = None


class WorkflowRun(BaseModel):
    """Snapshot of a run from GET /workflows/run/{id}."""

    id: str
    status: WorkflowStatus
    outputs: Optional[Any] = None
    elapsed_time: Optional[float] = None
    total_tokens: Optional[int] = None
    error: Optional[str] = None

    @field_validator("outputs", mode="before")
    @classmethod
    def decode_outputs(cls, value: Any) -> Any:
        # The status endpoint returns outputs as a JSON-encoded string
        if isinstance(value, str):
            try:
                return json.loads(value)
            except ValueError:
                return value
        return value

    def to_result(self) -> WorkflowResult:
        """Build the result of a succeeded run."""
        if self.status is not WorkflowStatus.SUCCEEDED:
            raise ValueError(f"Run {self.id} has not succeeded (status: {self.status.value})")
        return WorkflowResult(
            run_id=self.id,
            outputs=self.outputs,
            elapsed_time=self.elapsed_time,
            total_tokens=self.total_tokens,
        )


class RunHandle(BaseModel):
    """Response to a run request: either a resolved result or a run to poll."""

    workflow_run_id: Optional[str] = None
    task_id: Optional[str] = None
    status: Optional[WorkflowStatus] = None
    result: Optional[WorkflowResult] = None
    error: Optional[str] = None

    @property
    def is_resolved(self) -> bool:
        return self.result is not None


class RunRequest(BaseModel):
    """Body of POST /workflows/run."""

    inputs: Dict[str, Any]
    response_mode: str
    user: str
