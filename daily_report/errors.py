"""Error taxonomy for the report pipeline."""

from typing import Any, Optional


class ReportError(Exception):
    """Base class for pipeline errors.

    Args:
        message: Human-readable error message
        details: Optional structured payload (e.g. the engine's error body)
    """

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class TransportError(ReportError):
    """Network or authentication failure talking to the workflow engine or mail server."""


class InvalidResponse(ReportError):
    """Workflow engine response is malformed or incomplete."""


class WorkflowFailed(ReportError):
    """Workflow run reached a terminal negative status."""

    def __init__(self, status: str, message: str, details: Optional[Any] = None):
        super().__init__(message, details)
        self.status = status


class WorkflowTimeout(ReportError):
    """Workflow run did not reach a terminal status within the attempt budget."""

    def __init__(self, attempts: int, message: Optional[str] = None):
        super().__init__(message or f"Workflow timeout - exceeded {attempts} attempts")
        self.attempts = attempts


class DeliveryError(ReportError):
    """Mail server rejected the message."""
