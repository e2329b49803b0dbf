"""Report, delivery and HTTP response schemas."""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict


class ReportDocument(BaseModel):
    """Rendered report ready for delivery."""

    model_config = ConfigDict(frozen=True)

    title: str
    html: str
    generated_at: datetime
    is_error: bool = False


class DeliveryReceipt(BaseModel):
    """Result of a successful email delivery."""

    message_id: str
    recipients: List[str]
    sent_at: datetime


class PipelineOutcome(BaseModel):
    """Outcome of one pipeline invocation."""

    status: Literal["sent", "failed"]
    error: Optional[str] = None
    receipt: Optional[DeliveryReceipt] = None

    @property
    def succeeded(self) -> bool:
        return self.status == "sent"


class StatusResponse(BaseModel):
    """GET / response."""

    status: str
    nextRun: Optional[datetime] = None
    recipients: int


class TriggerResponse(BaseModel):
    """POST /trigger success response."""

    status: str
