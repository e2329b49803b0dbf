"""Pytest configuration and fixtures."""

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
import pytest

from daily_report.config import Settings
from daily_report.services.formatter import ReportFormatter
from daily_report.services.notifier import MailTransport, Notifier
from daily_report.services.workflow_client import WorkflowClient

FIXED_NOW = datetime(2026, 10, 16, 6, 0, tzinfo=timezone.utc)
ENDPOINT = "http://dify.test/v1"


class FakeEngine:
    """Scripted workflow engine served through httpx.MockTransport."""

    def __init__(self, start_response: Any = None, polls: Optional[List[Any]] = None):
        self.start_response = start_response
        self.polls = list(polls or [])
        self.requests: List[httpx.Request] = []

    @property
    def poll_count(self) -> int:
        return sum(1 for r in self.requests if r.method == "GET")

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "POST":
            response = self.start_response
        else:
            response = self.polls.pop(0) if len(self.polls) > 1 else self.polls[0]

        if isinstance(response, Exception):
            raise response
        if isinstance(response, httpx.Response):
            return response
        return httpx.Response(200, json=response)


class FakeTransport(MailTransport):
    """In-memory mail transport."""

    def __init__(self, fail_with: Optional[Exception] = None):
        self.fail_with = fail_with
        self.sent: List[Dict[str, Any]] = []

    def send_email(self, sender, recipients, subject, html, message_id):
        self.sent.append(
            {
                "sender": sender,
                "recipients": list(recipients),
                "subject": subject,
                "html": html,
                "message_id": message_id,
            }
        )
        if self.fail_with is not None:
            raise self.fail_with
        return list(recipients)


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def make_client(engine: FakeEngine, sleep=None, max_attempts: int = 30, poll_interval: float = 10.0):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(engine.handler))
    return WorkflowClient(
        http_client,
        endpoint=ENDPOINT,
        api_key="test-key",
        max_attempts=max_attempts,
        poll_interval=poll_interval,
        sleep=sleep or RecordingSleep(),
    )


def request_json(request: httpx.Request) -> Dict[str, Any]:
    return json.loads(request.content)


@pytest.fixture
def settings():
    """Settings independent of the process environment."""
    return Settings(
        _env_file=None,
        DIFY_API_ENDPOINT=ENDPOINT + "/",
        DIFY_API_KEY="test-key",
        SMTP_HOST="smtp.test",
        EMAIL_USER="reports@example.com",
        EMAIL_RECIPIENTS="alice@example.com, bob@example.com",
        WORKFLOW_POLL_INTERVAL=0,
    )


@pytest.fixture
def formatter():
    return ReportFormatter(title="Daily Report", company_name="Acme", clock=lambda: FIXED_NOW)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def notifier(transport):
    return Notifier(
        transport,
        sender="Daily Report System <reports@example.com>",
        recipients=["alice@example.com", "bob@example.com"],
        clock=lambda: FIXED_NOW,
    )
