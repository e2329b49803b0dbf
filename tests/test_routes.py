"""Tests for the HTTP surface."""

import asyncio
from datetime import datetime, timezone

from fastapi.testclient import TestClient

from daily_report.main import create_app
from daily_report.schemas.report import PipelineOutcome


class FakeWorkflowClient:
    def __init__(self, events):
        self.events = events

    async def aclose(self):
        self.events.append("aclose")


class FakePipeline:
    """Pipeline stand-in returning a scripted outcome."""

    def __init__(self, outcome, recipients=("a@example.com", "b@example.com")):
        self.outcome = outcome
        self.runs = 0
        self.events = []
        self.notifier = type("FakeNotifier", (), {"recipients": recipients})()
        self.workflow_client = FakeWorkflowClient(self.events)

    async def run(self):
        self.runs += 1
        return self.outcome


class BlockingPipeline(FakePipeline):
    """Pipeline whose run never finishes on its own."""

    async def run(self):
        self.runs += 1
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.events.append("run cancelled")
            raise


class FakeScheduler:
    next_run = datetime(2026, 10, 17, 6, 0, tzinfo=timezone.utc)

    def __init__(self):
        self.events = []

    def start(self):
        self.events.append("start")

    async def stop(self):
        self.events.append("stop")


def make_client(settings, outcome):
    pipeline = FakePipeline(outcome)
    app = create_app(settings, pipeline=pipeline, scheduler=FakeScheduler())
    return TestClient(app), pipeline


def test_status(settings):
    """Test the status endpoint has no side effects."""
    client, pipeline = make_client(settings, PipelineOutcome(status="sent"))

    response = client.get("/")

    assert response.status_code == 200
    assert response.json() == {
        "status": "Running",
        "nextRun": "2026-10-17T06:00:00Z",
        "recipients": 2,
    }
    assert pipeline.runs == 0


def test_trigger_success(settings):
    """Test a manual run that sends the report."""
    client, pipeline = make_client(settings, PipelineOutcome(status="sent"))

    response = client.post("/trigger")

    assert response.status_code == 200
    assert response.json() == {"status": "sent"}
    assert pipeline.runs == 1


def test_trigger_failure(settings):
    """Test a failed manual run surfaces as 500."""
    client, pipeline = make_client(settings, PipelineOutcome(status="failed", error="Workflow failed: boom"))

    response = client.post("/trigger")

    assert response.status_code == 500
    assert response.json() == {"error": "Workflow failed: boom"}


def test_health(settings):
    """Test health check."""
    client, _ = make_client(settings, PipelineOutcome(status="sent"))

    assert client.get("/health").json() == {"status": "healthy"}


def test_startup_and_shutdown_with_run_on_start(settings):
    """Test lifecycle hooks start the scheduler, run once and release the client."""
    settings = settings.model_copy(update={"RUN_ON_START": True})
    pipeline = FakePipeline(PipelineOutcome(status="sent"))
    scheduler = FakeScheduler()
    app = create_app(settings, pipeline=pipeline, scheduler=scheduler)

    with TestClient(app) as client:
        assert scheduler.events == ["start"]
        assert client.get("/health").status_code == 200
        assert pipeline.runs == 1

    assert scheduler.events == ["start", "stop"]
    assert pipeline.runs == 1
    assert pipeline.events == ["aclose"]


def test_startup_without_run_on_start(settings):
    """Test no run is started when the flag is off."""
    pipeline = FakePipeline(PipelineOutcome(status="sent"))
    app = create_app(settings, pipeline=pipeline, scheduler=FakeScheduler())

    with TestClient(app) as client:
        client.get("/health")

    assert pipeline.runs == 0
    assert pipeline.events == ["aclose"]


def test_shutdown_cancels_pending_run_before_closing_client(settings):
    """Test an in-flight startup run is cancelled before the HTTP client closes."""
    settings = settings.model_copy(update={"RUN_ON_START": True})
    pipeline = BlockingPipeline(PipelineOutcome(status="sent"))
    app = create_app(settings, pipeline=pipeline, scheduler=FakeScheduler())

    with TestClient(app) as client:
        client.get("/health")
        assert pipeline.runs == 1
        assert len(app.state.background_runs) == 1

    assert pipeline.events == ["run cancelled", "aclose"]
