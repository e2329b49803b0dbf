"""Workflow engine client: run trigger and completion polling."""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
from pydantic import ValidationError
from tenacity import AsyncRetrying, RetryError, retry_if_result, stop_after_attempt, wait_fixed

from daily_report.config import Settings
from daily_report.errors import InvalidResponse, TransportError, WorkflowFailed, WorkflowTimeout
from daily_report.schemas.workflow import (
    RunHandle,
    RunRequest,
    WorkflowResult,
    WorkflowRun,
    WorkflowStatus,
)

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def _is_running(run: WorkflowRun) -> bool:
    return not run.status.is_terminal


class WorkflowClient:
    """Client for the workflow engine HTTP API."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        endpoint: str,
        api_key: str,
        user: str = "daily-report-system",
        response_mode: str = "blocking",
        max_attempts: int = 30,
        poll_interval: float = 10.0,
        sleep: Sleep = asyncio.sleep,
    ):
        """Initialize the workflow client."""
        self.http = http_client
        self.endpoint = endpoint.rstrip("/")
        self.api_key = api_key
        self.user = user
        self.response_mode = response_mode
        self.max_attempts = max_attempts
        self.poll_interval = poll_interval
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls, settings: Settings, http_client: Optional[httpx.AsyncClient] = None
    ) -> "WorkflowClient":
        """Build a client from application settings."""
        if http_client is None:
            http_client = httpx.AsyncClient(timeout=settings.WORKFLOW_REQUEST_TIMEOUT)
        return cls(
            http_client,
            endpoint=settings.DIFY_API_ENDPOINT,
            api_key=settings.DIFY_API_KEY,
            user=settings.DIFY_USER_ID,
            response_mode=settings.DIFY_RESPONSE_MODE,
            max_attempts=settings.WORKFLOW_POLL_ATTEMPTS,
            poll_interval=settings.WORKFLOW_POLL_INTERVAL,
        )

    def _build_headers(self) -> Dict[str, str]:
        """Build HTTP headers for the workflow engine."""
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        """Send a request and return the decoded JSON object.

        Raises:
            TransportError: On network errors and non-2xx responses
            InvalidResponse: If the body is not a JSON object
        """
        url = f"{self.endpoint}{path}"
        try:
            response = await self.http.request(method, url, headers=self._build_headers(), **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            details = _error_body(e.response)
            raise TransportError(
                f"Workflow engine returned {e.response.status_code} for {method} {path}",
                details=details,
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Workflow engine request failed: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise InvalidResponse(f"Workflow engine returned non-JSON body for {method} {path}") from e

        if not isinstance(body, dict):
            raise InvalidResponse(f"Workflow engine returned unexpected body for {method} {path}")
        return body

    async def start(self, inputs: Dict[str, Any]) -> RunHandle:
        """
        Submit a workflow run.

        Args:
            inputs: Workflow input mapping (string keys, JSON-serializable values)

        Returns:
            RunHandle with a resolved result (blocking mode) or a run id to poll

        Raises:
            ValueError: If inputs are not serializable key-value data
            TransportError: On network/auth failure
            InvalidResponse: If the response has neither outputs nor a run id
            WorkflowFailed: If a blocking run already reports failed/stopped
        """
        if not isinstance(inputs, dict) or not all(isinstance(k, str) for k in inputs):
            raise ValueError("Workflow inputs must be a mapping with string keys")
        try:
            json.dumps(inputs)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Workflow inputs are not JSON-serializable: {e}") from e

        payload = RunRequest(inputs=inputs, response_mode=self.response_mode, user=self.user)

        logger.info("Triggering workflow run...")
        body = await self._request("POST", "/workflows/run", json=payload.model_dump())

        run_id = body.get("workflow_run_id") or None
        logger.info(f"Workflow response received: {run_id or 'completed'}")

        data = body.get("data")
        if isinstance(data, dict) and data.get("status"):
            try:
                status = WorkflowStatus(data["status"])
            except ValueError as e:
                raise InvalidResponse(f"Unknown workflow status: {data['status']!r}", details=data) from e

            if status is WorkflowStatus.SUCCEEDED and data.get("outputs") is not None:
                result = WorkflowResult(
                    run_id=run_id,
                    outputs=data["outputs"],
                    elapsed_time=data.get("elapsed_time"),
                    total_tokens=data.get("total_tokens"),
                )
                return RunHandle(workflow_run_id=run_id, status=status, result=result)

            if status in (WorkflowStatus.FAILED, WorkflowStatus.STOPPED):
                error = data.get("error") or "Unknown error"
                raise WorkflowFailed(status.value, f"Workflow {status.value}: {error}", details=data)

        if not run_id:
            raise InvalidResponse("Invalid workflow response - no outputs or run ID", details=body)

        return RunHandle(workflow_run_id=run_id, task_id=body.get("task_id"))

    async def get_run(self, run_id: str) -> WorkflowRun:
        """Fetch the current state of a run."""
        body = await self._request("GET", f"/workflows/run/{run_id}")
        body.setdefault("id", run_id)
        try:
            run = WorkflowRun.model_validate(body)
        except ValidationError as e:
            raise InvalidResponse(f"Malformed run status for {run_id}: {e}", details=body) from e

        logger.info(f"Workflow run {run_id} status: {run.status.value}")
        return run

    async def await_completion(
        self,
        run_id: Optional[str],
        max_attempts: Optional[int] = None,
        poll_interval: Optional[float] = None,
    ) -> Optional[WorkflowResult]:
        """
        Poll a run at fixed intervals until it reaches a terminal status.

        Args:
            run_id: Run identifier; empty means there is nothing to wait for
            max_attempts: Poll budget (defaults to the client setting)
            poll_interval: Seconds between polls (defaults to the client setting)

        Returns:
            WorkflowResult on success, None when run_id is empty

        Raises:
            WorkflowFailed: If the run ends failed or stopped
            WorkflowTimeout: If the run is still running after max_attempts polls
        """
        if not run_id:
            logger.warning("No workflow run id to wait for")
            return None

        attempts = max_attempts if max_attempts is not None else self.max_attempts
        interval = poll_interval if poll_interval is not None else self.poll_interval

        def log_attempt(retry_state) -> None:
            logger.info(f"Checking workflow status (attempt {retry_state.attempt_number}/{attempts})")

        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_fixed(interval),
            retry=retry_if_result(_is_running),
            before=log_attempt,
            sleep=self._sleep,
        )

        try:
            run = await retrying(self.get_run, run_id)
        except RetryError as e:
            logger.error(f"Workflow run {run_id} still running after {attempts} attempts")
            raise WorkflowTimeout(attempts) from e

        if run.status is not WorkflowStatus.SUCCEEDED:
            error = run.error or "Unknown error"
            raise WorkflowFailed(
                run.status.value,
                f"Workflow {run.status.value}: {error}",
                details={"workflow_run_id": run_id, "error": run.error},
            )

        return run.to_result()

    async def aclose(self) -> None:
        await self.http.aclose()


def _error_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text or None
