"""Video Task Poller — client-side driver for the async video lifecycle.

The provider moves a task through ``queued → running → succeeded | failed |
cancelled``. The poller queries video-status on a fixed interval until a
terminal state shows up or the wall-clock budget runs out (TIMEOUT).

A failed status query (non-ok envelope or a payload that is not a task)
ends the loop at once; infrastructure failures are never reported as task
failures. The gateway keeps no poll state, so a caller cancels simply by
cancelling the coroutine.

Clock and sleep are injectable so tests run without real delays.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any
from urllib.parse import quote

import httpx

from creative_gateway.core.config import settings
from creative_gateway.gateway.normalizer import error_response
from creative_gateway.gateway.types import ErrorCode, GatewayResponse, VideoTask, VideoTaskStatus

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 10.0
DEFAULT_POLL_TIMEOUT_SECONDS = 600.0

_PROGRESS_BY_STATUS = {
    VideoTaskStatus.QUEUED: 10,
    VideoTaskStatus.PENDING: 10,
    VideoTaskStatus.RUNNING: 50,
    VideoTaskStatus.SUCCEEDED: 100,
    VideoTaskStatus.FAILED: 100,
    VideoTaskStatus.CANCELLED: 100,
}

_STATUS_DESCRIPTIONS = {
    VideoTaskStatus.QUEUED: "Video task submitted, waiting in queue",
    VideoTaskStatus.PENDING: "Video task submitted, waiting in queue",
    VideoTaskStatus.RUNNING: "Video is being generated",
    VideoTaskStatus.SUCCEEDED: "Video generated successfully",
    VideoTaskStatus.FAILED: "Video generation failed",
    VideoTaskStatus.CANCELLED: "Video task was cancelled",
}


def estimate_progress(status: VideoTaskStatus | str) -> int:
    """Rough completion percentage for a task status; unknown → 0."""
    return _PROGRESS_BY_STATUS.get(status, 0)


def describe_status(status: VideoTaskStatus | str) -> str:
    if status in _STATUS_DESCRIPTIONS:
        return _STATUS_DESCRIPTIONS[status]
    value = status.value if isinstance(status, VideoTaskStatus) else status
    return f"Unknown status: {value}"


class PollState(str, Enum):
    POLLING = "polling"
    TERMINAL = "terminal"  # provider reported succeeded/failed/cancelled
    FAILED = "failed"  # status query itself failed
    TIMED_OUT = "timed_out"


@dataclass
class PollOutcome:
    state: PollState
    response: GatewayResponse
    task: VideoTask | None = None
    polls: int = 0

    @property
    def ok(self) -> bool:
        return self.state == PollState.TERMINAL


StatusFetcher = Callable[[str], Awaitable[GatewayResponse]]
ProgressCallback = Callable[[VideoTaskStatus | str, int], None]


class TaskPoller:
    """Polls a video task until it reaches a terminal state or times out."""

    def __init__(
        self,
        fetch_status: StatusFetcher,
        interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        timeout_seconds: float = DEFAULT_POLL_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        on_progress: ProgressCallback | None = None,
    ):
        self.fetch_status = fetch_status
        self.interval_seconds = interval_seconds
        self.timeout_seconds = timeout_seconds
        self.clock = clock
        self.sleep = sleep
        self.on_progress = on_progress

    async def poll(self, task_id: str) -> PollOutcome:
        start = self.clock()
        polls = 0
        state = PollState.POLLING
        log_extra = {"task_id": task_id}

        while state == PollState.POLLING:
            if self.clock() - start >= self.timeout_seconds:
                state = PollState.TIMED_OUT
                break

            response = await self.fetch_status(task_id)
            polls += 1

            if not response.ok:
                logger.warning("Video task %s: status query failed with %s", task_id, response.error, extra=log_extra)
                return PollOutcome(state=PollState.FAILED, response=response, polls=polls)

            try:
                task = VideoTask.from_payload(response.data)
            except ValueError as e:
                logger.warning("Video task %s: malformed status payload (%s)", task_id, e, extra=log_extra)
                return PollOutcome(
                    state=PollState.FAILED,
                    response=error_response(ErrorCode.SERVER_ERROR, 502, message=f"Malformed task payload: {e}"),
                    polls=polls,
                )

            if self.on_progress is not None:
                self.on_progress(task.status, estimate_progress(task.status))

            if task.is_terminal:
                logger.info(
                    "Video task %s reached %s after %d polls", task_id, task.status.value, polls, extra=log_extra
                )
                return PollOutcome(state=PollState.TERMINAL, response=response, task=task, polls=polls)

            await self.sleep(self.interval_seconds)

        logger.warning("Video task %s: no terminal state within %.0fs", task_id, self.timeout_seconds, extra=log_extra)
        return PollOutcome(
            state=state,
            response=error_response(ErrorCode.TIMEOUT, 504),
            polls=polls,
        )


class VideoTaskClient:
    """HTTP client for the gateway's video endpoints (caller side)."""

    TASKS_PATH = "/api/doubao/videos/tasks"

    def __init__(self, client: httpx.AsyncClient, base_url: str = ""):
        self.client = client
        self.base_url = base_url.rstrip("/")

    async def _request(self, method: str, path: str, json: dict | None = None) -> GatewayResponse:
        try:
            resp = await self.client.request(method, f"{self.base_url}{path}", json=json)
            payload = resp.json()
        except httpx.HTTPError as e:
            return error_response(ErrorCode.SERVER_ERROR, 500, message=str(e) or type(e).__name__)
        except ValueError:
            return error_response(ErrorCode.SERVER_ERROR, resp.status_code, message="Gateway returned invalid JSON")
        return GatewayResponse.from_wire(resp.status_code, payload)

    async def create_task(self, content: list[dict[str, Any]], model: str | None = None, **extra) -> GatewayResponse:
        body: dict[str, Any] = {"content": content, **extra}
        if model:
            body["model"] = model
        return await self._request("POST", self.TASKS_PATH, json=body)

    async def get_task(self, task_id: str) -> GatewayResponse:
        return await self._request("GET", f"{self.TASKS_PATH}/{quote(task_id, safe='')}")

    async def generate(
        self,
        content: list[dict[str, Any]],
        model: str | None = None,
        interval_seconds: float | None = None,
        timeout_seconds: float | None = None,
        on_progress: ProgressCallback | None = None,
        **extra,
    ) -> PollOutcome:
        """Create a task and poll it to completion.

        Interval and timeout fall back to VIDEO_POLL_INTERVAL_SECONDS /
        VIDEO_POLL_TIMEOUT_SECONDS. Extra keyword arguments (``callback_url``,
        ``return_last_frame``) go into the create request body.
        """
        if interval_seconds is None:
            interval_seconds = settings.video_poll_interval_seconds
        if timeout_seconds is None:
            timeout_seconds = settings.video_poll_timeout_seconds

        created = await self.create_task(content, model=model, **extra)
        task_id = created.data.get("id") if created.ok and isinstance(created.data, dict) else None
        if not task_id:
            if created.ok:
                created = error_response(ErrorCode.SERVER_ERROR, 502, message="Task id missing from create response")
            return PollOutcome(state=PollState.FAILED, response=created)

        poller = TaskPoller(
            self.get_task,
            interval_seconds=interval_seconds,
            timeout_seconds=timeout_seconds,
            on_progress=on_progress,
        )
        return await poller.poll(task_id)
