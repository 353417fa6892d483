"""Shared fakes for the runner API, clocks and sleeps."""

from __future__ import annotations

import asyncio
import collections
import itertools
import json
from typing import Any

import httpx
import pytest

from runner_harness.client import RunnerClient

BASE_URL = "http://runner.test"


class FakeRunnerService:
    """In-memory runner API served through ``httpx.MockTransport``.

    ``scripts`` maps a job id to the sequence of status steps returned by
    successive polls; the last step repeats. A step is a ``data`` dict, an
    ``httpx.Response`` or an exception to raise.
    """

    def __init__(self) -> None:
        self.submissions: list[dict[str, Any]] = []
        self.submit_headers: list[httpx.Headers] = []
        self.status_calls: collections.Counter[str] = collections.Counter()
        self.scripts: dict[str, list[Any]] = {}
        self.default_script: list[Any] = [
            {
                "status": "success",
                "stdout": "1\n",
                "stderr": "",
                "sandboxErrorType": None,
                "sandboxErrorMessage": None,
            }
        ]
        self.submit_steps: list[Any] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._ids = itertools.count(start=1)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        if request.method == "POST" and request.url.path == "/api/v1/runner/submit":
            return await self._submit(request)
        job_id = request.url.path.split("/")[-2]
        self.status_calls[job_id] += 1
        script = self.scripts.get(job_id, self.default_script)
        step = script[min(self.status_calls[job_id] - 1, len(script) - 1)]
        return _respond(step, request)

    async def _submit(self, request: httpx.Request) -> httpx.Response:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            index = len(self.submissions)
            self.submissions.append(json.loads(request.content))
            self.submit_headers.append(request.headers)
            if index < len(self.submit_steps) and self.submit_steps[index] is not None:
                return _respond(self.submit_steps[index], request)
            return httpx.Response(
                200,
                json={"code": 200, "success": True, "data": {"jobId": f"job-{next(self._ids)}"}},
            )
        finally:
            self.in_flight -= 1

    def client(self, **kwargs: Any) -> RunnerClient:
        return RunnerClient(BASE_URL, transport=httpx.MockTransport(self.handler), **kwargs)


def _respond(step: Any, request: httpx.Request) -> httpx.Response:
    if isinstance(step, Exception):
        raise step
    if isinstance(step, httpx.Response):
        return step
    return httpx.Response(200, json={"code": 200, "success": True, "data": step})


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)
        await asyncio.sleep(0)


class FakeClock:
    """Millisecond clock that advances by ``step`` on every read."""

    def __init__(self, start: int = 1_000_000, step: int = 10) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> int:
        value = self.now
        self.now += self.step
        return value


def status(state: str, stdout: str = "", error_type: str | None = None, **extra: Any) -> dict[str, Any]:
    payload = {
        "status": state,
        "stdout": stdout,
        "stderr": extra.pop("stderr", ""),
        "sandboxErrorType": error_type,
        "sandboxErrorMessage": extra.pop("error_message", None),
    }
    payload.update(extra)
    return payload


@pytest.fixture
def service() -> FakeRunnerService:
    return FakeRunnerService()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
