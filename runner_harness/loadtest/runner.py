from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Sequence

from ..client import RunnerClient
from ..models import JobHandle, JobRecord, JobRequest, Report, now_ms
from ..poller import JobPoller, PollDeadlineExceeded, PollPolicy
from .collector import ResultAggregator
from .load import DispatchResult, SubmissionDispatcher

LOGGER = logging.getLogger("runner_harness.load")


@dataclass
class LoadRun:
    dispatch: DispatchResult
    report: Report | None
    elapsed_ms: int

    @property
    def succeeded(self) -> bool:
        return self.report is not None

    def to_dict(self) -> dict[str, Any]:
        if self.report is None:
            return self.dispatch.diagnostic()
        return self.report.to_dict()


class LoadTestRunner:
    """Submit everything, poll every accepted job, then aggregate.

    Both the submissions and the pollers fan out without a cap unless
    ``max_concurrency`` is given.
    """

    def __init__(
        self,
        client: RunnerClient,
        policy: PollPolicy | None = None,
        clock: Callable[[], int] = now_ms,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        max_concurrency: int | None = None,
        aggregator: ResultAggregator | None = None,
    ) -> None:
        self._dispatcher = SubmissionDispatcher(client, clock=clock, max_concurrency=max_concurrency)
        self._poller = JobPoller(client, policy=policy, clock=clock, sleep=sleep)
        self._max_concurrency = max_concurrency
        self._aggregator = aggregator or ResultAggregator()

    @property
    def aggregator(self) -> ResultAggregator:
        return self._aggregator

    async def run(self, requests: Sequence[JobRequest]) -> LoadRun:
        LOGGER.info("Starting load test (%d jobs)", len(requests))
        started = time.perf_counter()

        dispatch = await self._dispatcher.dispatch(requests)
        if not dispatch.handles:
            elapsed_ms = _elapsed_ms(started)
            LOGGER.error("No jobs were accepted out of %d submissions", dispatch.requested)
            return LoadRun(dispatch=dispatch, report=None, elapsed_ms=elapsed_ms)

        records, timed_out, errored = await self._poll_all(dispatch.handles)
        elapsed_ms = _elapsed_ms(started)
        LOGGER.info("Load test finished in %d ms", elapsed_ms)

        report = self._aggregator.build_report(
            records,
            requested=dispatch.requested,
            elapsed_ms=elapsed_ms,
            timed_out=timed_out,
            errored=errored,
        )
        return LoadRun(dispatch=dispatch, report=report, elapsed_ms=elapsed_ms)

    async def _poll_all(
        self, handles: Sequence[JobHandle]
    ) -> tuple[list[JobRecord], list[str], list[dict[str, str]]]:
        limiter = (
            asyncio.Semaphore(self._max_concurrency)
            if self._max_concurrency is not None
            else None
        )

        async def poll(handle: JobHandle) -> tuple[JobHandle, JobRecord | None, Exception | None]:
            try:
                if limiter is None:
                    return handle, await self._poller.wait_for_result(handle), None
                async with limiter:
                    return handle, await self._poller.wait_for_result(handle), None
            except Exception as exc:  # noqa: BLE001
                return handle, None, exc

        tasks = [asyncio.create_task(poll(handle)) for handle in handles]
        records: list[JobRecord] = []
        timed_out: list[str] = []
        errored: list[dict[str, str]] = []
        # completion order, not submission order
        for next_done in asyncio.as_completed(tasks):
            handle, record, exc = await next_done
            if record is not None:
                records.append(record)
            elif isinstance(exc, PollDeadlineExceeded):
                LOGGER.warning("%s", exc)
                timed_out.append(exc.job_id)
            else:
                LOGGER.warning("polling job %r failed: %s", handle.job_id, exc)
                errored.append({"jobId": handle.job_id, "error": str(exc) or type(exc).__name__})
        return records, timed_out, errored


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


__all__ = ["LoadRun", "LoadTestRunner"]
