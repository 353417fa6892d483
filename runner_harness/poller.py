from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from .client import ERROR, RunnerClient
from .models import TERMINAL_STATUSES, JobHandle, JobRecord, now_ms

LOGGER = logging.getLogger("runner_harness.poller")

POLL_INTERVAL_S_DEFAULT = 0.15
NO_DATA_INTERVAL_S_DEFAULT = 0.2


class JobPollError(Exception):
    """Raised when a job's status can never be fetched, e.g. its id is not a valid URL segment."""

    def __init__(self, job_id: str, reason: str) -> None:
        super().__init__(f"job {job_id!r} cannot be polled: {reason}")
        self.job_id = job_id
        self.reason = reason


class PollDeadlineExceeded(Exception):
    """Raised when a job is still not terminal after the configured deadline."""

    def __init__(self, job_id: str, deadline_s: float) -> None:
        super().__init__(f"job {job_id} not terminal after {deadline_s:.2f}s")
        self.job_id = job_id
        self.deadline_s = deadline_s


@dataclass(frozen=True)
class PollPolicy:
    """Backoff between status polls of the same job.

    ``deadline_s`` of ``None`` polls until a terminal status arrives.
    """

    interval_s: float = POLL_INTERVAL_S_DEFAULT
    no_data_interval_s: float | None = None
    deadline_s: float | None = None

    def __post_init__(self) -> None:
        if self.interval_s < 0:
            raise ValueError("PollPolicy interval_s must be >= 0")
        if self.no_data_interval_s is not None and self.no_data_interval_s < 0:
            raise ValueError("PollPolicy no_data_interval_s must be >= 0")
        if self.deadline_s is not None and self.deadline_s < 0:
            raise ValueError("PollPolicy deadline_s must be >= 0")

    @property
    def no_data_delay_s(self) -> float:
        if self.no_data_interval_s is None:
            return self.interval_s
        return self.no_data_interval_s


class JobPoller:
    """Drives one accepted job from PENDING to a terminal ``JobRecord``."""

    def __init__(
        self,
        client: RunnerClient,
        policy: PollPolicy | None = None,
        clock: Callable[[], int] = now_ms,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._policy = policy or PollPolicy()
        self._clock = clock
        self._sleep = sleep

    @property
    def policy(self) -> PollPolicy:
        return self._policy

    async def wait_for_result(self, handle: JobHandle) -> JobRecord:
        started = time.monotonic()
        polls = 0
        while True:
            response = await self._client.status(handle.job_id)
            polls += 1

            if response.has_data:
                status = response.data.get("status")
                if status in TERMINAL_STATUSES:
                    record = JobRecord.from_status(handle, response.data, self._clock())
                    LOGGER.debug(
                        "job %s finished with %s after %d poll(s) (%d ms)",
                        handle.job_id,
                        record.status,
                        polls,
                        record.total_duration_ms,
                    )
                    return record
                delay = self._policy.interval_s
            else:
                if response.kind == ERROR and not response.retryable:
                    raise JobPollError(handle.job_id, response.error or "unrecoverable error")
                if response.kind == ERROR:
                    LOGGER.debug("status poll for %s failed: %s", handle.job_id, response.error)
                delay = self._policy.no_data_delay_s

            deadline = self._policy.deadline_s
            if deadline is not None and time.monotonic() - started >= deadline:
                raise PollDeadlineExceeded(handle.job_id, deadline)

            await self._sleep(delay)


__all__ = [
    "JobPollError",
    "JobPoller",
    "NO_DATA_INTERVAL_S_DEFAULT",
    "POLL_INTERVAL_S_DEFAULT",
    "PollDeadlineExceeded",
    "PollPolicy",
]
