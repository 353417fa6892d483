from __future__ import annotations

import logging
from typing import Callable, Iterable

from .client import RunnerClient, ServiceResponse
from .models import ERROR, FAIL, PASS, JobHandle, JobRecord, TestCase, TestResult, now_ms
from .poller import JobPoller
from .verdict import check_test

LOGGER = logging.getLogger("runner_harness.correctness")


class SubmissionRejected(Exception):
    """Raised when a submit call comes back without a job identifier."""

    def __init__(self, response: ServiceResponse) -> None:
        detail = response.message or f"response kind {response.kind}"
        super().__init__(f"submission rejected: {detail}")
        self.response = response


def _actual(record: JobRecord) -> dict[str, str | None]:
    return {
        "stdout": record.stdout,
        "stderr": record.stderr,
        "errorType": record.sandbox_error_type,
        "errorMessage": record.sandbox_error_message,
    }


class CorrectnessRunner:
    """Runs test cases one at a time: submit, poll to completion, verdict."""

    def __init__(
        self,
        client: RunnerClient,
        poller: JobPoller,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._client = client
        self._poller = poller
        self._clock = clock

    async def run(self, cases: Iterable[TestCase]) -> list[TestResult]:
        results: list[TestResult] = []
        for case in cases:
            results.append(await self.run_case(case))
        return results

    async def run_case(self, case: TestCase) -> TestResult:
        LOGGER.info("Running test: %s", case.name)
        started_at = self._clock()
        job_id: str | None = None
        try:
            response = await self._client.submit(case.body)
            job_id = response.job_id
            if job_id is None:
                raise SubmissionRejected(response)
            LOGGER.info("Submitted job %s", job_id)

            record = await self._poller.wait_for_result(
                JobHandle(job_id=job_id, submitted_at=started_at, language=case.body.language)
            )
            finished_at = self._clock()
            passed = check_test(case, record)
        except Exception as exc:  # noqa: BLE001
            LOGGER.info("ERROR: %s (%s)", case.name, exc)
            return TestResult(
                name=case.name,
                status=ERROR,
                job_id=job_id,
                expected=case.expectation,
                duration_ms=max(self._clock() - started_at, 0),
                error=str(exc) or type(exc).__name__,
            )

        LOGGER.info("%s: %s", PASS if passed else FAIL, case.name)
        return TestResult(
            name=case.name,
            status=PASS if passed else FAIL,
            job_id=job_id,
            expected=case.expectation,
            actual=_actual(record),
            duration_ms=max(finished_at - started_at, 0),
        )


__all__ = ["CorrectnessRunner", "SubmissionRejected"]
