"""Tests for load-mode request generation, dispatch and orchestration."""

from __future__ import annotations

import asyncio
import random
import statistics

import httpx
import pytest

from runner_harness.loadtest.config import IDENTICAL, MIXED, LoadProfile, get_profile
from runner_harness.loadtest.load import SubmissionDispatcher, build_requests
from runner_harness.loadtest.runner import LoadTestRunner
from runner_harness.models import JobRequest
from runner_harness.poller import PollPolicy

from conftest import status

PRINT_ONE = JobRequest(language="python", code="print(1)\n")

def rejected() -> httpx.Response:
    return httpx.Response(401, json={"success": False, "message": "unauthorized", "code": 401})


# ======================================================================
# Request generation
# ======================================================================


class TestBuildRequests:
    def test_identical_profile(self) -> None:
        requests = build_requests(IDENTICAL, 5, random.Random(1))
        assert len(requests) == 5
        assert len(set(requests)) == 1
        assert requests[0].language == "python"
        assert requests[0].code.strip() == "print(1)"
        assert requests[0].input == ""

    def test_mixed_profile_is_seedable(self) -> None:
        first = build_requests(MIXED, 40, random.Random(7))
        second = build_requests(MIXED, 40, random.Random(7))
        assert first == second
        assert len({request.language for request in first}) > 1

    def test_zero_weight_languages_never_drawn(self) -> None:
        profile = LoadProfile(name="go-only", language_weights={"go": 1.0, "java": 0.0})
        requests = build_requests(profile, 25, random.Random(3))
        assert {request.language for request in requests} == {"go"}

    def test_negative_count_rejected(self) -> None:
        with pytest.raises(ValueError):
            build_requests(IDENTICAL, -1)

    def test_profile_weights_must_be_positive(self) -> None:
        profile = LoadProfile(name="empty", language_weights={})
        with pytest.raises(ValueError, match="sum to > 0"):
            profile.normalised_language_weights()

    def test_unknown_profile(self) -> None:
        with pytest.raises(ValueError, match="Unknown load profile"):
            get_profile("extreme")


# ======================================================================
# SubmissionDispatcher
# ======================================================================


class TestSubmissionDispatcher:
    def test_all_accepted(self, service, clock) -> None:
        dispatcher = SubmissionDispatcher(service.client(), clock=clock)
        result = asyncio.run(dispatcher.dispatch([PRINT_ONE] * 4))
        assert result.requested == 4
        assert result.accepted == 4
        assert [handle.job_id for handle in result.handles] == ["job-1", "job-2", "job-3", "job-4"]
        assert all(handle.language == "python" for handle in result.handles)

    def test_rejected_submissions_filtered_out(self, service, clock) -> None:
        service.submit_steps = [None, rejected(), httpx.ConnectError("refused"), None]
        dispatcher = SubmissionDispatcher(service.client(), clock=clock)
        result = asyncio.run(dispatcher.dispatch([PRINT_ONE] * 4))
        assert result.accepted == 2
        assert len(result.responses) == 4
        assert result.responses[1].job_id is None
        assert result.responses[2].kind == "error"

    def test_submission_stamped_before_call(self, service, clock) -> None:
        clock.now = 50_000
        dispatcher = SubmissionDispatcher(service.client(), clock=clock)
        result = asyncio.run(dispatcher.dispatch([PRINT_ONE] * 3))
        stamps = [handle.submitted_at for handle in result.handles]
        assert stamps == [50_000, 50_010, 50_020]

    def test_unbounded_fan_out(self, service) -> None:
        dispatcher = SubmissionDispatcher(service.client())
        asyncio.run(dispatcher.dispatch([PRINT_ONE] * 10))
        assert service.max_in_flight == 10

    def test_concurrency_cap(self, service) -> None:
        dispatcher = SubmissionDispatcher(service.client(), max_concurrency=3)
        result = asyncio.run(dispatcher.dispatch([PRINT_ONE] * 10))
        assert result.accepted == 10
        assert service.max_in_flight <= 3

    def test_invalid_cap(self, service) -> None:
        with pytest.raises(ValueError):
            SubmissionDispatcher(service.client(), max_concurrency=0)

    def test_diagnostic_echoes_raw_responses(self, service) -> None:
        service.submit_steps = [rejected(), httpx.ConnectError("refused")]
        result = asyncio.run(SubmissionDispatcher(service.client()).dispatch([PRINT_ONE] * 2))
        diagnostic = result.diagnostic()
        assert diagnostic["error"] == "No jobs submitted"
        assert diagnostic["requested"] == 2
        assert diagnostic["submitResponses"] == [
            {"success": False, "message": "unauthorized", "code": 401},
            {"error": "ConnectError: refused", "statusCode": None},
        ]


# ======================================================================
# LoadTestRunner
# ======================================================================


class TestLoadTestRunner:
    def test_fifty_successful_jobs(self, service, sleeper) -> None:
        for i in range(1, 51):
            service.scripts[f"job-{i}"] = [status("pending")] * (i % 4) + [status("success", stdout="1\n")]
        runner = LoadTestRunner(service.client(), PollPolicy(interval_s=0.15), sleep=sleeper)
        run = asyncio.run(runner.run([PRINT_ONE] * 50))

        payload = run.to_dict()
        summary = payload["summary"]
        durations = [job["totalDurationMs"] for job in payload["jobs"]]
        assert run.succeeded
        assert summary["totalSubmitted"] == 50
        assert summary["success"] == 50
        assert summary["failed"] == 0
        assert summary["averageDurationMs"] == pytest.approx(statistics.mean(durations))
        assert len(payload["jobs"]) == 50
        assert {job["jobId"] for job in payload["jobs"]} == {f"job-{i}" for i in range(1, 51)}
        for job in payload["jobs"]:
            assert job["totalDurationMs"] == job["completedAt"] - job["submittedAt"]
            assert job["totalDurationMs"] >= 0

    def test_jobs_only_for_accepted_submissions(self, service, sleeper) -> None:
        service.submit_steps = [None, rejected(), None, rejected(), None]
        service.default_script = [status("failed", error_type="RuntimeError")]
        runner = LoadTestRunner(service.client(), PollPolicy(interval_s=0), sleep=sleeper)
        run = asyncio.run(runner.run([PRINT_ONE] * 5))
        payload = run.to_dict()
        assert len(payload["jobs"]) == 3
        assert payload["summary"]["failed"] == 3
        assert payload["summary"]["requested"] == 5

    def test_short_circuits_when_nothing_accepted(self, service, sleeper) -> None:
        service.submit_steps = [rejected() for _ in range(3)]
        runner = LoadTestRunner(service.client(), PollPolicy(), sleep=sleeper)
        run = asyncio.run(runner.run([PRINT_ONE] * 3))
        payload = run.to_dict()
        assert not run.succeeded
        assert payload["error"] == "No jobs submitted"
        assert len(payload["submitResponses"]) == 3
        assert "jobs" not in payload
        assert sum(service.status_calls.values()) == 0

    def test_results_follow_completion_order(self, service, sleeper) -> None:
        service.scripts["job-1"] = [status("pending")] * 5 + [status("success")]
        service.scripts["job-2"] = [status("success")]
        runner = LoadTestRunner(service.client(), PollPolicy(interval_s=0), sleep=sleeper)
        run = asyncio.run(runner.run([PRINT_ONE] * 2))
        assert [record.job_id for record in run.report.jobs] == ["job-2", "job-1"]

    def test_deadline_recorded_as_timed_out(self, service, sleeper) -> None:
        service.scripts["job-2"] = [status("pending")]
        runner = LoadTestRunner(service.client(), PollPolicy(deadline_s=0.0), sleep=sleeper)
        run = asyncio.run(runner.run([PRINT_ONE] * 3))
        payload = run.to_dict()
        assert payload["timedOut"] == ["job-2"]
        assert len(payload["jobs"]) == 2
        assert payload["summary"]["totalSubmitted"] == 3

    def test_unpollable_job_does_not_abort_run(self, service, sleeper) -> None:
        service.submit_steps = [httpx.Response(200, json={"data": {"jobId": "bad\nid"}}), None]
        runner = LoadTestRunner(service.client(), PollPolicy(interval_s=0), sleep=sleeper)
        run = asyncio.run(runner.run([PRINT_ONE] * 2))
        payload = run.to_dict()
        assert run.succeeded
        assert [job["jobId"] for job in payload["jobs"]] == ["job-1"]
        assert [entry["jobId"] for entry in payload["errored"]] == ["bad\nid"]
        assert "cannot be polled" in payload["errored"][0]["error"]
        assert payload["timedOut"] == []
        assert payload["summary"]["totalSubmitted"] == 2
        assert payload["summary"]["success"] == 1

    def test_capped_run_completes(self, service, sleeper) -> None:
        runner = LoadTestRunner(service.client(), PollPolicy(), sleep=sleeper, max_concurrency=2)
        run = asyncio.run(runner.run([PRINT_ONE] * 6))
        assert run.report.summary.success == 6
        assert service.max_in_flight <= 2
