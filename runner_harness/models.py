from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from typing import Any

TERMINAL_STATUSES: tuple[str, ...] = ("success", "failed", "canceled")

PASS = "PASS"
FAIL = "FAIL"
ERROR = "ERROR"

EXPECTATION_FIELDS: tuple[str, ...] = ("expected", "expected_contains", "expected_error")


class ConfigurationError(ValueError):
    """Raised when a test case or suite definition is unusable."""


def now_ms() -> int:
    return int(time.time() * 1000)


def _nan_to_none(value: float | None) -> float | None:
    if value is None or math.isnan(value):
        return None
    return value


@dataclass(frozen=True)
class JobRequest:
    language: str
    code: str
    input: str = ""

    def to_payload(self) -> dict[str, str]:
        return {
            "language": self.language,
            "code": self.code,
            "input": self.input,
        }


@dataclass(frozen=True)
class JobHandle:
    job_id: str
    submitted_at: int
    language: str | None = None


@dataclass(frozen=True)
class JobRecord:
    job_id: str
    status: str
    stdout: str
    stderr: str
    sandbox_error_type: str | None
    sandbox_error_message: str | None
    submitted_at: int
    completed_at: int
    language: str | None = None

    @property
    def total_duration_ms(self) -> int:
        return self.completed_at - self.submitted_at

    @classmethod
    def from_status(cls, handle: JobHandle, data: dict[str, Any], completed_at: int) -> "JobRecord":
        return cls(
            job_id=handle.job_id,
            status=data["status"],
            stdout=data.get("stdout") or "",
            stderr=data.get("stderr") or "",
            sandbox_error_type=data.get("sandboxErrorType"),
            sandbox_error_message=data.get("sandboxErrorMessage"),
            submitted_at=handle.submitted_at,
            # wall clocks can step backwards; durations never go negative
            completed_at=max(completed_at, handle.submitted_at),
            language=handle.language,
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "jobId": self.job_id,
            "status": self.status,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "sandboxErrorType": self.sandbox_error_type,
            "sandboxErrorMessage": self.sandbox_error_message,
            "submittedAt": self.submitted_at,
            "completedAt": self.completed_at,
            "totalDurationMs": self.total_duration_ms,
        }
        if self.language is not None:
            payload["language"] = self.language
        return payload


@dataclass(frozen=True)
class TestCase:
    """A single correctness check: one program and one expectation about its outcome."""

    __test__ = False

    name: str
    body: JobRequest
    expected: str | None = None
    expected_contains: str | None = None
    expected_error: str | None = None

    def __post_init__(self) -> None:
        provided = [name for name in EXPECTATION_FIELDS if getattr(self, name) is not None]
        if len(provided) > 1:
            raise ConfigurationError(
                f"test case {self.name!r} sets more than one expectation: {', '.join(provided)}"
            )

    @property
    def expectation(self) -> str | None:
        for name in EXPECTATION_FIELDS:
            value = getattr(self, name)
            if value is not None:
                return value
        return None


@dataclass(frozen=True)
class TestResult:
    __test__ = False

    name: str
    status: str
    job_id: str | None = None
    expected: str | None = None
    actual: dict[str, Any] | None = None
    duration_ms: int | None = None
    error: str | None = None

    @property
    def passed(self) -> bool:
        return self.status == PASS

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "name": self.name,
            "jobId": self.job_id,
            "expected": self.expected,
            "actual": self.actual,
            "status": self.status,
            "durationMs": self.duration_ms,
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass(frozen=True)
class ReportSummary:
    total_submitted: int
    success: int
    failed: int
    canceled: int
    average_duration_ms: float
    min_duration_ms: float = math.nan
    median_duration_ms: float = math.nan
    p95_duration_ms: float = math.nan
    max_duration_ms: float = math.nan
    requested: int | None = None
    elapsed_ms: int | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "totalSubmitted": self.total_submitted,
            "success": self.success,
            "failed": self.failed,
            "canceled": self.canceled,
            "averageDurationMs": _nan_to_none(self.average_duration_ms),
            "minDurationMs": _nan_to_none(self.min_duration_ms),
            "medianDurationMs": _nan_to_none(self.median_duration_ms),
            "p95DurationMs": _nan_to_none(self.p95_duration_ms),
            "maxDurationMs": _nan_to_none(self.max_duration_ms),
        }
        if self.requested is not None:
            payload["requested"] = self.requested
        if self.elapsed_ms is not None:
            payload["elapsedMs"] = self.elapsed_ms
        return payload


@dataclass(frozen=True)
class Report:
    summary: ReportSummary
    jobs: list[JobRecord] = field(default_factory=list)
    timed_out: list[str] = field(default_factory=list)
    errored: list[dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary.to_dict(),
            "jobs": [record.to_dict() for record in self.jobs],
            "timedOut": list(self.timed_out),
            "errored": [dict(entry) for entry in self.errored],
        }


__all__ = [
    "ConfigurationError",
    "ERROR",
    "FAIL",
    "JobHandle",
    "JobRecord",
    "JobRequest",
    "PASS",
    "Report",
    "ReportSummary",
    "TERMINAL_STATUSES",
    "TestCase",
    "TestResult",
    "now_ms",
]
