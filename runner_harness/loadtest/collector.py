from __future__ import annotations

import math
from typing import Sequence

import pandas as pd

from ..models import JobRecord, Report, ReportSummary

COLUMNS = [
    "job_id",
    "language",
    "status",
    "submitted_at",
    "completed_at",
    "total_duration_ms",
]


class ResultAggregator:
    """Turns completed job records into summary statistics and a report."""

    def build_dataframe(self, records: Sequence[JobRecord]) -> pd.DataFrame:
        if not records:
            return pd.DataFrame(columns=COLUMNS)
        rows = [
            {
                "job_id": record.job_id,
                "language": record.language or "unknown",
                "status": record.status,
                "submitted_at": record.submitted_at,
                "completed_at": record.completed_at,
                "total_duration_ms": record.total_duration_ms,
            }
            for record in records
        ]
        return pd.DataFrame(rows, columns=COLUMNS)

    def summarize(
        self,
        records: Sequence[JobRecord],
        requested: int | None = None,
        elapsed_ms: int | None = None,
        submitted: int | None = None,
    ) -> ReportSummary:
        df = self.build_dataframe(records)
        counts = df["status"].value_counts()
        durations = pd.to_numeric(df["total_duration_ms"], errors="coerce")

        if durations.empty:
            stats = {"mean": math.nan, "min": math.nan, "median": math.nan, "p95": math.nan, "max": math.nan}
        else:
            stats = {
                "mean": float(durations.mean()),
                "min": float(durations.min()),
                "median": float(durations.median()),
                "p95": float(durations.quantile(0.95)),
                "max": float(durations.max()),
            }

        return ReportSummary(
            total_submitted=len(df) if submitted is None else submitted,
            success=int(counts.get("success", 0)),
            failed=int(counts.get("failed", 0)),
            canceled=int(counts.get("canceled", 0)),
            average_duration_ms=stats["mean"],
            min_duration_ms=stats["min"],
            median_duration_ms=stats["median"],
            p95_duration_ms=stats["p95"],
            max_duration_ms=stats["max"],
            requested=requested,
            elapsed_ms=elapsed_ms,
        )

    def build_report(
        self,
        records: Sequence[JobRecord],
        requested: int | None = None,
        elapsed_ms: int | None = None,
        timed_out: Sequence[str] = (),
        errored: Sequence[dict[str, str]] = (),
    ) -> Report:
        return Report(
            summary=self.summarize(
                records,
                requested=requested,
                elapsed_ms=elapsed_ms,
                submitted=len(records) + len(timed_out) + len(errored),
            ),
            jobs=list(records),
            timed_out=list(timed_out),
            errored=list(errored),
        )


__all__ = ["COLUMNS", "ResultAggregator"]
