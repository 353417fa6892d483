from __future__ import annotations

import argparse
import asyncio
import logging
import random
import sys
from pathlib import Path

from .cases import build_test_cases, load_test_cases
from .client import RunnerClient
from .config import HarnessConfig, resolve_config
from .correctness import CorrectnessRunner
from .loadtest.charts import render_latency_chart
from .loadtest.config import get_profile
from .loadtest.load import build_requests
from .loadtest.runner import LoadRun, LoadTestRunner
from .models import ConfigurationError, PASS, TestCase, TestResult
from .poller import JobPoller
from .report import write_report

LOGGER = logging.getLogger("runner_harness")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Runner service load and correctness harness")
    parser.add_argument("--base-url", help="Base URL of the runner API")
    parser.add_argument("--api-key", help="Credential sent as X-API-Key")
    parser.add_argument("--token", help="JWT sent as a Bearer token")
    parser.add_argument(
        "--request-timeout",
        type=float,
        help="Per-request HTTP timeout in seconds",
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        help="Seconds to wait between status polls of a pending job",
    )
    parser.add_argument(
        "--poll-deadline",
        type=float,
        help="Give up on a job after this many seconds of polling (default: never)",
    )
    parser.add_argument("--output", help="Path of the JSON report")
    parser.add_argument("--log-level", help="Logging level")
    parser.add_argument("--log-path", help="Also write logs to this file")

    subparsers = parser.add_subparsers(dest="command", required=True)

    load = subparsers.add_parser("load", help="Fan out many jobs and measure latency")
    load.add_argument("--jobs", type=int, help="Number of jobs to submit")
    load.add_argument("--profile", help="Load profile: identical or mixed")
    load.add_argument(
        "--max-concurrency",
        type=int,
        help="Cap on in-flight submissions and pollers (default: unbounded)",
    )
    load.add_argument(
        "--no-data-interval",
        type=float,
        help="Seconds to wait after a status poll that returned no data",
    )
    load.add_argument("--seed", type=int, help="Seed for the randomized language mix")
    load.add_argument("--chart", help="Render a latency chart to this PNG path")

    correctness = subparsers.add_parser("correctness", help="Run the expectation suite")
    correctness.add_argument("--cases", help="JSON file with test cases (default: built-in suite)")
    correctness.add_argument(
        "--dry-run",
        action="store_true",
        help="Only print the test cases without executing them",
    )
    return parser.parse_args(argv)


def setup_logging(level: str, log_path: Path | None = None) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, mode="w", encoding="utf-8"))
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )


def _client(config: HarnessConfig) -> RunnerClient:
    return RunnerClient(
        config.base_url,
        timeout=config.request_timeout_s,
        api_key=config.api_key,
        token=config.token,
    )


async def run_load(config: HarnessConfig) -> LoadRun:
    profile = get_profile(config.profile)
    rng = random.Random(config.seed)
    requests = build_requests(profile, config.job_count, rng)
    async with _client(config) as client:
        runner = LoadTestRunner(
            client,
            policy=config.poll_policy(),
            max_concurrency=config.max_concurrency,
        )
        run = await runner.run(requests)

    write_report(config.output_path, run.to_dict())
    if run.report is not None and config.chart_path is not None:
        render_latency_chart(runner.aggregator.build_dataframe(run.report.jobs), config.chart_path)
    return run


async def run_correctness(config: HarnessConfig, cases: list[TestCase]) -> list[TestResult]:
    async with _client(config) as client:
        poller = JobPoller(client, policy=config.poll_policy())
        results = await CorrectnessRunner(client, poller).run(cases)

    write_report(config.output_path, [result.to_dict() for result in results])
    return results


def _print_load_summary(run: LoadRun, output_path: Path) -> None:
    if run.report is None:
        print(f"No jobs submitted out of {run.dispatch.requested}; debug info saved to {output_path}")
        return
    summary = run.report.summary
    average = summary.average_duration_ms
    print("\nTiming Summary")
    print(f"  Elapsed: {run.elapsed_ms} ms")
    print(f"  Average Duration: {average:.2f} ms")
    print(f"  P95 Duration: {summary.p95_duration_ms:.2f} ms")
    print(f"\nSuccess : {summary.success}")
    print(f"Failed  : {summary.failed}")
    print(f"Canceled: {summary.canceled}")
    print(f"Total   : {len(run.report.jobs)}/{summary.requested}")
    if run.report.timed_out:
        print(f"Timed out: {len(run.report.timed_out)}")
    if run.report.errored:
        print(f"Errored  : {len(run.report.errored)}")
    print(f"\nResults saved to {output_path}")


def _print_correctness_summary(results: list[TestResult], output_path: Path) -> None:
    print("\nTest Summary")
    for result in results:
        print(f"  [{result.status}] {result.name}")
    passed = sum(1 for result in results if result.passed)
    print(f"\n{passed}/{len(results)} passed")
    print(f"Full results saved at: {output_path}")


def _print_cases(cases: list[TestCase]) -> None:
    for case in cases:
        kind = next(
            (
                label
                for label, value in (
                    ("expected", case.expected),
                    ("contains", case.expected_contains),
                    ("error", case.expected_error),
                )
                if value is not None
            ),
            "<none>",
        )
        print(f"  - {case.name}: language={case.body.language} {kind}={case.expectation!r}")


def _invalid_setting(config: HarnessConfig) -> str | None:
    if config.request_timeout_s <= 0:
        return "--request-timeout must be > 0"
    if config.poll_interval_s < 0:
        return "--poll-interval must be >= 0"
    if config.poll_deadline_s is not None and config.poll_deadline_s < 0:
        return "--poll-deadline must be >= 0"
    if config.mode != "load":
        return None
    if config.job_count < 0:
        return "--jobs must be >= 0"
    if config.no_data_interval_s is not None and config.no_data_interval_s < 0:
        return "--no-data-interval must be >= 0"
    if config.max_concurrency is not None and config.max_concurrency <= 0:
        return "--max-concurrency must be > 0"
    return None


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    config = resolve_config(args)
    setup_logging(config.log_level, config.log_path)
    LOGGER.info("Runner API: %s", config.base_url)

    problem = _invalid_setting(config)
    if problem is not None:
        print(problem, file=sys.stderr)
        return 2

    if config.mode == "load":
        try:
            get_profile(config.profile)
        except ValueError as exc:
            print(str(exc), file=sys.stderr)
            return 2
        run = asyncio.run(run_load(config))
        _print_load_summary(run, config.output_path)
        return 0 if run.succeeded else 1

    try:
        cases = load_test_cases(config.cases_path) if config.cases_path else build_test_cases()
    except ConfigurationError as exc:
        print(f"invalid test suite: {exc}", file=sys.stderr)
        return 2

    if config.dry_run:
        _print_cases(cases)
        return 0

    results = asyncio.run(run_correctness(config, cases))
    _print_correctness_summary(results, config.output_path)
    return 0 if all(result.status == PASS for result in results) else 1


if __name__ == "__main__":
    sys.exit(main())
