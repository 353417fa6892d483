from __future__ import annotations

import argparse
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping, TypeVar

from .poller import NO_DATA_INTERVAL_S_DEFAULT, POLL_INTERVAL_S_DEFAULT, PollPolicy

T = TypeVar("T")

BASE_URL_DEFAULT = "http://localhost:8080"
REQUEST_TIMEOUT_S_DEFAULT = 30.0
JOB_COUNT_DEFAULT = 50
LOAD_REPORT_PATH_DEFAULT = Path("stress.json")
CORRECTNESS_REPORT_PATH_DEFAULT = Path("test/results.json")


@dataclass(frozen=True)
class HarnessConfig:
    """Fully resolved settings for one harness invocation."""

    mode: str
    base_url: str
    api_key: str | None
    token: str | None
    request_timeout_s: float
    poll_interval_s: float
    no_data_interval_s: float | None
    poll_deadline_s: float | None
    output_path: Path
    log_level: str
    log_path: Path | None
    job_count: int = JOB_COUNT_DEFAULT
    profile: str = "identical"
    max_concurrency: int | None = None
    seed: int | None = None
    chart_path: Path | None = None
    cases_path: Path | None = None
    dry_run: bool = False

    def poll_policy(self) -> PollPolicy:
        return PollPolicy(
            interval_s=self.poll_interval_s,
            no_data_interval_s=self.no_data_interval_s,
            deadline_s=self.poll_deadline_s,
        )


def _env_value(
    env: Mapping[str, str],
    name: str,
    default: T,
    convert: Callable[[str], T],
    validate: Callable[[T], bool] = lambda _: True,
) -> T:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = convert(raw)
        if not validate(value):
            raise ValueError("out of range")
    except ValueError:
        print(f"invalid {name} value {raw!r}; defaulting to {default}", file=sys.stderr)
        return default
    return value


def _non_negative(value: float) -> bool:
    return value >= 0


def _positive(value: float) -> bool:
    return value > 0


def resolve_config(args: argparse.Namespace, env: Mapping[str, str] | None = None) -> HarnessConfig:
    """Merge CLI flags with environment overrides; flags win over the environment."""
    env = os.environ if env is None else env
    mode = args.command

    base_url = args.base_url or env.get("RUNNER_BASE_URL") or BASE_URL_DEFAULT
    api_key = args.api_key or env.get("RUNNER_API_KEY") or None
    token = args.token or env.get("RUNNER_TOKEN") or None

    request_timeout = args.request_timeout
    if request_timeout is None:
        request_timeout = _env_value(
            env, "RUNNER_REQUEST_TIMEOUT_SECONDS", REQUEST_TIMEOUT_S_DEFAULT, float, _positive
        )

    poll_interval = args.poll_interval
    if poll_interval is None:
        poll_interval = _env_value(
            env, "RUNNER_POLL_INTERVAL_SECONDS", POLL_INTERVAL_S_DEFAULT, float, _non_negative
        )

    poll_deadline = args.poll_deadline
    if poll_deadline is None:
        poll_deadline = _env_value(env, "RUNNER_POLL_DEADLINE_SECONDS", None, float, _positive)

    default_output = LOAD_REPORT_PATH_DEFAULT if mode == "load" else CORRECTNESS_REPORT_PATH_DEFAULT
    output_value = args.output or env.get("RUNNER_REPORT_PATH")
    output_path = Path(output_value) if output_value else default_output

    log_level = args.log_level or env.get("RUNNER_LOG_LEVEL", "INFO")
    log_path_value = args.log_path or env.get("RUNNER_LOG_PATH")
    log_path = Path(log_path_value) if log_path_value else None

    common = dict(
        mode=mode,
        base_url=base_url,
        api_key=api_key,
        token=token,
        request_timeout_s=request_timeout,
        poll_interval_s=poll_interval,
        poll_deadline_s=poll_deadline,
        output_path=output_path,
        log_level=log_level,
        log_path=log_path,
    )

    if mode == "load":
        job_count = args.jobs
        if job_count is None:
            job_count = _env_value(env, "LOAD_JOB_COUNT", JOB_COUNT_DEFAULT, int, _non_negative)
        max_concurrency = args.max_concurrency
        if max_concurrency is None:
            max_concurrency = _env_value(env, "LOAD_MAX_CONCURRENCY", None, int, _positive)
        no_data_interval = args.no_data_interval
        if no_data_interval is None:
            no_data_interval = NO_DATA_INTERVAL_S_DEFAULT
        return HarnessConfig(
            **common,
            no_data_interval_s=no_data_interval,
            job_count=job_count,
            profile=args.profile or env.get("LOAD_PROFILE", "identical"),
            max_concurrency=max_concurrency,
            seed=args.seed,
            chart_path=Path(args.chart) if args.chart else None,
        )

    return HarnessConfig(
        **common,
        no_data_interval_s=None,
        cases_path=Path(args.cases) if args.cases else None,
        dry_run=args.dry_run,
    )


__all__ = ["HarnessConfig", "resolve_config"]
