from __future__ import annotations

import asyncio
import contextlib
import logging
import random
from dataclasses import dataclass
from typing import Any, Callable, Sequence

from ..cases import load_script_source
from ..client import RunnerClient, ServiceResponse
from ..models import JobHandle, JobRequest, now_ms
from .config import LoadProfile

LOGGER = logging.getLogger("runner_harness.load")


def build_requests(
    profile: LoadProfile,
    count: int,
    rng: random.Random | None = None,
) -> list[JobRequest]:
    """Draw ``count`` requests from the profile's weighted language mix."""
    if count < 0:
        raise ValueError("job count must be >= 0")
    rng = rng or random.Random()
    weights = profile.normalised_language_weights()
    sources: dict[str, str] = {}
    requests: list[JobRequest] = []
    for _ in range(count):
        language = _weighted_choice(weights, rng)
        if language not in sources:
            sources[language] = load_script_source(language, profile.program_for(language))
        requests.append(JobRequest(language=language, code=sources[language], input=""))
    return requests


@dataclass
class DispatchResult:
    requested: int
    responses: list[ServiceResponse]
    handles: list[JobHandle]

    @property
    def accepted(self) -> int:
        return len(self.handles)

    def diagnostic(self) -> dict[str, Any]:
        return {
            "error": "No jobs submitted",
            "requested": self.requested,
            "submitResponses": [_echo(response) for response in self.responses],
        }


def _echo(response: ServiceResponse) -> Any:
    if response.raw is not None:
        return response.raw
    return {"error": response.error, "statusCode": response.status_code}


class SubmissionDispatcher:
    """Submits every request concurrently and keeps the ones the service accepted.

    ``max_concurrency`` of ``None`` issues all submissions at once.
    """

    def __init__(
        self,
        client: RunnerClient,
        clock: Callable[[], int] = now_ms,
        max_concurrency: int | None = None,
    ) -> None:
        if max_concurrency is not None and max_concurrency <= 0:
            raise ValueError("max_concurrency must be > 0")
        self._client = client
        self._clock = clock
        self._max_concurrency = max_concurrency

    async def dispatch(self, requests: Sequence[JobRequest]) -> DispatchResult:
        limiter = (
            asyncio.Semaphore(self._max_concurrency)
            if self._max_concurrency is not None
            else None
        )
        tasks = [
            asyncio.create_task(self._submit_one(request, limiter)) for request in requests
        ]
        outcomes: list[tuple[int, ServiceResponse]] = list(await asyncio.gather(*tasks))

        responses = [response for _, response in outcomes]
        handles = [
            JobHandle(job_id=response.job_id, submitted_at=submitted_at, language=request.language)
            for request, (submitted_at, response) in zip(requests, outcomes)
            if response.job_id
        ]
        LOGGER.info("Submitted %d/%d jobs", len(handles), len(requests))
        return DispatchResult(requested=len(requests), responses=responses, handles=handles)

    async def _submit_one(
        self,
        request: JobRequest,
        limiter: asyncio.Semaphore | None,
    ) -> tuple[int, ServiceResponse]:
        async with limiter if limiter is not None else contextlib.nullcontext():
            submitted_at = self._clock()
            response = await self._client.submit(request)
        if response.job_id is None:
            LOGGER.debug("submission rejected: %s", response.message or response.kind)
        return submitted_at, response


def _weighted_choice(weights: dict[str, float], rng: random.Random) -> str:
    total = sum(weights.values())
    if total <= 0:
        raise ValueError("Weights must sum to > 0")
    r = rng.random() * total
    upto = 0.0
    for key, weight in weights.items():
        if weight <= 0:
            continue
        upto += weight
        if upto >= r:
            return key
    # Float errors fallback
    return max(weights, key=weights.__getitem__)


__all__ = ["DispatchResult", "SubmissionDispatcher", "build_requests"]
