from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from .models import JobRequest

LOGGER = logging.getLogger("runner_harness.client")

SUBMIT_PATH = "/api/v1/runner/submit"
STATUS_PATH = "/api/v1/runner/{job_id}/status"

DATA = "data"
NO_DATA = "no-data"
ERROR = "error"


@dataclass(frozen=True)
class ServiceResponse:
    """Outcome of one round-trip with the runner service.

    ``kind`` is ``data`` when the body carried a ``data`` object, ``no-data``
    when a JSON body arrived without one and ``error`` when the exchange failed
    in transport or the body was not JSON. An error that repeating the same
    request cannot fix is marked ``retryable=False``.
    """

    kind: str
    data: dict[str, Any] | None = None
    raw: Any = None
    status_code: int | None = None
    error: str | None = None
    retryable: bool = True

    @classmethod
    def from_body(cls, body: Any, status_code: int | None = None) -> "ServiceResponse":
        data = body.get("data") if isinstance(body, dict) else None
        if isinstance(data, dict):
            return cls(kind=DATA, data=data, raw=body, status_code=status_code)
        return cls(kind=NO_DATA, raw=body, status_code=status_code)

    @classmethod
    def failure(
        cls,
        error: str,
        status_code: int | None = None,
        retryable: bool = True,
    ) -> "ServiceResponse":
        return cls(kind=ERROR, status_code=status_code, error=error, retryable=retryable)

    @property
    def has_data(self) -> bool:
        return self.kind == DATA

    @property
    def job_id(self) -> str | None:
        if self.data is None:
            return None
        job_id = self.data.get("jobId")
        if not job_id:
            return None
        return str(job_id)

    @property
    def message(self) -> str | None:
        if isinstance(self.raw, dict) and self.raw.get("message"):
            return str(self.raw["message"])
        return self.error


class RunnerClient:
    """Async HTTP client for the runner submit/status endpoints.

    Transport failures are returned as ``ServiceResponse`` values of kind
    ``error`` and never raised, so a flaky service cannot crash the harness.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        api_key: str | None = None,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["X-API-Key"] = api_key
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def submit(self, request: JobRequest) -> ServiceResponse:
        return await self._exchange("POST", SUBMIT_PATH, json=request.to_payload())

    async def status(self, job_id: str) -> ServiceResponse:
        return await self._exchange("GET", STATUS_PATH.format(job_id=job_id))

    async def _exchange(self, method: str, path: str, **kwargs: Any) -> ServiceResponse:
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            LOGGER.debug("%s %s failed: %r", method, path, exc)
            return ServiceResponse.failure(f"{type(exc).__name__}: {exc}")
        except httpx.InvalidURL as exc:
            # the same path can never be requested successfully
            LOGGER.debug("%s %r is not a valid URL: %s", method, path, exc)
            return ServiceResponse.failure(f"InvalidURL: {exc}", retryable=False)

        try:
            body = resp.json()
        except ValueError:
            LOGGER.debug(
                "%s %s returned a non-JSON body (HTTP %d)", method, path, resp.status_code
            )
            return ServiceResponse.failure(
                f"non-JSON response (HTTP {resp.status_code})",
                status_code=resp.status_code,
            )

        response = ServiceResponse.from_body(body, status_code=resp.status_code)
        if not response.has_data:
            LOGGER.debug("%s %s returned no data (HTTP %d)", method, path, resp.status_code)
        return response

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "RunnerClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


__all__ = ["DATA", "ERROR", "NO_DATA", "RunnerClient", "ServiceResponse"]
