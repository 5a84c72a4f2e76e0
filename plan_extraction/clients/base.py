"""Shared async HTTP plumbing for the OCR and language-model collaborators."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)


class CollaboratorError(Exception):
    """A collaborator call failed or returned something unusable."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(CollaboratorError):
    def __init__(self, message: str = "Rate limit exceeded", retry_after: int | None = None) -> None:
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


class ProviderNotConfiguredError(CollaboratorError):
    """The OCR service answered, but has no OCR provider behind it."""


class BaseCollaboratorClient:
    """Lazily-created httpx.AsyncClient with bearer auth, error mapping and retry on transient failures."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float = 120.0,
        max_retries: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_wait_min: float = 2.0,
        retry_wait_max: float = 30.0,
    ) -> None:
        self.base_url = base_url
        self.api_key = api_key
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_wait_min = retry_wait_min
        self.retry_wait_max = retry_wait_max
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers=self._headers(),
                transport=self._transport,
            )
        return self._client

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> BaseCollaboratorClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                f"Rate limited by {self.base_url}",
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        if response.status_code >= 400:
            try:
                detail: Any = response.json()
            except ValueError:
                detail = response.text
            if isinstance(detail, dict):
                detail = detail.get("error") or detail.get("reason") or detail
            raise CollaboratorError(f"{self.base_url} returned {response.status_code}: {detail}", response.status_code)

    async def _request_json(self, method: str, *, params: dict[str, Any] | None = None, json: Any = None) -> Any:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=1, min=self.retry_wait_min, max=self.retry_wait_max),
            retry=retry_if_exception_type((httpx.TimeoutException, RateLimitError)),
            before_sleep=lambda retry_state: logger.warning(
                f"Retrying {method} {self.base_url} after {retry_state.outcome.exception()}"
            ),
            reraise=True,
        ):
            with attempt:
                response = await self.client.request(method, self.base_url, params=params, json=json)
                self._raise_for_status(response)
                try:
                    return response.json()
                except ValueError as exc:
                    raise CollaboratorError(f"{self.base_url} returned invalid JSON") from exc
        raise CollaboratorError(f"{self.base_url}: retries exhausted")
