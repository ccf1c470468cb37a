"""Kie.ai generation provider client.

Handles bearer authentication, endpoint routing per model, error
classification and exponential-backoff retry for transient failures.

Supports: IMAGEN4, SORA2 (jobs API), VEO3 (veo API), MIDJOURNEY (mj API).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from app.services.errors import (
    AuthError,
    ClientError,
    ProviderError,
    RateLimited,
    ServerError,
    TransportError,
    ValidationError,
)
from app.services.providers.kie_models import KIE_MODELS, KieModelRegistry

logger = logging.getLogger(__name__)

_DEFAULT_BASE_URL = "https://api.kie.ai"

_STATUS_LABELS = {
    401: "Unauthorized",
    402: "Payment Required",
    422: "Validation Error",
    429: "Rate Limited",
    500: "Server Error",
}


def classify_error(status: int, message: str, code: int | None = None,
                   details: dict[str, Any] | None = None) -> ProviderError:
    """Map an HTTP (or Kie body) status code onto the provider error taxonomy."""
    label = _STATUS_LABELS.get(status, "HTTP Error")
    text = f"{label} ({status}): {message}"
    if status == 401:
        cls: type[ProviderError] = AuthError
    elif status == 422:
        cls = ValidationError
    elif status == 429:
        cls = RateLimited
    elif status >= 500:
        cls = ServerError
    else:
        cls = ClientError
    return cls(text, status_code=status, code=code, details=details)


class KieClient:
    """HTTP client for the Kie.ai API.

    Every request carries a timeout; 429, 5xx and transport failures are
    retried with exponential backoff (base, 2×base, 4×base ... capped at
    ``retry_max_delay``) up to ``max_retries`` times. Anything else raises
    immediately.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = _DEFAULT_BASE_URL,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
        retry_max_delay: float = 10.0,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
        registry: KieModelRegistry = KIE_MODELS,
    ) -> None:
        if not api_key:
            raise ValueError("KIE_API_KEY is required to construct the Kie.ai client")

        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.retry_max_delay = retry_max_delay
        self.timeout = timeout
        self.registry = registry

        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._own_client = http_client is None
        self._sleep = sleep or asyncio.sleep

    @classmethod
    def from_settings(cls, settings, **kwargs: Any) -> "KieClient":
        return cls(
            settings.KIE_API_KEY,
            base_url=settings.KIE_BASE_URL,
            max_retries=settings.KIE_MAX_RETRIES,
            retry_base_delay=settings.KIE_RETRY_BASE_DELAY,
            retry_max_delay=settings.KIE_RETRY_MAX_DELAY,
            timeout=settings.KIE_TIMEOUT,
            **kwargs,
        )

    async def aclose(self) -> None:
        if self._own_client:
            await self._client.aclose()

    # ──────── Public API ────────

    async def submit(self, params) -> str:
        """Create a generation task and return the provider's task id.

        ``params`` is one of the provider param models from
        app.schemas.generation.
        """
        spec = self.registry.get(params.model)
        body = params.to_request_body()
        payload = await self._request("POST", spec.create_endpoint, json_body=body)

        task_id = (payload.get("data") or {}).get("taskId")
        if not task_id:
            raise ProviderError(f"Kie task creation returned no taskId: {payload}")

        logger.info("Kie task created: %s (model=%s)", task_id, spec.model)
        return str(task_id)

    async def query(self, model: str, external_task_id: str) -> dict[str, Any]:
        """Fetch the raw record-info ``data`` object for a task."""
        spec = self.registry.get(model)
        payload = await self._request(
            "GET", spec.query_endpoint, params={"taskId": external_task_id}
        )
        data = payload.get("data")
        if not isinstance(data, dict):
            raise ServerError(f"Kie record-info returned no data object: {payload}")
        return data

    # ──────── Internals ────────

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _backoff_delay(self, retry: int) -> float:
        """Delay before retry number ``retry`` (1-based)."""
        return min(self.retry_base_delay * (2 ** (retry - 1)), self.retry_max_delay)

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{self.base_url}{endpoint}"
        last_error: ProviderError | None = None

        for attempt in range(self.max_retries + 1):
            if attempt > 0:
                delay = self._backoff_delay(attempt)
                logger.warning(
                    "Kie %s %s retry %d/%d in %.1fs after: %s",
                    method, endpoint, attempt, self.max_retries, delay, last_error,
                )
                await self._sleep(delay)

            try:
                return await self._send_once(method, url, params=params, json_body=json_body)
            except ProviderError as e:
                last_error = e
                if not e.retryable:
                    raise

        assert last_error is not None
        raise last_error

    async def _send_once(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None,
        json_body: dict[str, Any] | None,
    ) -> dict[str, Any]:
        try:
            resp = await self._client.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise TransportError(f"Request to {url} timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Request to {url} failed: {e}") from e
        except httpx.InvalidURL as e:
            raise ProviderError(f"Invalid request URL {url}: {e}") from e

        try:
            payload = resp.json()
        except ValueError:
            payload = None

        if resp.is_error:
            if isinstance(payload, dict):
                raise classify_error(
                    resp.status_code,
                    payload.get("msg", "Unknown error"),
                    code=payload.get("code"),
                    details=payload.get("details"),
                )
            raise classify_error(resp.status_code, resp.text[:200] or "Unknown error")

        if not isinstance(payload, dict):
            raise ServerError(
                f"Kie returned a non-JSON body (HTTP {resp.status_code})",
                status_code=resp.status_code,
            )

        # Kie reports API-level failures with HTTP 200 and a body code
        code = payload.get("code")
        if isinstance(code, int) and code != 200:
            raise classify_error(
                code, payload.get("msg", "Unknown error"), code=code, details=payload.get("details")
            )

        return payload
