"""HTTP client for the OpenAI-compatible analysis API.

Wraps the two endpoints the pipeline consumes: JSON-mode chat completions
(classification, positivity) and the moderation endpoint (safety). Transient
failures are retried with exponential backoff; anything else surfaces as
:class:`AnalysisServiceError` for the stage adapters to turn into their
fallback policy.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
from typing import Any

import httpx

from ..errors import AnalysisServiceError, BudgetExceededError
from .budget import CostMonitor

logger = logging.getLogger(__name__)


def is_transient(exc: Exception) -> bool:
    """Rate limits, server errors and transport failures are worth retrying."""
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, AnalysisServiceError) and exc.status_code is not None:
        return exc.status_code == 429 or exc.status_code >= 500
    return False


class AnalysisClient:
    """
    Async client for chat completions and moderations.

    The client is "configured" only when an API key is present. Adapters
    must check :attr:`configured` before calling; an unconfigured client
    raises :class:`AnalysisServiceError` on every call.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        *,
        cost_monitor: CostMonitor | None = None,
        timeout: float = 30.0,
        max_retries: int = 2,
        retry_base_delay: float = 1.0,
        retry_max_delay: float = 10.0,
    ):
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._cost_monitor = cost_monitor
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self._retry_max_delay = retry_max_delay
        self._http = httpx.AsyncClient(timeout=timeout)

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    @property
    def cost_monitor(self) -> CostMonitor | None:
        return self._cost_monitor

    async def close(self) -> None:
        """Close HTTP client."""
        await self._http.aclose()

    async def chat_json(
        self,
        model: str,
        system_prompt: str,
        user_prompt: str,
        *,
        max_tokens: int = 200,
        temperature: float = 0.3,
        operation: str = "chat",
    ) -> dict[str, Any]:
        """
        Run a JSON-mode chat completion and return the parsed object.

        POST /chat/completions

        Raises:
            AnalysisServiceError: HTTP failure, empty content or invalid JSON
            BudgetExceededError: The spend window is exhausted
        """
        if self._cost_monitor is not None and self._cost_monitor.should_block():
            raise BudgetExceededError(f"Analysis budget exhausted, refusing {operation}")

        data = await self._post(
            "/chat/completions",
            {
                "model": model,
                "messages": [
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                "response_format": {"type": "json_object"},
                "temperature": temperature,
                "max_tokens": max_tokens,
            },
        )

        usage = data.get("usage")
        if not isinstance(usage, dict):
            usage = {}
        if self._cost_monitor is not None:
            self._cost_monitor.record(
                model,
                _token_count(usage.get("prompt_tokens")),
                _token_count(usage.get("completion_tokens")),
                operation,
            )

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise AnalysisServiceError("Completion response has no content") from e
        if not isinstance(content, str) or not content:
            raise AnalysisServiceError("Completion response has no content")

        try:
            parsed = json.loads(content)
        except json.JSONDecodeError as e:
            raise AnalysisServiceError(f"Completion content is not JSON: {e}") from e
        if not isinstance(parsed, dict):
            raise AnalysisServiceError("Completion content is not a JSON object")
        return parsed

    async def moderate(self, text: str) -> dict[str, Any] | None:
        """
        Run the moderation endpoint and return the first result, if any.

        POST /moderations
        """
        data = await self._post("/moderations", {"input": text})
        results = data.get("results")
        if not isinstance(results, list):
            raise AnalysisServiceError("Moderation response has no results list")
        if not results:
            return None
        if not isinstance(results[0], dict):
            raise AnalysisServiceError("Moderation result is not an object")
        return results[0]

    async def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        if not self.configured:
            raise AnalysisServiceError("Analysis API key not configured")

        attempt = 0
        while True:
            try:
                return await self._post_once(path, body)
            except (httpx.TransportError, AnalysisServiceError) as e:
                if attempt >= self._max_retries or not is_transient(e):
                    if isinstance(e, AnalysisServiceError):
                        raise
                    raise AnalysisServiceError(f"Request failed: {e}") from e
                delay = min(
                    self._retry_base_delay * (2**attempt), self._retry_max_delay
                )
                attempt += 1
                logger.warning(
                    f"Analysis request attempt {attempt} failed, retrying in {delay}s: {e}",
                    extra={"path": path},
                )
                await asyncio.sleep(delay)

    async def _post_once(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        response = await self._http.post(
            f"{self._base_url}{path}",
            headers={"Authorization": f"Bearer {self._api_key}"},
            json=body,
        )
        if response.status_code != 200:
            raise AnalysisServiceError(
                f"Analysis API error: {response.status_code} - {response.text[:200]}",
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as e:
            raise AnalysisServiceError(f"Analysis API returned invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise AnalysisServiceError("Analysis API returned a non-object body")
        return data


def _token_count(value: Any) -> int:
    # Usage is billing metadata only; anything unreadable counts as zero
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if not math.isfinite(value):
        return 0
    return max(int(value), 0)
