"""Shared HTTP plumbing for the Gemini model endpoints."""
from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..config import settings
from ..errors import EndpointError, ResponseShapeError

logger = logging.getLogger(__name__)


class GeminiEndpoint:
    """POSTs JSON to ``{base_url}/models/{model}:{method}`` with the environment's API key.

    Each call opens a short-lived ``httpx.AsyncClient``; nothing is retained between
    calls and failures are never retried. ``transport`` exists so tests can plug in an
    ``httpx.MockTransport``.
    """

    method = ""

    def __init__(
        self,
        *,
        model: str,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._model = model
        self._api_key = api_key if api_key is not None else settings.gemini_api_key
        self._base_url = (base_url or settings.gemini_base_url).rstrip("/")
        self._timeout = timeout or settings.request_timeout
        self._transport = transport

    @property
    def url(self) -> str:
        return f"{self._base_url}/models/{self._model}:{self.method}"

    async def _post_json(self, payload: dict[str, Any]) -> Any:
        if not self._api_key:
            raise EndpointError("GEMINI_API_KEY missing; set it in the environment or .env")

        headers = {"Content-Type": "application/json", "x-goog-api-key": self._api_key}
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(self.url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("Request to %s failed before a response arrived: %s", self._model, exc)
            raise EndpointError(f"Request to {self._model} failed: {exc}") from exc

        if not resp.is_success:
            logger.error("API error from %s (status %s): %s", self._model, resp.status_code, resp.text)
            raise EndpointError(
                f"API request failed with status {resp.status_code}",
                status_code=resp.status_code,
                detail=resp.text,
            )

        try:
            return resp.json()
        except ValueError as exc:
            logger.error("Non-JSON body from %s: %r", self._model, resp.text[:200])
            raise ResponseShapeError(f"{self._model} returned a non-JSON body") from exc
