"""HTTP client for the Perplexity chat completions API."""

from __future__ import annotations

import logging
import time

import httpx
from pydantic import ValidationError

from .config import API_ENDPOINT, Settings
from .errors import APIError
from .models import ChatCompletionRequest, ChatCompletionResponse

logger = logging.getLogger(__name__)


class CompletionClient:
    """Sends chat completion requests, retrying on connection failures.

    HTTP error statuses are not retried; they are reported as ``APIError``
    with the response body included.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        timeout: float = 30.0,
        max_retries: int = 3,
        endpoint: str = API_ENDPOINT,
        retry_delay: float = 1.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.api_key = api_key
        self.model = model
        self.max_retries = max_retries
        self.endpoint = endpoint
        self.retry_delay = retry_delay
        self.client = httpx.Client(timeout=timeout, transport=transport)

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> CompletionClient:
        return cls(
            api_key=settings.require_api_key(),
            model=settings.model,
            timeout=settings.timeout,
            max_retries=settings.max_retries,
            **kwargs,
        )

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    def create_completion(self, request: ChatCompletionRequest) -> ChatCompletionResponse:
        if not self.api_key:
            raise APIError("API key is required. Set PPLX_API_KEY environment variable.")
        if not request.model:
            request = request.model_copy(update={"model": self.model})

        payload = request.to_payload()
        for attempt in range(self.max_retries + 1):
            try:
                res = self.client.post(self.endpoint, json=payload, headers=self._headers())
                break
            except httpx.TransportError as e:
                if attempt >= self.max_retries:
                    raise APIError(
                        f"Failed to make request after {self.max_retries + 1} attempts: {e}"
                    ) from e
                delay = (attempt + 1) * self.retry_delay
                logger.debug("Request failed (%s), retrying in %.1fs", e, delay)
                time.sleep(delay)

        if res.status_code != 200:
            raise APIError(f"API request failed with status {res.status_code}: {res.text}")

        try:
            return ChatCompletionResponse.model_validate_json(res.content)
        except ValidationError as e:
            raise APIError(f"Failed to parse API response: {e}") from e

    def close(self):
        self.client.close()
