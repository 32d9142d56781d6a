"""HTTP transport for the chat completions API.

Issues single requests and either returns the parsed body or exposes the
raw response text as an async stream. Payload interpretation (choices,
deltas, scores) happens elsewhere; every failure leaves this module as a
typed RatingError subclass, never as an httpx exception.
"""

import json
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from tweetrater.models.config import APIConfig
from tweetrater.models.rating import RatingRequest
from tweetrater.services.exceptions import ParseError, RatingTimeoutError, TransportError
from tweetrater.utils.logging import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class CompletionResponse:
    """Successful (2xx) non-streaming response."""

    status_code: int
    body: Dict[str, Any]


class CompletionTransport:
    """
    HTTP client for the completions endpoint.

    By default each call opens its own httpx.AsyncClient. Passing a client
    shares one connection pool across calls (the caller owns its lifetime).
    """

    def __init__(self, config: APIConfig, client: Optional[httpx.AsyncClient] = None):
        """
        Initialize transport.

        Args:
            config: API configuration (base URL, timeout, attribution headers)
            client: Optional shared httpx client
        """
        self.config = config
        self._client = client

    @property
    def completions_url(self) -> str:
        return str(self.config.base_url).rstrip("/") + "/chat/completions"

    def _headers(self, api_key: str) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
            "HTTP-Referer": self.config.referer,
            "X-Title": self.config.title,
        }

    def _timeout(self, timeout: Optional[float]) -> httpx.Timeout:
        return httpx.Timeout(timeout if timeout is not None else self.config.request_timeout)

    @asynccontextmanager
    async def _client_scope(self, timeout: Optional[float]) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self._timeout(timeout)) as client:
            yield client

    async def complete(
        self,
        request: RatingRequest,
        api_key: str,
        timeout: Optional[float] = None,
    ) -> CompletionResponse:
        """
        Send a non-streaming completion request.

        Args:
            request: Built rating request (its streaming flag is ignored)
            api_key: Bearer token
            timeout: Request timeout in seconds (defaults to config.request_timeout)

        Returns:
            CompletionResponse with the parsed JSON body

        Raises:
            TransportError: Connection failure or non-2xx status
            RatingTimeoutError: Request timed out
            ParseError: Body is not a JSON object
        """
        payload = request.to_payload()
        payload.pop("stream", None)

        logger.debug("completion_request_payload", url=self.completions_url, payload=payload)

        try:
            async with self._client_scope(timeout) as client:
                response = await client.post(
                    self.completions_url,
                    json=payload,
                    headers=self._headers(api_key),
                    timeout=self._timeout(timeout),
                )
        except httpx.TimeoutException as e:
            logger.warning("completion_request_timeout", model=request.model_id, error=str(e))
            raise RatingTimeoutError(f"Request timed out: {e}") from e
        except httpx.HTTPError as e:
            logger.warning("completion_request_error", model=request.model_id, error=str(e))
            raise TransportError(f"Request error: {e}") from e

        if not 200 <= response.status_code < 300:
            logger.warning(
                "completion_http_error",
                model=request.model_id,
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise TransportError(
                f"Request failed with status {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ParseError(f"Failed to parse response: {e}") from e

        if not isinstance(body, dict):
            raise ParseError(f"Expected JSON object, got {type(body).__name__}")

        logger.debug("completion_response_body", status_code=response.status_code, body=body)
        return CompletionResponse(status_code=response.status_code, body=body)

    async def stream(
        self,
        request: RatingRequest,
        api_key: str,
        timeout: Optional[float] = None,
    ) -> AsyncIterator[str]:
        """
        Send a streaming completion request and yield raw text chunks.

        Closing the returned iterator (aclose) closes the HTTP response.

        Yields:
            Decoded response text chunks exactly as received

        Raises:
            TransportError: Connection failure or non-2xx status
            RatingTimeoutError: Request timed out
        """
        payload = request.to_payload()
        payload["stream"] = True

        logger.debug("stream_request_payload", url=self.completions_url, payload=payload)

        try:
            async with self._client_scope(timeout) as client:
                async with client.stream(
                    "POST",
                    self.completions_url,
                    json=payload,
                    headers=self._headers(api_key),
                    timeout=self._timeout(timeout),
                ) as response:
                    if not 200 <= response.status_code < 300:
                        body = (await response.aread()).decode("utf-8", errors="replace")
                        logger.warning(
                            "stream_http_error",
                            model=request.model_id,
                            status_code=response.status_code,
                            body=body[:500],
                        )
                        raise TransportError(
                            f"Request failed with status {response.status_code}: {body}",
                            status_code=response.status_code,
                        )

                    async for chunk in response.aiter_text():
                        yield chunk

        except httpx.TimeoutException as e:
            logger.warning("stream_request_timeout", model=request.model_id, error=str(e))
            raise RatingTimeoutError(f"Request timed out: {e}") from e
        except httpx.HTTPError as e:
            logger.warning("stream_request_error", model=request.model_id, error=str(e))
            raise TransportError(f"Stream error: {e}") from e

    async def list_models(self, api_key: str, sort_order: str) -> list[Dict[str, Any]]:
        """
        Fetch the provider's model list.

        Args:
            api_key: Bearer token
            sort_order: Sort order passed as the `order` query parameter

        Returns:
            List of model dicts from data.models (empty if the key is absent)

        Raises:
            TransportError, RatingTimeoutError, ParseError
        """
        url = str(self.config.models_url)
        headers = {
            "Authorization": f"Bearer {api_key}",
            "HTTP-Referer": self.config.referer,
            "X-Title": self.config.title,
        }

        try:
            async with self._client_scope(None) as client:
                response = await client.get(url, params={"order": sort_order}, headers=headers)
        except httpx.TimeoutException as e:
            raise RatingTimeoutError(f"Model list request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Model list request error: {e}") from e

        if not 200 <= response.status_code < 300:
            raise TransportError(
                f"Model list request failed with status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ParseError(f"Error parsing model list: {e}") from e

        data = body.get("data") if isinstance(body, dict) else None
        models = data.get("models") if isinstance(data, dict) else None
        if not isinstance(models, list):
            logger.warning("model_list_missing_models", keys=list(body) if isinstance(body, dict) else None)
            return []

        logger.info("model_list_fetched", count=len(models), sort_order=sort_order)
        return models
