"""HTTP transport for streaming chat completions.

The transport opens one streaming POST against
``{endpoint}/chat/completions`` and hands back the raw response body
line by line, leaving event-stream decoding to
:class:`agentflow.streaming.ChunkDecoder`.
"""

import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx
import openai
from openai import AsyncOpenAI

from agentflow.errors import AgentConnectionError, UpstreamError

logger = logging.getLogger(__name__)

_SDK_PARAMS = ("model", "messages", "tools")


def validate_endpoint(endpoint: str) -> str:
    """Return *endpoint* normalised, without a trailing slash.

    Raises:
        AgentConnectionError: If the URL is malformed or not http(s).
    """
    try:
        url = httpx.URL(endpoint)
    except (httpx.InvalidURL, TypeError) as e:
        raise AgentConnectionError(f"Invalid URL in endpoint: {endpoint!r}") from e
    if url.scheme not in ("http", "https") or not url.host:
        raise AgentConnectionError(f"Invalid URL in endpoint: {endpoint!r}")
    return str(url).rstrip("/")


def _response_body(error: openai.APIStatusError) -> str:
    try:
        return error.response.text
    except httpx.ResponseNotRead:
        return str(error.body)


class Transport:
    """Base class for line-oriented streaming transports."""

    base_url: str = ""

    def stream_lines(self, payload: dict[str, Any]) -> AsyncIterator[str]:
        """Send *payload* and yield response body lines as they arrive.

        Implementations must release the connection on every exit
        path, including ``aclose()`` of the returned iterator.
        """
        raise NotImplementedError


class OpenAITransport(Transport):
    """Streams chat completions through the ``openai`` SDK.

    Uses ``with_streaming_response`` so the body is not parsed by the
    SDK; the caller receives the event-stream lines verbatim.

    Args:
        endpoint: Base URL of the API (e.g. ``https://api.openai.com/v1``).
        api_key: Bearer credential.
        headers: Extra headers sent with every request.
        timeout: Request timeout in seconds.
        max_retries: Retries performed by the SDK on connection failures
            and on 408, 409, 429 and 5xx responses.  A status error is
            raised only after the last attempt; pass 0 to fail fast.
        http_client: Optional pre-built ``httpx.AsyncClient``.
    """

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        headers: dict[str, str] | None = None,
        timeout: float = 600.0,
        max_retries: int = 5,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.base_url = validate_endpoint(endpoint)
        self.client = AsyncOpenAI(
            base_url=self.base_url,
            api_key=api_key,
            default_headers=headers,
            timeout=timeout,
            max_retries=max_retries,
            http_client=http_client,
        )

    @property
    def url(self) -> str:
        return f"{self.base_url}/chat/completions"

    async def stream_lines(self, payload: dict[str, Any]) -> AsyncIterator[str]:
        extra = dict(payload)
        extra.pop("stream", None)
        params = {k: extra.pop(k) for k in _SDK_PARAMS if k in extra}
        if not params.get("tools"):
            params.pop("tools", None)

        logger.debug(f"POST {self.url} model={params.get('model')}")
        try:
            async with self.client.chat.completions.with_streaming_response.create(
                **params,
                stream=True,
                extra_body=extra or None,
            ) as response:
                async for line in response.iter_lines():
                    yield line
        except openai.APIStatusError as e:
            body = _response_body(e)
            logger.warning(f"Upstream returned {e.status_code}: {body}")
            raise UpstreamError(e.status_code, body, url=self.url) from e
        except openai.APIConnectionError as e:
            raise AgentConnectionError(f"Request to {self.url} failed: {e}") from e
        except httpx.TransportError as e:
            raise AgentConnectionError(f"Connection to {self.url} lost: {e}") from e
