import os
from typing import ClassVar

import httpx
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from agentflow.errors import MissingCredentialsError
from agentflow.models import Model, ModelFamily
from agentflow.transport import OpenAITransport, Transport


class Source(BaseModel):
    """An endpoint plus credential, and the models it serves.

    The credential falls back to the environment variable named by
    the concrete source when ``api_key`` is not given.

    Args:
        api_key: Bearer credential.
        base_url: Endpoint base URL; defaults per source.
        models: Models this source serves.
        timeout: Request timeout in seconds.
        max_retries: Client retries on connection failures and on 408,
            409, 429 and 5xx responses.
        http_client: Optional ``httpx.AsyncClient`` to send requests with.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    family: ClassVar[ModelFamily]
    env_var: ClassVar[str]
    default_base_url: ClassVar[str]

    api_key: str | None = None
    base_url: str | None = None
    models: list[Model] = Field(default_factory=list)
    timeout: float = 600.0
    max_retries: int = 5
    http_client: httpx.AsyncClient | None = Field(default=None, exclude=True)

    _transport: Transport | None = PrivateAttr(default=None)

    @property
    def endpoint(self) -> str:
        return (self.base_url or self.default_base_url).rstrip("/")

    def credential(self) -> str:
        api_key = self.api_key or os.getenv(self.env_var)
        if not api_key:
            raise MissingCredentialsError(
                f"Missing API key: pass api_key or set {self.env_var}"
            )
        return api_key

    def headers(self) -> dict[str, str]:
        return {}

    def transport(self) -> Transport:
        """Return this source's transport, building it on first use."""
        if self._transport is None:
            self._transport = OpenAITransport(
                endpoint=self.endpoint,
                api_key=self.credential(),
                headers=self.headers() or None,
                timeout=self.timeout,
                max_retries=self.max_retries,
                http_client=self.http_client,
            )
        return self._transport


class OpenAISource(Source):
    family: ClassVar[ModelFamily] = ModelFamily.OPENAI
    env_var: ClassVar[str] = "OPENAI_API_KEY"
    default_base_url: ClassVar[str] = "https://api.openai.com/v1"


class OpenRouterSource(Source):
    """OpenRouter endpoint.

    Args:
        app_name: Sent as ``X-Title`` for OpenRouter's app rankings.
        site_url: Sent as ``HTTP-Referer``.
    """

    family: ClassVar[ModelFamily] = ModelFamily.OPENROUTER
    env_var: ClassVar[str] = "OPENROUTER_API_KEY"
    default_base_url: ClassVar[str] = "https://openrouter.ai/api/v1"

    app_name: str | None = None
    site_url: str | None = None

    def headers(self) -> dict[str, str]:
        headers = {}
        if self.site_url:
            headers["HTTP-Referer"] = self.site_url
        if self.app_name:
            headers["X-Title"] = self.app_name
        return headers
