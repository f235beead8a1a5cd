"""
Generation provider client.

One outbound request per call, bounded by the configured timeout, with no
automatic retry. Two wire protocols are supported:

- OpenAI chat completions (provider "openai" and any "openai_compatible"
  endpoint): POST {base_url}/chat/completions
- Anthropic messages: POST {base_url}/messages

Every transport, HTTP status or body shape problem is raised as
GenerationProviderError; the orchestrator catches it and turns it into an
error result.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from pipeline_velocity.core.config import Settings
from pipeline_velocity.models.enums import ProviderKind
from pipeline_velocity.models.schemas import ProviderRequest, ProviderResponse, ProviderUsage

logger = logging.getLogger(__name__)


DEFAULT_BASE_URLS = {
    ProviderKind.OPENAI: "https://api.openai.com/v1",
    ProviderKind.ANTHROPIC: "https://api.anthropic.com/v1",
}

ANTHROPIC_VERSION = "2023-06-01"


class GenerationProviderError(Exception):
    """Raised by a provider client when a completion cannot be obtained."""

    def __init__(self, message: str, code: str = "provider_error"):
        super().__init__(message)
        self.code = code


class GenerationProvider(ABC):
    """Anything that can turn a ProviderRequest into a ProviderResponse."""

    model: str = ""

    @abstractmethod
    async def complete(self, request: ProviderRequest) -> ProviderResponse:
        """Send one request. Raises GenerationProviderError on failure."""


class HttpGenerationProvider(GenerationProvider):
    """
    httpx based client for OpenAI-style and Anthropic-style endpoints.

    Args:
        kind: Wire protocol
        api_key: Credential
        model: Model identifier
        base_url: API root, defaults per provider kind
        timeout_seconds: Timeout for the whole request
        max_tokens: Completion token ceiling
        temperature: Sampling temperature
        transport: Optional httpx transport (tests pass httpx.MockTransport)
    """

    def __init__(
        self,
        kind: ProviderKind,
        api_key: str,
        model: str,
        base_url: Optional[str] = None,
        timeout_seconds: float = 30.0,
        max_tokens: int = 2000,
        temperature: float = 0.3,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        resolved = base_url or DEFAULT_BASE_URLS.get(kind)
        if not resolved:
            raise GenerationProviderError(
                f"A base URL is required for provider {kind.value}", code="config_error"
            )
        self.kind = kind
        self.api_key = api_key
        self.model = model
        self.base_url = resolved.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._transport = transport

    # =========================================================================
    # Wire formats
    # =========================================================================

    def _build_call(self, request: ProviderRequest):
        messages = [m.model_dump() for m in request.messages if m.role != "system"]

        if self.kind == ProviderKind.ANTHROPIC:
            url = f"{self.base_url}/messages"
            headers = {
                "x-api-key": self.api_key,
                "anthropic-version": ANTHROPIC_VERSION,
                "content-type": "application/json",
            }
            payload: Dict[str, Any] = {
                "model": self.model,
                "system": request.system_prompt,
                "messages": messages,
                "max_tokens": self.max_tokens,
                "temperature": self.temperature,
            }
        else:
            url = f"{self.base_url}/chat/completions"
            headers = {
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            }
            payload = {
                "model": self.model,
                "messages": [{"role": "system", "content": request.system_prompt}] + messages,
                "max_tokens": self.max_tokens,
                "temperature": self.temperature,
            }
        return url, headers, payload

    def _parse_body(self, body: Dict[str, Any]) -> ProviderResponse:
        try:
            if self.kind == ProviderKind.ANTHROPIC:
                content = "".join(
                    block.get("text", "") for block in body["content"] if block.get("type") == "text"
                )
                usage = body.get("usage") or {}
                input_tokens = usage.get("input_tokens", 0)
                output_tokens = usage.get("output_tokens", 0)
            else:
                content = body["choices"][0]["message"]["content"] or ""
                usage = body.get("usage") or {}
                input_tokens = usage.get("prompt_tokens", 0)
                output_tokens = usage.get("completion_tokens", 0)
        except (KeyError, IndexError, TypeError) as e:
            raise GenerationProviderError(
                f"Unexpected response shape from {self.kind.value}: {e}", code="malformed_response"
            ) from e

        return ProviderResponse(
            content=content,
            model=body.get("model") or self.model,
            usage=ProviderUsage(
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
            ),
        )

    # =========================================================================
    # Request
    # =========================================================================

    async def complete(self, request: ProviderRequest) -> ProviderResponse:
        url, headers, payload = self._build_call(request)
        started = time.monotonic()

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.post(url, headers=headers, json=payload)
                response.raise_for_status()
                body = response.json()
        except httpx.TimeoutException as e:
            raise GenerationProviderError(
                f"Request to {self.kind.value} timed out after {self.timeout_seconds}s", code="timeout"
            ) from e
        except httpx.HTTPStatusError as e:
            raise GenerationProviderError(
                f"HTTP error from {self.kind.value}: {e.response.status_code}", code="http_error"
            ) from e
        except httpx.HTTPError as e:
            raise GenerationProviderError(
                f"Transport error calling {self.kind.value}: {e}", code="transport_error"
            ) from e
        except ValueError as e:
            raise GenerationProviderError(
                f"Response from {self.kind.value} is not JSON", code="malformed_response"
            ) from e

        result = self._parse_body(body)
        result.latency_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            f"{request.task_type} completion from {self.kind.value}/{result.model}: "
            f"{result.usage.total_tokens} tokens in {result.latency_ms}ms"
        )
        return result


def build_provider(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Optional[GenerationProvider]:
    """
    Create the configured provider client.

    Returns:
        HttpGenerationProvider, or None when generation is not configured
    """
    if not settings.generation_enabled:
        logger.info("Generation provider not configured; AI insights disabled")
        return None

    return HttpGenerationProvider(
        kind=settings.generation_provider,
        api_key=settings.generation_api_key,
        model=settings.generation_model,
        base_url=settings.generation_base_url,
        timeout_seconds=settings.generation_timeout_seconds,
        max_tokens=settings.generation_max_tokens,
        temperature=settings.generation_temperature,
        transport=transport,
    )
