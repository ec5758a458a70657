"""Async client for the LLM provider.

Wraps the Anthropic Messages API (``/v1/messages``) with timeout handling and
structured responses. Failures are never raised: they come back as an
``LLMResponse`` with ``success=False`` and a ``retryable`` verdict, so the
retry layer can decide from the response alone.

Typical usage::

    client = AnthropicClient(api_key="sk-...")
    resp = await client.complete(
        LLMRequest(model="claude-3-haiku-20240307", max_tokens=1024,
                   system="You are terse.", user="Say hi")
    )
    print(resp.text, resp.input_tokens, resp.output_tokens)
"""

from __future__ import annotations

import time
from typing import Optional, Protocol

import httpx
from pydantic import BaseModel, Field

# Status codes worth replaying: timeouts, conflicts, rate limits, server errors.
_RETRYABLE_STATUS = {408, 409, 429}
# Authentication problems never fix themselves.
_AUTH_STATUS = {401, 403}


class LLMRequest(BaseModel):
    """A single completion request."""

    model: str = Field(..., description="Provider model id")
    temperature: float = Field(default=0.0, ge=0.0, le=1.0)
    max_tokens: int = Field(default=4096, ge=1, description="Maximum output size")
    system: str = Field(default="", description="System prompt")
    user: str = Field(..., description="User message")


class LLMResponse(BaseModel):
    """Structured response from a completion call."""

    text: str = Field(default="", description="Generated text")
    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    model: str = Field(default="", description="Model that produced the response")
    duration_ms: float = Field(default=0.0, description="Wall-clock request time in ms")
    success: bool = Field(default=True, description="Whether the request succeeded")
    error: Optional[str] = Field(default=None, description="Error message on failure")
    retryable: bool = Field(default=False, description="Whether a failed request may be replayed")
    status_code: Optional[int] = Field(default=None, description="HTTP status on failure")


class LLMProvider(Protocol):
    """Anything that can turn an ``LLMRequest`` into an ``LLMResponse``."""

    async def complete(self, request: LLMRequest) -> LLMResponse: ...


def is_retryable_status(status_code: int) -> bool:
    """Classify an HTTP status returned by the provider."""
    if status_code in _AUTH_STATUS:
        return False
    return status_code in _RETRYABLE_STATUS or status_code >= 500


class AnthropicClient:
    """Async client for the Anthropic Messages API.

    Uses ``httpx.AsyncClient`` for non-blocking HTTP. A fresh client is opened
    per request so one instance can be shared by concurrent generation runs.
    """

    def __init__(
        self,
        api_key: str = "",
        base_url: str = "https://api.anthropic.com",
        timeout: int = 120,
        api_version: str = "2023-06-01",
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.api_version = api_version

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _client(self) -> httpx.AsyncClient:
        """Return a fresh ``AsyncClient`` configured with our base URL, headers and timeout."""
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout, connect=10.0),
            headers={
                "x-api-key": self.api_key,
                "anthropic-version": self.api_version,
                "content-type": "application/json",
            },
        )

    @staticmethod
    def _extract_text(data: dict) -> str:
        """Concatenate the ``text`` blocks of a Messages API response."""
        blocks = data.get("content") or []
        return "".join(b.get("text", "") for b in blocks if b.get("type") == "text")

    @staticmethod
    def _extract_usage(data: dict) -> tuple[int, int]:
        usage = data.get("usage") or {}
        return int(usage.get("input_tokens", 0)), int(usage.get("output_tokens", 0))

    @staticmethod
    def _build_payload(request: LLMRequest) -> dict:
        payload: dict = {
            "model": request.model,
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
            "messages": [{"role": "user", "content": request.user}],
        }
        if request.system:
            payload["system"] = request.system
        return payload

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def complete(self, request: LLMRequest) -> LLMResponse:
        """Run one completion.

        Returns:
            An ``LLMResponse`` with the generated text and token counts, or a
            failed response describing what went wrong.
        """
        start = time.monotonic()

        def _failed(error: str, retryable: bool, status_code: Optional[int] = None) -> LLMResponse:
            return LLMResponse(
                model=request.model,
                duration_ms=(time.monotonic() - start) * 1000,
                success=False,
                error=error,
                retryable=retryable,
                status_code=status_code,
            )

        try:
            async with self._client() as client:
                response = await client.post("/v1/messages", json=self._build_payload(request))
                response.raise_for_status()
                data = response.json()
                input_tokens, output_tokens = self._extract_usage(data)
                return LLMResponse(
                    text=self._extract_text(data),
                    input_tokens=input_tokens,
                    output_tokens=output_tokens,
                    model=data.get("model", request.model),
                    duration_ms=(time.monotonic() - start) * 1000,
                    success=True,
                )
        except httpx.ConnectError:
            return _failed(f"Cannot connect to LLM provider at {self.base_url}.", retryable=True)
        except httpx.TimeoutException:
            return _failed(f"Request to LLM provider timed out after {self.timeout}s.", retryable=True)
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            return _failed(
                f"LLM provider returned HTTP {status}: {exc.response.text[:500]}",
                retryable=is_retryable_status(status),
                status_code=status,
            )
        except httpx.HTTPError as exc:
            return _failed(f"Transport error during LLM request: {exc}", retryable=True)
        except ValueError as exc:
            return _failed(f"LLM provider returned a malformed body: {exc}", retryable=True)
