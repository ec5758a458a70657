"""The reusable shape of one LLM-backed generation step.

A ``PipelineStage`` builds a prompt from its input, calls the provider,
parses the response (repairing near-JSON when needed), validates it against
the stage's output model, and retries recoverable failures. Token usage is
recorded for every provider response, whatever happens afterwards.
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any, Callable, Generic, NamedTuple, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel
from rich.markup import escape

from ..errors import ProviderError, ResponseUnparseableError, SchemaViolationError
from ..llm_client import LLMProvider, LLMRequest
from ..utils import console, format_duration
from .json_repair import EXCERPT_LENGTH, repair
from .retry import RetryPolicy, StageOutcome, with_retry
from .tokens import StageUsage, TokenTracker
from .validation import SchemaValidator

InT = TypeVar("InT")
OutT = TypeVar("OutT", bound=BaseModel)


class Prompt(NamedTuple):
    system: str
    user: str


class ParsedResponse(NamedTuple):
    value: Any
    fixes: tuple[str, ...] = ()


ParseFn = Callable[[str, str], ParsedResponse]


def parse_json_response(text: str, stage: str) -> ParsedResponse:
    """Parse *text* as JSON, falling back to ``repair``.

    Raises:
        ResponseUnparseableError: If neither a strict parse nor repair works.
    """
    try:
        return ParsedResponse(json.loads(text))
    except json.JSONDecodeError:
        pass

    result = repair(text)
    if result.success:
        return ParsedResponse(result.value, result.fixes)
    raise ResponseUnparseableError(
        f"{stage} response is not valid JSON and could not be repaired: {result.error}",
        excerpt=result.excerpt or text[:EXCERPT_LENGTH],
        stage=stage,
    )


class PipelineStage(Generic[InT, OutT]):
    """One generation step.

    Args:
        name: Stage name, used for token accounting and messages.
        output_model: Pydantic model the parsed response must match.
        build_prompt: Turns the stage input into system and user prompts.
        model: Provider model id.
        max_tokens: Maximum output size requested from the provider.
        parse: Turns raw response text into a value; JSON with repair by default.
        temperature: Sampling temperature, 0 for reproducible output.
    """

    def __init__(
        self,
        name: str,
        *,
        output_model: Type[OutT],
        build_prompt: Callable[[InT], Prompt],
        model: str,
        max_tokens: int,
        parse: ParseFn = parse_json_response,
        temperature: float = 0.0,
    ) -> None:
        self.name = name
        self.output_model = output_model
        self.validator: SchemaValidator[OutT] = SchemaValidator(output_model)
        self.build_prompt = build_prompt
        self.model = model
        self.max_tokens = max_tokens
        self.parse = parse
        self.temperature = temperature

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, model={self.model!r})"

    def build_request(self, payload: InT) -> LLMRequest:
        prompt = self.build_prompt(payload)
        return LLMRequest(
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            system=prompt.system,
            user=prompt.user,
        )

    async def attempt(self, payload: InT, provider: LLMProvider, tracker: TokenTracker) -> StageOutcome[OutT]:
        """Make a single attempt and report its outcome instead of raising."""
        request = self.build_request(payload)
        start = time.monotonic()
        try:
            response = await provider.complete(request)
        except ProviderError as exc:
            exc.stage = exc.stage or self.name
            return StageOutcome.failed(exc)
        except (httpx.HTTPError, asyncio.TimeoutError, ConnectionError) as exc:
            return StageOutcome.failed(ProviderError(f"{self.name}: {exc}", stage=self.name))
        duration_ms = (time.monotonic() - start) * 1000

        if not response.success:
            return StageOutcome.failed(ProviderError(
                f"{self.name}: {response.error or 'provider call failed'}",
                status_code=response.status_code,
                retryable=response.retryable,
                stage=self.name,
            ))

        tracker.record(StageUsage(
            stage=self.name,
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
            model=response.model or request.model,
            duration_ms=duration_ms,
        ))

        try:
            parsed = self.parse(response.text, self.name)
        except ResponseUnparseableError as exc:
            return StageOutcome.failed(exc)

        if parsed.fixes:
            tracker.record_repairs(parsed.fixes)
            console.print(
                f"  [dim]{escape(self.name)}: repaired response ({escape(', '.join(parsed.fixes))})[/dim]"
            )

        normalised: list[str] = []
        try:
            value = self.validator.validate(parsed.value, stage=self.name, fixes=normalised)
        except SchemaViolationError as exc:
            return StageOutcome.failed(exc)

        if normalised:
            tracker.record_repairs(normalised)
            console.print(f"  [dim]{escape(self.name)}: normalised {len(normalised)} value(s)[/dim]")

        return StageOutcome.ok(value)

    async def run(
        self,
        payload: InT,
        provider: LLMProvider,
        tracker: TokenTracker,
        policy: Optional[RetryPolicy] = None,
    ) -> OutT:
        """Run the stage with retries.

        Raises:
            ProviderError, SchemaViolationError: When retries are exhausted
                or the error is not retryable.
            ResponseUnparseableError: On the first unrecoverable response.
        """
        start = time.monotonic()
        result = await with_retry(
            lambda: self.attempt(payload, provider, tracker),
            policy or RetryPolicy(),
            label=f"{self.name} stage",
        )
        console.print(
            f"  [green]+[/green] {escape(self.name)} stage complete "
            f"[dim]({format_duration(time.monotonic() - start)})[/dim]"
        )
        return result
