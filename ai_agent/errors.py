"""Error taxonomy for the generation pipeline.

Every error carries a ``retryable`` flag so the retry layer can decide what to
do from the error alone. Capability configuration problems are never
retryable; provider and schema failures usually are.
"""

from __future__ import annotations

from typing import Any, Optional


class AIAgentError(Exception):
    """Base class for all pipeline errors."""

    retryable: bool = False

    def __init__(self, message: str, *, stage: Optional[str] = None) -> None:
        self.message = message
        self.stage = stage
        self.attempts = 1
        super().__init__(message)

    def with_attempts(self, attempts: int) -> "AIAgentError":
        """Record how many attempts were made and append it to the message."""
        self.attempts = attempts
        suffix = f" (after {attempts} attempt{'s' if attempts != 1 else ''})"
        self.args = (f"{self.message}{suffix}",)
        return self


class ConfigurationError(AIAgentError):
    """A capability set or template declaration is unusable.

    Raised for duplicate ids, references to undeclared ids, dependency cycles
    and unknown templates. ``path`` holds the offending cycle when there is one.
    """

    def __init__(
        self,
        message: str,
        *,
        path: Optional[list[str]] = None,
        capability_id: Optional[str] = None,
        stage: Optional[str] = None,
    ) -> None:
        self.path = list(path) if path else []
        self.capability_id = capability_id
        super().__init__(message, stage=stage)


class ProviderError(AIAgentError):
    """The LLM provider call failed (network, auth, rate limit, server error)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        retryable: bool = True,
        stage: Optional[str] = None,
    ) -> None:
        self.status_code = status_code
        self.retryable = retryable
        super().__init__(message, stage=stage)


class ResponseUnparseableError(AIAgentError):
    """The provider answered, but nothing structured could be recovered."""

    def __init__(self, message: str, *, excerpt: str = "", stage: Optional[str] = None) -> None:
        self.excerpt = excerpt
        super().__init__(message, stage=stage)


class SchemaViolationError(AIAgentError):
    """The parsed response does not match the stage's expected shape."""

    retryable = True

    def __init__(self, message: str, *, field_path: str = "", stage: Optional[str] = None) -> None:
        self.field_path = field_path
        super().__init__(message, stage=stage)


class GenerationError(AIAgentError):
    """A full generation run was aborted at ``stage``.

    ``usage`` is the token summary accumulated up to the failure and
    ``partial`` maps already-completed stage names to their outputs.
    """

    def __init__(
        self,
        stage: str,
        cause: BaseException,
        *,
        usage: Any = None,
        partial: Optional[dict[str, Any]] = None,
    ) -> None:
        self.cause = cause
        self.usage = usage
        self.partial = dict(partial or {})
        super().__init__(f"Stage '{stage}' failed: {cause}", stage=stage)
