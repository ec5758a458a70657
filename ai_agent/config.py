"""AI Agent configuration.

Centralised, typed configuration for the generation pipeline. All settings use
Pydantic v2 models so they can be validated at construction time and serialised
to/from JSON or environment variables without boiler-plate.
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field


class ModelTier(str, Enum):
    """Cost/quality trade-off used to pick a model for each stage."""
    FAST = "fast"
    BALANCED = "balanced"
    QUALITY = "quality"


HAIKU = "claude-3-haiku-20240307"
SONNET = "claude-sonnet-4-20250514"

STAGE_NAMES: tuple[str, ...] = ("intent", "architecture", "code", "context")

# Haiku is cheap but less reliable on schemas, which is what JSON repair is for.
MODEL_TIERS: dict[ModelTier, dict[str, str]] = {
    ModelTier.FAST: {
        "intent": HAIKU,
        "architecture": HAIKU,
        "code": HAIKU,
        "context": HAIKU,
    },
    ModelTier.BALANCED: {
        "intent": HAIKU,
        "architecture": HAIKU,
        "code": SONNET,
        "context": HAIKU,
    },
    ModelTier.QUALITY: {
        "intent": SONNET,
        "architecture": SONNET,
        "code": SONNET,
        "context": SONNET,
    },
}


class LLMConfig(BaseModel):
    """Connection settings for the LLM provider."""

    base_url: str = Field(default="https://api.anthropic.com")
    api_key: Optional[str] = Field(default=None, description="Falls back to ANTHROPIC_API_KEY")
    api_version: str = Field(default="2023-06-01")
    timeout: int = Field(default=120, ge=10, description="Per-request timeout in seconds")

    def resolved_api_key(self) -> str:
        """Return the configured key, or the one from the environment."""
        return self.api_key or os.environ.get("ANTHROPIC_API_KEY", "")


class RetryConfig(BaseModel):
    """Retry/backoff knobs shared by every stage."""

    max_attempts: int = Field(default=3, ge=1, description="Attempts per stage, first one included")
    base_delay: float = Field(default=1.0, ge=0.0, description="Delay before the second attempt, in seconds")
    backoff_factor: float = Field(default=2.0, ge=1.0)
    max_delay: float = Field(default=10.0, ge=0.0)


class StageLimits(BaseModel):
    """Maximum output tokens requested from the provider for each stage."""

    intent: int = Field(default=2048, ge=1)
    architecture: int = Field(default=4096, ge=1)
    code: int = Field(default=16384, ge=1)
    context: int = Field(default=8192, ge=1)

    def for_stage(self, stage: str) -> int:
        return getattr(self, stage)


class Config(BaseModel):
    """Global AI Agent configuration.

    Instances are typically created once by the caller (or ``from_env``) and
    handed to the ``Orchestrator``, which passes the relevant pieces down to
    each stage.
    """

    llm: LLMConfig = Field(default_factory=LLMConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    model_tier: ModelTier = Field(default=ModelTier.BALANCED)
    max_tokens: StageLimits = Field(default_factory=StageLimits)
    log_token_usage: bool = Field(default=True)
    max_input_length: int = Field(default=10_000, ge=1)
    capabilities_path: Optional[Path] = Field(
        default=None, description="Capability descriptor file; the built-in catalogue is used when unset"
    )

    def models_for_tier(self, tier: ModelTier | None = None) -> dict[str, str]:
        """Return the ``{stage: model}`` mapping for *tier* (defaults to ``model_tier``)."""
        return dict(MODEL_TIERS[tier or self.model_tier])

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the configuration to a JSON file.

        The API key is never written to disk.

        Returns:
            The path where the file was written.
        """
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(
            self.model_dump_json(indent=2, exclude={"llm": {"api_key"}}),
            encoding="utf-8",
        )
        return target

    @classmethod
    def load(cls, path: Path) -> "Config":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional):
            AI_AGENT_API_KEY, AI_AGENT_BASE_URL, AI_AGENT_TIMEOUT,
            AI_AGENT_MODEL_TIER, AI_AGENT_MAX_ATTEMPTS, AI_AGENT_BASE_DELAY,
            AI_AGENT_CAPABILITIES, AI_AGENT_LOG_USAGE.
        """
        llm_kwargs: dict[str, Any] = {}
        if os.environ.get("AI_AGENT_API_KEY"):
            llm_kwargs["api_key"] = os.environ["AI_AGENT_API_KEY"]
        if os.environ.get("AI_AGENT_BASE_URL"):
            llm_kwargs["base_url"] = os.environ["AI_AGENT_BASE_URL"]
        if os.environ.get("AI_AGENT_TIMEOUT"):
            llm_kwargs["timeout"] = int(os.environ["AI_AGENT_TIMEOUT"])

        retry_kwargs: dict[str, Any] = {}
        if os.environ.get("AI_AGENT_MAX_ATTEMPTS"):
            retry_kwargs["max_attempts"] = int(os.environ["AI_AGENT_MAX_ATTEMPTS"])
        if os.environ.get("AI_AGENT_BASE_DELAY"):
            retry_kwargs["base_delay"] = float(os.environ["AI_AGENT_BASE_DELAY"])

        kwargs: dict[str, Any] = {
            "llm": LLMConfig(**llm_kwargs),
            "retry": RetryConfig(**retry_kwargs),
        }
        if os.environ.get("AI_AGENT_MODEL_TIER"):
            kwargs["model_tier"] = ModelTier(os.environ["AI_AGENT_MODEL_TIER"].lower())
        if os.environ.get("AI_AGENT_CAPABILITIES"):
            kwargs["capabilities_path"] = Path(os.environ["AI_AGENT_CAPABILITIES"])
        log_usage = os.environ.get("AI_AGENT_LOG_USAGE")
        if log_usage:
            kwargs["log_token_usage"] = log_usage.strip().lower() not in ("0", "false", "no", "off")

        return cls(**kwargs)
