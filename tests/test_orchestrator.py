"""Tests for the generation orchestrator (ai_agent.orchestrator).

Tests cover:
- Orchestrator construction (provider and capability defaults)
- Input validation
- Template selection
- Full runs against a scripted provider
- Failure handling: GenerationError with usage and partial outputs
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from ai_agent.capabilities.catalog import default_descriptor
from ai_agent.capabilities.loader import parse_descriptor
from ai_agent.capabilities.models import IntegrationSelection
from ai_agent.config import HAIKU, SONNET, Config, ModelTier, RetryConfig
from ai_agent.errors import ConfigurationError, GenerationError, ResponseUnparseableError, SchemaViolationError
from ai_agent.llm_client import AnthropicClient
from ai_agent.orchestrator import GenerateOptions, Orchestrator, StageEvent, generate_project
from ai_agent.pipeline.models import ProjectInput, ProjectIntent


@pytest.fixture
def config() -> Config:
    return Config(retry=RetryConfig(max_attempts=3, base_delay=0.0), log_token_usage=False)


@pytest.fixture
def happy_script(intent_payload, architecture_payload, code_payload, context_text) -> list[str]:
    return [
        json.dumps(intent_payload),
        json.dumps(architecture_payload),
        json.dumps(code_payload),
        context_text,
    ]


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestOrchestratorInit:
    @pytest.mark.unit
    def test_default_provider_is_anthropic_client(self, config: Config):
        config.llm.api_key = "sk-test"
        orchestrator = Orchestrator(config)
        assert isinstance(orchestrator.provider, AnthropicClient)
        assert orchestrator.provider.api_key == "sk-test"

    @pytest.mark.unit
    def test_builtin_capabilities_by_default(self, config: Config, fake_provider):
        orchestrator = Orchestrator(config, provider=fake_provider(["{}"]))
        assert "auth:clerk" in {c.id for c in orchestrator.capabilities}

    @pytest.mark.unit
    def test_capabilities_loaded_from_config_path(self, tmp_path: Path, fake_provider):
        path = tmp_path / "caps.json"
        path.write_text(json.dumps({"version": 1, "capabilities": [{"id": "auth:custom"}]}), encoding="utf-8")
        orchestrator = Orchestrator(Config(capabilities_path=path), provider=fake_provider(["{}"]))
        assert [c.id for c in orchestrator.capabilities] == ["auth:custom"]

    @pytest.mark.unit
    def test_retry_policy_from_config(self, config: Config, fake_provider):
        orchestrator = Orchestrator(config, provider=fake_provider(["{}"]))
        assert orchestrator.policy.max_attempts == 3
        assert orchestrator.policy.base_delay == 0.0


# ---------------------------------------------------------------------------
# Template selection
# ---------------------------------------------------------------------------


class TestSelectTemplate:
    @pytest.mark.unit
    def test_explicit_template_wins(self, intent_payload):
        project = ProjectInput(description="x", template="blog")
        intent = ProjectIntent.model_validate(intent_payload)
        assert Orchestrator.select_template(project, intent).id == "blog"

    @pytest.mark.unit
    def test_suggested_template_used(self, intent_payload):
        intent_payload["suggested_template"] = "dashboard"
        intent = ProjectIntent.model_validate(intent_payload)
        assert Orchestrator.select_template(ProjectInput(description="x"), intent).id == "dashboard"

    @pytest.mark.unit
    def test_default_when_nothing_suggested(self, intent_payload):
        intent_payload["suggested_template"] = None
        intent = ProjectIntent.model_validate(intent_payload)
        assert Orchestrator.select_template(ProjectInput(description="x"), intent).id == "saas"

    @pytest.mark.unit
    def test_unknown_suggestion_falls_back(self, intent_payload):
        intent_payload["suggested_template"] = "marketplace"
        intent = ProjectIntent.model_validate(intent_payload)
        assert Orchestrator.select_template(ProjectInput(description="x"), intent).id == "saas"

    @pytest.mark.unit
    def test_unknown_explicit_template_raises(self, intent_payload):
        intent = ProjectIntent.model_validate(intent_payload)
        with pytest.raises(ConfigurationError):
            Orchestrator.select_template(ProjectInput(description="x", template="nope"), intent)


# ---------------------------------------------------------------------------
# generate_project
# ---------------------------------------------------------------------------


class TestGenerateProject:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_full_run(self, config: Config, fake_provider, happy_script):
        provider = fake_provider(happy_script)
        orchestrator = Orchestrator(config, provider=provider)

        result = await orchestrator.generate_project(
            "A booking app for yoga studios", GenerateOptions(project_name="Flow")
        )

        assert provider.calls == 4
        assert result.intent.category.value == "saas"
        assert result.architecture.template == "saas"
        assert result.architecture.integrations.auth == "clerk"
        assert result.architecture.integrations.email == "resend"
        assert result.code.file_count == 3
        assert result.context.cursorrules.startswith("You are working on")
        assert result.usage.input == 400
        assert result.usage.output == 200
        assert all(result.usage.by_stage[name].calls == 1 for name in ("intent", "architecture", "code", "context"))

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_stage_models_follow_tier(self, config: Config, fake_provider, happy_script):
        provider = fake_provider(happy_script)

        await Orchestrator(config, provider=provider).generate_project(
            "A booking app", GenerateOptions(model_tier=ModelTier.BALANCED)
        )

        assert [r.model for r in provider.requests] == [HAIKU, HAIKU, SONNET, HAIKU]
        assert [r.max_tokens for r in provider.requests] == [2048, 4096, 16384, 8192]
        assert all(r.temperature == 0.0 for r in provider.requests)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_progress_events(self, config: Config, fake_provider, happy_script):
        events: list[StageEvent] = []

        await Orchestrator(config, provider=fake_provider(happy_script)).generate_project(
            "A booking app", GenerateOptions(on_progress=events.append)
        )

        assert [(e.stage, e.kind) for e in events] == [
            ("intent", "start"), ("intent", "complete"),
            ("architecture", "start"), ("architecture", "complete"),
            ("code", "start"), ("code", "complete"),
            ("context", "start"), ("context", "complete"),
        ]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_empty_description_rejected(self, config: Config, fake_provider):
        provider = fake_provider(["{}"])
        with pytest.raises(SchemaViolationError):
            await Orchestrator(config, provider=provider).generate_project("   ")
        assert provider.calls == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_description_over_limit_rejected(self, fake_provider):
        provider = fake_provider(["{}"])
        orchestrator = Orchestrator(Config(max_input_length=10), provider=provider)
        with pytest.raises(SchemaViolationError) as exc_info:
            await orchestrator.generate_project("x" * 11)
        assert exc_info.value.field_path == "description"
        assert provider.calls == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failure_stops_later_stages(self, config: Config, fake_provider, intent_payload):
        provider = fake_provider([json.dumps(intent_payload), "I refuse to answer in JSON."])
        events: list[StageEvent] = []

        with pytest.raises(GenerationError) as exc_info:
            await Orchestrator(config, provider=provider).generate_project(
                "A booking app", GenerateOptions(on_progress=events.append)
            )

        error = exc_info.value
        assert error.stage == "architecture"
        assert isinstance(error.cause, ResponseUnparseableError)
        assert set(error.partial) == {"intent"}
        assert error.usage.input == 200
        assert error.usage.by_stage["architecture"].calls == 1
        assert provider.calls == 2
        assert events[-1].stage == "architecture"
        assert events[-1].kind == "failed"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unexpected_exception_wrapped_with_usage(self, config: Config, fake_provider, intent_payload):
        provider = fake_provider([json.dumps(intent_payload), RuntimeError("provider exploded")])
        events: list[StageEvent] = []

        with pytest.raises(GenerationError) as exc_info:
            await Orchestrator(config, provider=provider).generate_project(
                "A booking app", GenerateOptions(on_progress=events.append)
            )

        error = exc_info.value
        assert error.stage == "architecture"
        assert isinstance(error.cause, RuntimeError)
        assert isinstance(error.__cause__, RuntimeError)
        assert error.usage.input == 100
        assert set(error.partial) == {"intent"}
        assert (events[-1].stage, events[-1].kind) == ("architecture", "failed")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_model_vocabulary_accepted_without_retry(
        self, config: Config, fake_provider, intent_payload, happy_script
    ):
        intent_payload.update(category="saas-app", complexity="medium")
        intent_payload["integrations"] = {"auth": True, "payments": "stripe(subscription)", "email": False}
        happy_script[0] = json.dumps(intent_payload)
        provider = fake_provider(happy_script)

        result = await Orchestrator(config, provider=provider).generate_project("A booking app")

        assert provider.calls == 4
        assert result.intent.category.value == "saas"
        assert result.intent.complexity.value == "moderate"
        assert result.intent.integrations == IntegrationSelection(auth="supabase", payments="stripe")
        assert result.usage.repairs["normalize_value"] == 5

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unknown_template_aborts_before_architecture_call(
        self, config: Config, fake_provider, happy_script
    ):
        provider = fake_provider(happy_script)

        with pytest.raises(GenerationError) as exc_info:
            await Orchestrator(config, provider=provider).generate_project(
                "A booking app", GenerateOptions(template="nope")
            )

        assert exc_info.value.stage == "architecture"
        assert isinstance(exc_info.value.cause, ConfigurationError)
        assert provider.calls == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_concurrent_runs_keep_separate_usage(self, config: Config, fake_provider, happy_script):
        orchestrator_a = Orchestrator(config, provider=fake_provider(happy_script))
        orchestrator_b = Orchestrator(config, provider=fake_provider(happy_script, input_tokens=10, output_tokens=5))

        result_a, result_b = await asyncio.gather(
            orchestrator_a.generate_project("First app"),
            orchestrator_b.generate_project("Second app"),
        )

        assert result_a.usage.input == 400
        assert result_b.usage.input == 40

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_module_level_generate_project(self, config: Config, fake_provider, happy_script):
        provider = fake_provider(happy_script)
        result = await generate_project("A booking app", config=config, provider=provider)
        assert result.code.file_count == 3


# ---------------------------------------------------------------------------
# Custom capability set
# ---------------------------------------------------------------------------


class TestCustomCapabilities:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_descriptor_dependencies_applied(self, config: Config, fake_provider, intent_payload, happy_script):
        intent_payload["integrations"] = {"storage": "supabase"}
        happy_script[0] = json.dumps(intent_payload)
        provider = fake_provider(happy_script)
        orchestrator = Orchestrator(config, provider=provider, capabilities=parse_descriptor(default_descriptor()))

        result = await orchestrator.generate_project("A booking app")

        assert result.architecture.integrations.storage == "supabase"
        assert result.architecture.integrations.database == "supabase"
