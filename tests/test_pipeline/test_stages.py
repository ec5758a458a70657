"""Unit tests for the concrete generation stages (ai_agent.pipeline.stages).

Tests cover:
- Artefact model normalisation
- Prompt builders (all templates render with their inputs)
- Context response parsing
- ArchitectureStage integration resolution and merge
"""

from __future__ import annotations

import json

import pytest

from ai_agent.capabilities.catalog import default_capabilities
from ai_agent.capabilities.graph import CapabilityGraph
from ai_agent.capabilities.models import Capability, IntegrationSelection
from ai_agent.capabilities.templates import get_template
from ai_agent.errors import ConfigurationError, ResponseUnparseableError, SchemaViolationError
from ai_agent.pipeline.models import (
    GeneratedCode,
    ProjectArchitecture,
    ProjectInput,
    ProjectIntent,
)
from ai_agent.pipeline.prompts import (
    CURSORRULES_DELIMITER,
    STARTPROMPT_DELIMITER,
    render_prompt,
    template_names,
)
from ai_agent.pipeline.stages import (
    ArchitectureInput,
    ArchitectureStage,
    CodeInput,
    ContextInput,
    build_architecture_prompt,
    build_architecture_summary,
    build_code_prompt,
    build_context_prompt,
    build_integrations_list,
    build_intent_prompt,
    context_stage,
    format_integrations,
    merge_resolution,
    parse_context_response,
)


@pytest.fixture
def project() -> ProjectInput:
    return ProjectInput(description="A booking app for yoga studios", project_name="Flow")


@pytest.fixture
def intent(intent_payload) -> ProjectIntent:
    return ProjectIntent.model_validate(intent_payload)


@pytest.fixture
def architecture(architecture_payload) -> ProjectArchitecture:
    return ProjectArchitecture.model_validate(architecture_payload)


@pytest.fixture
def code(code_payload) -> GeneratedCode:
    return GeneratedCode.model_validate(code_payload)


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class TestArtifactModels:
    @pytest.mark.unit
    def test_intent_enums_normalised(self, intent_payload):
        intent_payload.update(category="Landing Page", complexity=" COMPLEX ")
        intent = ProjectIntent.model_validate(intent_payload)
        assert intent.category.value == "landing-page"
        assert intent.complexity.value == "complex"

    @pytest.mark.unit
    def test_intent_empty_providers_dropped(self, intent_payload):
        intent_payload["integrations"] = {"auth": "Clerk", "payments": "none", "email": None, "ai": ""}
        intent = ProjectIntent.model_validate(intent_payload)
        assert intent.integrations == IntegrationSelection(auth="clerk")

    @pytest.mark.unit
    def test_intent_unknown_category_rejected(self, intent_payload):
        intent_payload["integrations"] = {"crm": "hubspot"}
        with pytest.raises(Exception):
            ProjectIntent.model_validate(intent_payload)

    @pytest.mark.unit
    def test_camel_case_keys_accepted(self, intent_payload):
        intent_payload["suggestedTemplate"] = intent_payload.pop("suggested_template")
        intent_payload["keyEntities"] = intent_payload.pop("key_entities")
        intent = ProjectIntent.model_validate(intent_payload)
        assert intent.suggested_template == "saas"
        assert intent.key_entities == ["studio", "class", "member"]

    @pytest.mark.unit
    def test_architecture_route_method_uppercased(self, architecture):
        assert architecture.routes[0].method.value == "POST"
        assert architecture.routes[0].type.value == "api"

    @pytest.mark.unit
    def test_architecture_needs_a_page(self, architecture_payload):
        architecture_payload["pages"] = []
        with pytest.raises(Exception):
            ProjectArchitecture.model_validate(architecture_payload)

    @pytest.mark.unit
    def test_code_file_count(self, code):
        assert code.file_count == 3
        assert code.integration_code[0].files[0].overwrite is True

    @pytest.mark.unit
    def test_artifacts_are_frozen(self, intent):
        with pytest.raises(Exception):
            intent.confidence = 0.1


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------


class TestPrompts:
    @pytest.mark.unit
    def test_template_names(self):
        assert template_names() == sorted([
            "architecture.system", "architecture.user",
            "code.system", "code.user",
            "context.system", "context.user",
            "intent.system", "intent.user",
        ])

    @pytest.mark.unit
    def test_missing_variable_raises(self):
        with pytest.raises(Exception):
            render_prompt("intent.user")

    @pytest.mark.unit
    def test_intent_prompt(self, project):
        prompt = build_intent_prompt(project)
        assert "saas" in prompt.system
        assert "landing-page" in prompt.system
        assert "Project name: Flow" in prompt.user
        assert "A booking app for yoga studios" in prompt.user
        assert "Vision" not in prompt.user

    @pytest.mark.unit
    def test_architecture_prompt(self, intent):
        prompt = build_architecture_prompt(ArchitectureInput(intent=intent, template=get_template("saas")))
        assert '"saas" template' in prompt.system
        assert "auth: supabase, clerk" in prompt.system
        assert "- class booking" in prompt.user
        assert "auth=clerk, payments=stripe, email=resend" in prompt.user

    @pytest.mark.unit
    def test_code_prompt(self, architecture, project):
        prompt = build_code_prompt(CodeInput(architecture=architecture, project=project))
        assert '"saas" template' in prompt.system
        assert "/dashboard (Dashboard)" in prompt.user
        assert "ClassCalendar (feature)" in prompt.user
        assert "Hero (section)" not in prompt.user
        assert "POST /api/bookings" in prompt.user

    @pytest.mark.unit
    def test_context_prompt(self, intent, architecture, code, project):
        prompt = build_context_prompt(
            ContextInput(intent=intent, architecture=architecture, code=code, project=project)
        )
        assert CURSORRULES_DELIMITER in prompt.system
        assert STARTPROMPT_DELIMITER in prompt.system
        assert "Project: Flow" in prompt.user
        assert "- lib/stripe.ts" in prompt.user
        assert "- **auth**: clerk" in prompt.user

    @pytest.mark.unit
    def test_summaries(self, architecture):
        summary = build_architecture_summary(architecture)
        assert "- /dashboard: Member dashboard" in summary
        assert "- ClassCalendar: Weekly class calendar" in summary
        assert "- POST /api/bookings: Create a booking" in summary
        assert build_integrations_list(IntegrationSelection()) == "- No external integrations configured"
        assert format_integrations(IntegrationSelection(cms="sanity")) == "cms=sanity"


# ---------------------------------------------------------------------------
# Context parsing
# ---------------------------------------------------------------------------


class TestParseContextResponse:
    @pytest.mark.unit
    def test_valid(self, context_text):
        parsed = parse_context_response(context_text, "context")
        assert parsed.value["cursorrules"].startswith("You are working on")
        assert parsed.value["start_prompt"].startswith("Continue building")
        assert CURSORRULES_DELIMITER not in parsed.value["start_prompt"]

    @pytest.mark.unit
    def test_missing_delimiter(self):
        with pytest.raises(ResponseUnparseableError) as exc_info:
            parse_context_response("just some rules", "context")
        assert exc_info.value.excerpt == "just some rules"

    @pytest.mark.unit
    def test_delimiters_out_of_order(self):
        text = f"{STARTPROMPT_DELIMITER}\nprompt\n{CURSORRULES_DELIMITER}\nrules"
        with pytest.raises(ResponseUnparseableError):
            parse_context_response(text, "context")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_short_content_is_schema_violation(
        self, fake_provider, tracker, no_delay_policy, intent, architecture, code, project, context_text
    ):
        short = f"{CURSORRULES_DELIMITER}\ntoo short\n{STARTPROMPT_DELIMITER}\nalso short"
        provider = fake_provider([short, context_text])

        context = await context_stage("m", 100).run(
            ContextInput(intent=intent, architecture=architecture, code=code, project=project),
            provider,
            tracker,
            no_delay_policy,
        )

        assert provider.calls == 2
        assert len(context.cursorrules) >= 100

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_short_content_exhausts_attempts(
        self, fake_provider, tracker, no_delay_policy, intent, architecture, code, project
    ):
        short = f"{CURSORRULES_DELIMITER}\nx\n{STARTPROMPT_DELIMITER}\ny"
        provider = fake_provider([short])

        with pytest.raises(SchemaViolationError):
            await context_stage("m", 100).run(
                ContextInput(intent=intent, architecture=architecture, code=code, project=project),
                provider,
                tracker,
                no_delay_policy,
            )
        assert provider.calls == 3


# ---------------------------------------------------------------------------
# ArchitectureStage
# ---------------------------------------------------------------------------


class TestArchitectureStage:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_resolved_integrations_replace_model_output(
        self, fake_provider, tracker, no_delay_policy, intent_payload, architecture_payload
    ):
        intent_payload["integrations"] = {"auth": "auth0", "email": "resend"}
        intent = ProjectIntent.model_validate(intent_payload)
        architecture_payload["integrations"] = {"auth": "auth0", "cms": "sanity"}
        provider = fake_provider([json.dumps(architecture_payload)])
        stage = ArchitectureStage("m", 1000, default_capabilities())

        architecture = await stage.run(
            ArchitectureInput(intent=intent, template=get_template("saas")), provider, tracker, no_delay_policy
        )

        assert architecture.integrations == IntegrationSelection(auth="supabase", payments="stripe", email="resend")
        assert architecture.template == "saas"
        assert any("auth0" in w for w in architecture.warnings)
        # The resolved set is what the model was asked to design for.
        assert "auth=supabase" in provider.requests[0].user

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_invalid_capabilities_abort_without_provider_call(
        self, fake_provider, tracker, no_delay_policy, intent, architecture_payload
    ):
        provider = fake_provider([json.dumps(architecture_payload)])
        broken = [
            Capability(id="auth:clerk", requires=frozenset({"auth:supabase"})),
            Capability(id="auth:supabase", requires=frozenset({"auth:clerk"})),
        ]
        stage = ArchitectureStage("m", 1000, broken)

        with pytest.raises(ConfigurationError) as exc_info:
            await stage.run(
                ArchitectureInput(intent=intent, template=get_template("saas")), provider, tracker, no_delay_policy
            )

        assert provider.calls == 0
        assert exc_info.value.path[0] == exc_info.value.path[-1]

    @pytest.mark.unit
    def test_merge_resolution_deduplicates_warnings(self, architecture):
        resolution = CapabilityGraph.default().resolve(IntegrationSelection(auth="auth0"), get_template("saas"))
        merged = merge_resolution(architecture, get_template("saas"), resolution)
        twice = merge_resolution(merged, get_template("saas"), resolution)
        assert twice.warnings == merged.warnings
        assert merged.integrations.auth == "supabase"
        assert architecture.integrations.auth == "clerk"
