"""The four concrete generation stages.

1. intent        ProjectInput          -> ProjectIntent
2. architecture  ArchitectureInput     -> ProjectArchitecture (integrations resolved)
3. code          CodeInput             -> GeneratedCode
4. context       ContextInput          -> ProjectContext (delimiter format, not JSON)
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable, Optional

from ..capabilities.graph import resolve
from ..capabilities.models import Capability, IntegrationSelection, ResolutionResult, TemplateMetadata
from ..capabilities.templates import list_templates
from ..errors import ResponseUnparseableError
from ..llm_client import LLMProvider
from ..utils import truncate
from .models import (
    GeneratedCode,
    ProjectArchitecture,
    ProjectContext,
    ProjectInput,
    ProjectIntent,
)
from .prompts import CURSORRULES_DELIMITER, STARTPROMPT_DELIMITER, render_prompt
from .retry import RetryPolicy
from .stage import ParsedResponse, PipelineStage, Prompt
from .tokens import TokenTracker


# ---------------------------------------------------------------------------
# Stage inputs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ArchitectureInput:
    intent: ProjectIntent
    template: TemplateMetadata
    resolution: Optional[ResolutionResult] = None


@dataclass(frozen=True)
class CodeInput:
    architecture: ProjectArchitecture
    project: ProjectInput


@dataclass(frozen=True)
class ContextInput:
    intent: ProjectIntent
    architecture: ProjectArchitecture
    code: GeneratedCode
    project: ProjectInput


# ---------------------------------------------------------------------------
# Summaries shared by prompts
# ---------------------------------------------------------------------------

def format_integrations(selection: IntegrationSelection) -> str:
    """``"auth=supabase, payments=stripe"``, or an empty string."""
    return ", ".join(f"{category.value}={provider}" for category, provider in selection.pairs())


def build_integrations_list(selection: IntegrationSelection) -> str:
    lines = [f"- **{category.value}**: {provider}" for category, provider in selection.pairs()]
    return "\n".join(lines) or "- No external integrations configured"


def build_architecture_summary(architecture: ProjectArchitecture) -> str:
    """Markdown summary of pages, custom components and API routes."""
    parts = ["**Pages:**"]
    parts.extend(f"- {page.path}: {page.description}" for page in architecture.pages)

    custom = [c for c in architecture.components if c.template == "create-new"]
    if custom:
        parts.append("\n**Custom Components:**")
        parts.extend(f"- {c.name}: {c.description}" for c in custom)

    if architecture.routes:
        parts.append("\n**Routes:**")
        for route in architecture.routes:
            method = route.method.value if route.method else "GET"
            parts.append(f"- {method} {route.path}: {route.description}")

    return "\n".join(parts)


# ---------------------------------------------------------------------------
# Prompt builders
# ---------------------------------------------------------------------------

def build_intent_prompt(project: ProjectInput) -> Prompt:
    return Prompt(
        system=render_prompt("intent.system", templates=[t.id for t in list_templates()]),
        user=render_prompt(
            "intent.user",
            description=project.description,
            project_name=project.project_name,
            vision=project.vision,
            mission=project.mission,
        ),
    )


def build_architecture_prompt(payload: ArchitectureInput) -> Prompt:
    template = payload.template
    requested = payload.resolution.integrations if payload.resolution else payload.intent.integrations
    supported = [(category.value, providers) for category, providers in template.supported.items()]
    return Prompt(
        system=render_prompt("architecture.system", template=template, supported=supported),
        user=render_prompt(
            "architecture.user",
            intent=payload.intent,
            requested=format_integrations(requested),
        ),
    )


def build_code_prompt(payload: CodeInput) -> Prompt:
    architecture = payload.architecture
    return Prompt(
        system=render_prompt("code.system", template=architecture.template),
        user=render_prompt(
            "code.user",
            project_name=payload.project.project_name,
            architecture=architecture,
            custom_components=[c for c in architecture.components if c.template == "create-new"],
            integrations=format_integrations(architecture.integrations),
        ),
    )


def build_context_prompt(payload: ContextInput) -> Prompt:
    file_paths = [f.path for f in payload.code.files]
    for bundle in payload.code.integration_code:
        file_paths.extend(f.path for f in bundle.files)
    return Prompt(
        system=render_prompt("context.system"),
        user=render_prompt(
            "context.user",
            project_name=payload.project.project_name or "MyApp",
            description=payload.project.description or payload.intent.reasoning,
            intent=payload.intent,
            architecture=payload.architecture,
            architecture_summary=build_architecture_summary(payload.architecture),
            integrations_list=build_integrations_list(payload.architecture.integrations),
            file_paths=file_paths,
        ),
    )


# ---------------------------------------------------------------------------
# Context response parsing
# ---------------------------------------------------------------------------

def parse_context_response(text: str, stage: str) -> ParsedResponse:
    """Split a delimiter-formatted response into its two files.

    Raises:
        ResponseUnparseableError: If either delimiter is missing or they are
            out of order.
    """
    rules_at = text.find(CURSORRULES_DELIMITER)
    prompt_at = text.find(STARTPROMPT_DELIMITER)
    if rules_at == -1 or prompt_at == -1 or prompt_at < rules_at:
        raise ResponseUnparseableError(
            f"{stage} response is missing the {CURSORRULES_DELIMITER}/{STARTPROMPT_DELIMITER} delimiters",
            excerpt=truncate(text),
            stage=stage,
        )
    cursorrules = text[rules_at + len(CURSORRULES_DELIMITER):prompt_at].strip()
    start_prompt = text[prompt_at + len(STARTPROMPT_DELIMITER):].strip()
    return ParsedResponse({"cursorrules": cursorrules, "start_prompt": start_prompt})


# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------

def intent_stage(model: str, max_tokens: int) -> PipelineStage[ProjectInput, ProjectIntent]:
    return PipelineStage(
        "intent",
        output_model=ProjectIntent,
        build_prompt=build_intent_prompt,
        model=model,
        max_tokens=max_tokens,
    )


class ArchitectureStage(PipelineStage[ArchitectureInput, ProjectArchitecture]):
    """Architecture design plus integration resolution.

    Integrations are resolved against the template before the provider is
    called, so an invalid capability set aborts the stage without spending
    tokens and without retries. The validated set then replaces whatever
    integrations the model proposed.
    """

    def __init__(self, model: str, max_tokens: int, capabilities: Iterable[Capability]) -> None:
        super().__init__(
            "architecture",
            output_model=ProjectArchitecture,
            build_prompt=build_architecture_prompt,
            model=model,
            max_tokens=max_tokens,
        )
        self.capabilities = list(capabilities)

    async def run(
        self,
        payload: ArchitectureInput,
        provider: LLMProvider,
        tracker: TokenTracker,
        policy: Optional[RetryPolicy] = None,
    ) -> ProjectArchitecture:
        resolution = resolve(self.capabilities, payload.intent.integrations, payload.template)
        payload = replace(payload, resolution=resolution)
        architecture = await super().run(payload, provider, tracker, policy)
        return merge_resolution(architecture, payload.template, resolution)


def merge_resolution(
    architecture: ProjectArchitecture,
    template: TemplateMetadata,
    resolution: ResolutionResult,
) -> ProjectArchitecture:
    """Return a copy of *architecture* carrying the validated integration set."""
    warnings = list(architecture.warnings)
    warnings.extend(str(w) for w in resolution.warnings if str(w) not in warnings)
    return architecture.model_copy(update={
        "template": template.id,
        "integrations": resolution.integrations,
        "warnings": warnings,
    })


def code_stage(model: str, max_tokens: int) -> PipelineStage[CodeInput, GeneratedCode]:
    return PipelineStage(
        "code",
        output_model=GeneratedCode,
        build_prompt=build_code_prompt,
        model=model,
        max_tokens=max_tokens,
    )


def context_stage(model: str, max_tokens: int) -> PipelineStage[ContextInput, ProjectContext]:
    return PipelineStage(
        "context",
        output_model=ProjectContext,
        build_prompt=build_context_prompt,
        model=model,
        max_tokens=max_tokens,
        parse=parse_context_response,
    )
