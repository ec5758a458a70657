"""AI Agent generation orchestrator.

Runs the four generation stages strictly in order, threading each stage's
validated output into the next:

Stage 1: intent        -- Classify the description, pick features and integrations.
Stage 2: architecture  -- Resolve integrations against the template, design pages/components/routes.
Stage 3: code          -- Write the custom source files.
Stage 4: context       -- Write the editor continuation files.

Usage::

    from ai_agent import GenerateOptions, generate_project

    result = await generate_project("A booking app for yoga studios", GenerateOptions(project_name="Flow"))
    print(result.architecture.integrations, result.usage.estimated_cost)
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Literal, Optional

from pydantic import BaseModel, ConfigDict
from rich.markup import escape
from rich.panel import Panel

from ai_agent.capabilities.catalog import default_capabilities
from ai_agent.capabilities.loader import load_capabilities
from ai_agent.capabilities.models import Capability, TemplateMetadata
from ai_agent.capabilities.templates import DEFAULT_TEMPLATE, get_template, list_templates
from ai_agent.config import Config, ModelTier
from ai_agent.errors import AIAgentError, GenerationError, SchemaViolationError
from ai_agent.llm_client import AnthropicClient, LLMProvider
from ai_agent.pipeline.models import (
    GeneratedCode,
    ProjectArchitecture,
    ProjectContext,
    ProjectInput,
    ProjectIntent,
)
from ai_agent.pipeline.retry import RetryPolicy
from ai_agent.pipeline.stages import (
    ArchitectureInput,
    ArchitectureStage,
    CodeInput,
    ContextInput,
    code_stage,
    context_stage,
    intent_stage,
)
from ai_agent.pipeline.tokens import TokenSummary, TokenTracker
from ai_agent.pipeline.validation import SchemaValidator
from ai_agent.utils import (
    console,
    format_duration,
    print_error,
    print_success,
    print_summary_table,
    print_warning,
)

# ---------------------------------------------------------------------------
# Options and results
# ---------------------------------------------------------------------------

EventKind = Literal["start", "complete", "failed"]


@dataclass(frozen=True)
class StageEvent:
    """Progress notification sent to ``GenerateOptions.on_progress``."""

    stage: str
    kind: EventKind
    message: str = ""


@dataclass
class GenerateOptions:
    """Per-run options for ``generate_project``.

    Attributes:
        project_name: Name used in prompts and the continuation files.
        template: Template id; overrides the template suggested by the intent stage.
        vision: Optional product vision passed to the intent stage.
        mission: Optional mission statement passed to the intent stage.
        model_tier: Overrides ``Config.model_tier`` for this run.
        on_progress: Called with a ``StageEvent`` as each stage starts, completes or fails.
    """

    project_name: Optional[str] = None
    template: Optional[str] = None
    vision: Optional[str] = None
    mission: Optional[str] = None
    model_tier: Optional[ModelTier] = None
    on_progress: Optional[Callable[[StageEvent], None]] = None


class GenerateProjectResult(BaseModel):
    """Everything one successful run produced."""
    model_config = ConfigDict(frozen=True)

    intent: ProjectIntent
    architecture: ProjectArchitecture
    code: GeneratedCode
    context: ProjectContext
    usage: TokenSummary


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class Orchestrator:
    """Drives one or more generation runs against a single provider.

    The orchestrator itself holds no per-run state: every call to
    ``generate_project`` creates its own ``TokenTracker``, so concurrent runs
    on the same instance never share usage records.

    Attributes:
        config: Global configuration.
        provider: LLM provider every stage calls.
        capabilities: Capability descriptors used for integration resolution.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        provider: Optional[LLMProvider] = None,
        capabilities: Optional[list[Capability]] = None,
    ) -> None:
        self.config = config or Config()
        self.provider: LLMProvider = provider or AnthropicClient(
            api_key=self.config.llm.resolved_api_key(),
            base_url=self.config.llm.base_url,
            timeout=self.config.llm.timeout,
            api_version=self.config.llm.api_version,
        )
        if capabilities is None:
            if self.config.capabilities_path is not None:
                capabilities = load_capabilities(self.config.capabilities_path)
            else:
                capabilities = default_capabilities()
        self.capabilities = list(capabilities)
        self.policy = RetryPolicy.from_config(self.config.retry)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _build_input(self, description: str, options: GenerateOptions) -> ProjectInput:
        limit = self.config.max_input_length
        if len(description) > limit:
            raise SchemaViolationError(
                f"Description is {len(description)} characters; the limit is {limit}",
                field_path="description",
                stage="input",
            )
        return SchemaValidator(ProjectInput).validate(
            {
                "description": description.strip(),
                "project_name": options.project_name,
                "template": options.template,
                "vision": options.vision,
                "mission": options.mission,
            },
            stage="input",
        )

    @staticmethod
    def select_template(project: ProjectInput, intent: ProjectIntent) -> TemplateMetadata:
        """Explicit template, else the intent's suggestion, else the default.

        A suggestion naming an unknown template falls back to the default.

        Raises:
            ConfigurationError: If the explicitly requested template is unknown.
        """
        if project.template:
            return get_template(project.template)
        suggested = intent.suggested_template
        if suggested and suggested in {t.id for t in list_templates()}:
            return get_template(suggested)
        if suggested:
            print_warning(f"  Unknown suggested template '{escape(suggested)}', using '{DEFAULT_TEMPLATE}'")
        return get_template(DEFAULT_TEMPLATE)

    @staticmethod
    def _notify(options: GenerateOptions, stage: str, kind: EventKind, message: str = "") -> None:
        if options.on_progress is not None:
            options.on_progress(StageEvent(stage=stage, kind=kind, message=message))

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def generate_project(
        self,
        description: str,
        options: Optional[GenerateOptions] = None,
    ) -> GenerateProjectResult:
        """Run intent, architecture, code and context generation in order.

        Args:
            description: Free-text description of the project.
            options: Per-run options.

        Returns:
            The four stage outputs plus the run's token usage.

        Raises:
            SchemaViolationError: If the description is empty or too long.
            GenerationError: If any stage fails. Carries the usage accumulated
                so far and the outputs of the stages that completed.
        """
        options = options or GenerateOptions()
        project = self._build_input(description, options)

        tracker = TokenTracker()
        models = self.config.models_for_tier(options.model_tier)
        limits = self.config.max_tokens
        partial: dict[str, Any] = {}
        run_start = time.monotonic()

        console.print(
            Panel(
                f"[bold bright_cyan]Project generation[/bold bright_cyan]\n"
                f"Project : {escape(project.project_name or '(unnamed)')}\n"
                f"Tier    : {(options.model_tier or self.config.model_tier).value}",
                border_style="bright_cyan",
            )
        )

        stage_name = "intent"
        try:
            self._notify(options, stage_name, "start")
            intent = await intent_stage(models["intent"], limits.intent).run(
                project, self.provider, tracker, self.policy
            )
            partial[stage_name] = intent
            self._notify(options, stage_name, "complete", intent.category.value)

            stage_name = "architecture"
            self._notify(options, stage_name, "start")
            template = self.select_template(project, intent)
            architecture_stage = ArchitectureStage(
                models["architecture"], limits.architecture, self.capabilities
            )
            architecture = await architecture_stage.run(
                ArchitectureInput(intent=intent, template=template),
                self.provider,
                tracker,
                self.policy,
            )
            partial[stage_name] = architecture
            for warning in architecture.warnings:
                print_warning(f"  {escape(warning)}")
            self._notify(options, stage_name, "complete", template.id)

            stage_name = "code"
            self._notify(options, stage_name, "start")
            code = await code_stage(models["code"], limits.code).run(
                CodeInput(architecture=architecture, project=project),
                self.provider,
                tracker,
                self.policy,
            )
            partial[stage_name] = code
            self._notify(options, stage_name, "complete", f"{code.file_count} files")

            stage_name = "context"
            self._notify(options, stage_name, "start")
            context = await context_stage(models["context"], limits.context).run(
                ContextInput(intent=intent, architecture=architecture, code=code, project=project),
                self.provider,
                tracker,
                self.policy,
            )
            partial[stage_name] = context
            self._notify(options, stage_name, "complete")

        except AIAgentError as exc:
            exc.stage = exc.stage or stage_name
            self._notify(options, stage_name, "failed", str(exc))
            print_error(f"Stage '{stage_name}' failed: {escape(str(exc))}")
            self._log_usage(tracker)
            raise GenerationError(
                stage_name, exc, usage=tracker.get_summary(), partial=partial
            ) from exc

        except Exception as exc:
            self._notify(options, stage_name, "failed", f"{type(exc).__name__}: {exc}")
            print_error(f"Stage '{stage_name}' crashed: {escape(type(exc).__name__)}: {escape(str(exc))}")
            self._log_usage(tracker)
            raise GenerationError(
                stage_name, exc, usage=tracker.get_summary(), partial=partial
            ) from exc

        usage = tracker.get_summary()
        self._log_usage(tracker)
        print_summary_table(
            {
                "Category": intent.category.value,
                "Template": architecture.template,
                "Integrations": ", ".join(architecture.integrations.capability_ids()) or "none",
                "Pages": str(len(architecture.pages)),
                "Files": str(code.file_count),
                "Tokens": str(usage.total),
                "Est. cost": f"${usage.estimated_cost:.4f}",
            },
            title="Generation Summary",
        )
        print_success(f"Project generated in {format_duration(time.monotonic() - run_start)}")
        return GenerateProjectResult(
            intent=intent,
            architecture=architecture,
            code=code,
            context=context,
            usage=usage,
        )

    def _log_usage(self, tracker: TokenTracker) -> None:
        if self.config.log_token_usage and len(tracker):
            console.print(f"[dim]{escape(tracker.export_metrics())}[/dim]")


async def generate_project(
    description: str,
    options: Optional[GenerateOptions] = None,
    *,
    config: Optional[Config] = None,
    provider: Optional[LLMProvider] = None,
) -> GenerateProjectResult:
    """Convenience wrapper: build an ``Orchestrator`` and run it once."""
    orchestrator = Orchestrator(config or Config.from_env(), provider=provider)
    return await orchestrator.generate_project(description, options)
