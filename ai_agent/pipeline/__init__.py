"""LLM-backed generation pipeline.

Stage building blocks (JSON repair, retry, token tracking, schema
validation, prompts) and the four concrete stages.

Usage::

    from ai_agent.pipeline import TokenTracker, intent_stage, repair

    result = repair('{name: "demo",}')
    print(result.value, result.fixes)
"""

from ai_agent.pipeline.json_repair import RepairResult, repair
from ai_agent.pipeline.models import (
    GeneratedCode,
    ProjectArchitecture,
    ProjectContext,
    ProjectInput,
    ProjectIntent,
)
from ai_agent.pipeline.retry import RetryPolicy, StageOutcome, classify_error, with_retry
from ai_agent.pipeline.stage import PipelineStage, Prompt, parse_json_response
from ai_agent.pipeline.stages import (
    ArchitectureInput,
    ArchitectureStage,
    CodeInput,
    ContextInput,
    code_stage,
    context_stage,
    intent_stage,
    parse_context_response,
)
from ai_agent.pipeline.tokens import StageUsage, TokenSummary, TokenTracker
from ai_agent.pipeline.validation import SchemaValidator

__all__ = [
    "repair",
    "RepairResult",
    "GeneratedCode",
    "ProjectArchitecture",
    "ProjectContext",
    "ProjectInput",
    "ProjectIntent",
    "RetryPolicy",
    "StageOutcome",
    "classify_error",
    "with_retry",
    "PipelineStage",
    "Prompt",
    "parse_json_response",
    "ArchitectureInput",
    "ArchitectureStage",
    "CodeInput",
    "ContextInput",
    "code_stage",
    "context_stage",
    "intent_stage",
    "parse_context_response",
    "StageUsage",
    "TokenSummary",
    "TokenTracker",
    "SchemaValidator",
]
