"""AI Agent: turns a project description into intent, architecture, code and editor context.

Usage::

    from ai_agent import Config, GenerateOptions, Orchestrator

    orchestrator = Orchestrator(Config.from_env())
    result = await orchestrator.generate_project("A CRM for dog groomers", GenerateOptions(template="saas"))
"""

from ai_agent.config import Config, ModelTier
from ai_agent.errors import (
    AIAgentError,
    ConfigurationError,
    GenerationError,
    ProviderError,
    ResponseUnparseableError,
    SchemaViolationError,
)
from ai_agent.orchestrator import (
    GenerateOptions,
    GenerateProjectResult,
    Orchestrator,
    StageEvent,
    generate_project,
)

__version__ = "0.1.0"

__all__ = [
    "Config",
    "ModelTier",
    "AIAgentError",
    "ConfigurationError",
    "GenerationError",
    "ProviderError",
    "ResponseUnparseableError",
    "SchemaViolationError",
    "GenerateOptions",
    "GenerateProjectResult",
    "Orchestrator",
    "StageEvent",
    "generate_project",
]
