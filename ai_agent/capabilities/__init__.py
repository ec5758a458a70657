"""Capability catalogue, template metadata, and the capability graph.

Usage::

    from ai_agent.capabilities import CapabilityGraph, IntegrationSelection, get_template

    graph = CapabilityGraph.default()
    result = graph.resolve(IntegrationSelection(auth="clerk"), get_template("saas"))
    print(result.integrations, result.warnings)
"""

from ai_agent.capabilities.graph import (
    CapabilityGraph,
    find_cycle,
    resolve,
    validate_capabilities,
)
from ai_agent.capabilities.loader import load_capabilities
from ai_agent.capabilities.models import (
    Capability,
    ConflictWarning,
    IntegrationCategory,
    IntegrationSelection,
    ResolutionResult,
    TemplateMetadata,
    ValidationReport,
)
from ai_agent.capabilities.templates import DEFAULT_TEMPLATE, get_template, list_templates

__all__ = [
    "CapabilityGraph",
    "Capability",
    "ConflictWarning",
    "IntegrationCategory",
    "IntegrationSelection",
    "ResolutionResult",
    "TemplateMetadata",
    "ValidationReport",
    "DEFAULT_TEMPLATE",
    "find_cycle",
    "get_template",
    "list_templates",
    "load_capabilities",
    "resolve",
    "validate_capabilities",
]
