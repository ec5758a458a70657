"""Capability graph validation and integration resolution.

Validation checks a capability set for duplicate ids, references to
undeclared ids, and cycles in the ``requires`` relation (all fatal), and for
one-sided conflict declarations (advisory). Resolution turns the integrations
requested for a project into a set the chosen template can actually build.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Mapping, Optional

from rich.markup import escape

from ..errors import ConfigurationError
from ..utils import console
from .catalog import default_capabilities
from .loader import load_capabilities
from .models import (
    Capability,
    ConflictWarning,
    Downgrade,
    IntegrationCategory,
    IntegrationSelection,
    ResolutionResult,
    TemplateMetadata,
    ValidationIssue,
    ValidationReport,
)

_WHITE, _GREY, _BLACK = 0, 1, 2


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def find_cycle(requires: Mapping[str, Iterable[str]]) -> Optional[list[str]]:
    """Return the first cycle in the ``requires`` relation, or ``None``.

    Depth-first search with white/grey/black colouring. The returned path
    runs from the first occurrence of the repeated node to its repetition,
    so it always starts and ends with the same id.
    """
    color = {node: _WHITE for node in requires}
    stack: list[str] = []

    def visit(node: str) -> Optional[list[str]]:
        color[node] = _GREY
        stack.append(node)
        for dep in sorted(requires.get(node, ())):
            state = color.get(dep, _BLACK)
            if state == _GREY:
                return stack[stack.index(dep):] + [dep]
            if state == _WHITE:
                found = visit(dep)
                if found:
                    return found
        stack.pop()
        color[node] = _BLACK
        return None

    for node in requires:
        if color[node] == _WHITE:
            cycle = visit(node)
            if cycle:
                return cycle
    return None


def validate_capabilities(capabilities: Iterable[Capability]) -> ValidationReport:
    """Validate a capability set and report every issue found.

    Never raises. Fatal issues land in ``errors``; one-sided conflict
    declarations land in ``warnings``. Cycles are searched for among the
    declared ids, so a set with duplicates or dangling references still gets
    every fatal issue reported in one pass.
    """
    caps = list(capabilities)
    report = ValidationReport()

    by_id: dict[str, Capability] = {}
    for cap in caps:
        if cap.id in by_id:
            report.errors.append(ValidationIssue(
                kind="duplicate",
                message=f"Duplicate capability id '{cap.id}'",
                capability_id=cap.id,
            ))
            continue
        by_id[cap.id] = cap

    for cap in by_id.values():
        for relation, refs in (("requires", cap.requires), ("conflicts", cap.conflicts)):
            for ref in sorted(refs):
                if ref not in by_id:
                    report.errors.append(ValidationIssue(
                        kind="missing",
                        message=f"Capability '{cap.id}' {relation} undeclared capability '{ref}'",
                        capability_id=cap.id,
                    ))

    declared = {cap_id: [dep for dep in cap.requires if dep in by_id] for cap_id, cap in by_id.items()}
    cycle = find_cycle(declared)
    if cycle:
        report.errors.append(ValidationIssue(
            kind="cycle",
            message=f"Dependency cycle: {' -> '.join(cycle)}",
            capability_id=cycle[0],
            path=tuple(cycle),
        ))

    for cap in by_id.values():
        for other_id in sorted(cap.conflicts):
            other = by_id.get(other_id)
            if other is not None and cap.id not in other.conflicts:
                report.warnings.append(ConflictWarning(
                    message=(
                        f"'{cap.id}' conflicts with '{other_id}' but '{other_id}' "
                        f"does not declare the conflict back"
                    ),
                    capability_id=cap.id,
                    other_id=other_id,
                ))

    return report


# ---------------------------------------------------------------------------
# CapabilityGraph
# ---------------------------------------------------------------------------

class CapabilityGraph:
    """A validated, acyclic view of a capability set.

    Build instances with ``CapabilityGraph.build`` (or ``default`` /
    ``from_file``); the constructor assumes the input is already valid. A
    graph is never mutated after construction.

    Attributes:
        warnings: Advisory findings from validation.
    """

    def __init__(self, capabilities: Iterable[Capability], warnings: Iterable[ConflictWarning] = ()) -> None:
        self._by_id: dict[str, Capability] = {cap.id: cap for cap in capabilities}
        self.warnings: list[ConflictWarning] = list(warnings)

    @classmethod
    def build(cls, capabilities: Iterable[Capability]) -> "CapabilityGraph":
        """Validate *capabilities* and build a graph from them.

        Raises:
            ConfigurationError: On the first fatal issue (duplicate id,
                undeclared reference, or dependency cycle).
        """
        caps = list(capabilities)
        report = validate_capabilities(caps)
        if not report.ok:
            issue = report.errors[0]
            raise ConfigurationError(
                issue.message,
                path=list(issue.path),
                capability_id=issue.capability_id,
            )
        return cls(caps, report.warnings)

    @classmethod
    def default(cls) -> "CapabilityGraph":
        """Graph over the built-in capability catalogue."""
        return cls.build(default_capabilities())

    @classmethod
    def from_file(cls, path: str | Path) -> "CapabilityGraph":
        return cls.build(load_capabilities(path))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def __contains__(self, capability_id: object) -> bool:
        return capability_id in self._by_id

    def __len__(self) -> int:
        return len(self._by_id)

    @property
    def ids(self) -> list[str]:
        return list(self._by_id)

    def get(self, capability_id: str) -> Optional[Capability]:
        return self._by_id.get(capability_id)

    def dependency_order(self) -> list[str]:
        """Return every capability id with its requirements before it."""
        order: list[str] = []
        seen: set[str] = set()

        def visit(cap_id: str) -> None:
            if cap_id in seen:
                return
            seen.add(cap_id)
            for dep in sorted(self._by_id[cap_id].requires):
                visit(dep)
            order.append(cap_id)

        for cap_id in self._by_id:
            visit(cap_id)
        return order

    def closure(self, capability_ids: Iterable[str]) -> set[str]:
        """Return *capability_ids* plus everything they transitively require.

        Ids unknown to the graph are kept as-is.
        """
        result: set[str] = set()
        pending = list(capability_ids)
        while pending:
            cap_id = pending.pop()
            if cap_id in result:
                continue
            result.add(cap_id)
            cap = self._by_id.get(cap_id)
            if cap is not None:
                pending.extend(cap.requires - result)
        return result

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, requested: IntegrationSelection, template: TemplateMetadata) -> ResolutionResult:
        """Resolve *requested* integrations against *template*.

        For each requested provider: keep it if the template supports it,
        else substitute the template default for that category, else drop it.
        Then fill every template-required category that is still empty from
        the template default. Required categories without a default, and
        capability dependencies that cannot be met, are reported in
        ``unresolved``. Nothing here raises.
        """
        result = ResolutionResult()
        resolved: dict[IntegrationCategory, str] = {}

        for category, provider in requested.pairs():
            if template.supports(category, provider):
                resolved[category] = provider
                continue

            default = template.defaults.get(category)
            if default:
                resolved[category] = default
                result.downgrades.append(Downgrade(category=category, requested=provider, resolved=default))
                result.warnings.append(ConflictWarning(
                    message=(
                        f"{category.value}: '{provider}' is not supported by template "
                        f"'{template.id}', using default '{default}'"
                    ),
                    capability_id=f"{category.value}:{provider}",
                    other_id=f"{category.value}:{default}",
                ))
                console.print(
                    f"  [dim]{escape(category.value)}: {escape(provider)} -> {escape(default)} "
                    f"(template default)[/dim]"
                )
            else:
                result.dropped.append((category, provider))
                result.warnings.append(ConflictWarning(
                    message=(
                        f"{category.value}: '{provider}' is not supported by template "
                        f"'{template.id}' and there is no default; dropped"
                    ),
                    capability_id=f"{category.value}:{provider}",
                ))
                console.print(
                    f"  [yellow]{escape(category.value)}: {escape(provider)} dropped "
                    f"(unsupported, no fallback)[/yellow]"
                )

        for category in template.required:
            if category in resolved:
                continue
            default = template.defaults.get(category)
            if default:
                resolved[category] = default
            else:
                result.unresolved.append(category.value)
                result.warnings.append(ConflictWarning(
                    message=(
                        f"{category.value} is required by template '{template.id}' "
                        f"but no provider was requested and there is no default"
                    ),
                ))

        self._check_resolved(resolved, template, result)
        result.integrations = IntegrationSelection(**{c.value: p for c, p in resolved.items()})
        return result

    def _check_resolved(
        self,
        resolved: dict[IntegrationCategory, str],
        template: TemplateMetadata,
        result: ResolutionResult,
    ) -> None:
        """Check resolved providers against capability requires/conflicts.

        A missing requirement is filled in when its category is still empty
        and the template supports it; otherwise it is reported as unresolved.
        Mutates *resolved* and *result*.
        """
        active = {f"{c.value}:{p}" for c, p in resolved.items()}

        for cap_id in sorted(active):
            cap = self._by_id.get(cap_id)
            if cap is None:
                continue
            for dep in sorted(cap.requires):
                if dep in active:
                    continue
                category_name, _, provider = dep.partition(":")
                try:
                    category = IntegrationCategory(category_name)
                except ValueError:
                    category = None
                if category is not None and category not in resolved and template.supports(category, provider):
                    resolved[category] = provider
                    active.add(dep)
                    console.print(f"  [dim]{escape(dep)} added (required by {escape(cap_id)})[/dim]")
                    continue
                result.unresolved.append(f"{cap_id} requires {dep}")
                result.warnings.append(ConflictWarning(
                    message=f"'{cap_id}' requires '{dep}', which cannot be added for template '{template.id}'",
                    capability_id=cap_id,
                    other_id=dep,
                ))

        reported: set[frozenset[str]] = set()
        for cap_id in sorted(active):
            cap = self._by_id.get(cap_id)
            if cap is None:
                continue
            for other_id in sorted(cap.conflicts & active):
                pair = frozenset((cap_id, other_id))
                if pair in reported:
                    continue
                reported.add(pair)
                result.warnings.append(ConflictWarning(
                    message=f"'{cap_id}' conflicts with '{other_id}'; choose one",
                    capability_id=cap_id,
                    other_id=other_id,
                ))


def resolve(
    capabilities: Iterable[Capability],
    requested: IntegrationSelection,
    template: TemplateMetadata,
) -> ResolutionResult:
    """Validate *capabilities* into a fresh graph and resolve *requested* against *template*.

    Raises:
        ConfigurationError: If the capability set itself is invalid.
    """
    return CapabilityGraph.build(capabilities).resolve(requested, template)
