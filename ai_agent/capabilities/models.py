"""Pydantic v2 models for capabilities, templates and integration resolution.

Defines the declarative capability descriptors, the fixed-shape integration
selection record, template integration metadata, and the reports produced by
validation and resolution.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class IntegrationCategory(str, Enum):
    """The closed set of integration kinds a generated project can use."""
    AUTH = "auth"
    DATABASE = "database"
    PAYMENTS = "payments"
    EMAIL = "email"
    ANALYTICS = "analytics"
    STORAGE = "storage"
    AI = "ai"
    SEARCH = "search"
    CMS = "cms"
    MONITORING = "monitoring"


# ---------------------------------------------------------------------------
# Capability descriptors
# ---------------------------------------------------------------------------

class EnvVar(BaseModel):
    """An environment variable a capability needs at runtime."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Variable name, e.g. 'STRIPE_SECRET_KEY'")
    description: str = Field(default="")
    required: bool = Field(default=True)


class Capability(BaseModel):
    """A pluggable feature with dependency and conflict metadata.

    Ids follow ``"<category>:<provider>"`` so a resolved integration pair maps
    directly onto its capability.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Unique id, e.g. 'auth:supabase'")
    label: str = Field(default="", description="Human-readable name")
    group: str = Field(default="", description="Grouping, usually the integration category")
    requires: frozenset[str] = Field(default_factory=frozenset)
    conflicts: frozenset[str] = Field(default_factory=frozenset)
    provides: frozenset[str] = Field(default_factory=frozenset)
    env: tuple[EnvVar, ...] = Field(default_factory=tuple)
    post_install: tuple[str, ...] = Field(default_factory=tuple)
    tests: tuple[str, ...] = Field(default_factory=tuple)


class ConflictWarning(BaseModel):
    """Advisory finding. Collected and reported, never raised."""
    model_config = ConfigDict(frozen=True)

    message: str
    capability_id: Optional[str] = None
    other_id: Optional[str] = None

    def __str__(self) -> str:
        return self.message


class ValidationIssue(BaseModel):
    """A fatal problem found while validating a capability set."""
    model_config = ConfigDict(frozen=True)

    kind: str = Field(..., description="'duplicate', 'missing' or 'cycle'")
    message: str
    capability_id: Optional[str] = None
    path: tuple[str, ...] = Field(default_factory=tuple)


class ValidationReport(BaseModel):
    """Outcome of validating a whole capability set in one pass."""

    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[ConflictWarning] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


# ---------------------------------------------------------------------------
# Integration selection
# ---------------------------------------------------------------------------

class IntegrationSelection(BaseModel):
    """At most one provider per known integration category.

    Unknown categories are rejected at construction time.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    auth: Optional[str] = None
    database: Optional[str] = None
    payments: Optional[str] = None
    email: Optional[str] = None
    analytics: Optional[str] = None
    storage: Optional[str] = None
    ai: Optional[str] = None
    search: Optional[str] = None
    cms: Optional[str] = None
    monitoring: Optional[str] = None

    def get(self, category: IntegrationCategory) -> Optional[str]:
        return getattr(self, category.value)

    def pairs(self) -> Iterator[tuple[IntegrationCategory, str]]:
        """Yield ``(category, provider)`` for every selected provider, in category order."""
        for category in IntegrationCategory:
            provider = self.get(category)
            if provider:
                yield category, provider

    def with_provider(self, category: IntegrationCategory, provider: Optional[str]) -> "IntegrationSelection":
        """Return a copy with *category* set to *provider*."""
        return self.model_copy(update={category.value: provider})

    def capability_ids(self) -> list[str]:
        return [f"{category.value}:{provider}" for category, provider in self.pairs()]


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

class TemplateMetadata(BaseModel):
    """Integration declarations of a project template."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Template id, e.g. 'saas'")
    name: str = Field(default="")
    description: str = Field(default="")
    supported: dict[IntegrationCategory, tuple[str, ...]] = Field(
        default_factory=dict, description="Providers the template supports, per category"
    )
    defaults: IntegrationSelection = Field(
        default_factory=IntegrationSelection, description="Fallback provider per category"
    )
    required: tuple[IntegrationCategory, ...] = Field(
        default_factory=tuple, description="Categories every project from this template needs"
    )

    def supports(self, category: IntegrationCategory, provider: str) -> bool:
        return provider in self.supported.get(category, ())


# ---------------------------------------------------------------------------
# Resolution result
# ---------------------------------------------------------------------------

class Downgrade(BaseModel):
    """A requested provider that was replaced by the template default."""
    model_config = ConfigDict(frozen=True)

    category: IntegrationCategory
    requested: str
    resolved: str


class ResolutionResult(BaseModel):
    """A template-compatible integration set plus everything that was adjusted."""

    integrations: IntegrationSelection = Field(default_factory=IntegrationSelection)
    warnings: list[ConflictWarning] = Field(default_factory=list)
    downgrades: list[Downgrade] = Field(default_factory=list)
    dropped: list[tuple[IntegrationCategory, str]] = Field(default_factory=list)
    unresolved: list[str] = Field(
        default_factory=list,
        description="Required categories or capability dependencies that could not be satisfied",
    )
