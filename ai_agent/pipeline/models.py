"""Pydantic v2 models for the artefacts produced by each pipeline stage.

Every artefact is frozen once produced: later stages read earlier outputs
and build new objects, they never modify them. Field names are snake_case
but camelCase keys from model output are accepted too.

Models answer in their own vocabulary ("saas-app", "medium", "auth": true,
"POST|GET"). The ``mode="before"`` validators map those answers onto the
canonical values. When validation runs with a ``{"fixes": [...]}`` context,
every value that needed more than case or whitespace cleanup is noted there
as ``NORMALIZE_VALUE``.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

from ..capabilities.catalog import DEFAULT_PROVIDERS
from ..capabilities.models import IntegrationSelection
from ..capabilities.templates import list_templates

NORMALIZE_VALUE = "normalize_value"


class _Artifact(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)


# ---------------------------------------------------------------------------
# Normalisation of model vocabulary
# ---------------------------------------------------------------------------

_CATEGORY_SYNONYMS: dict[str, str] = {
    "software-as-a-service": "saas",
    "subscription": "saas",
    "admin": "dashboard",
    "admin-panel": "dashboard",
    "analytics": "dashboard",
    "internal-tool": "dashboard",
    "e-commerce": "ecommerce",
    "ecom": "ecommerce",
    "shop": "ecommerce",
    "store": "ecommerce",
    "online-store": "ecommerce",
    "blogging": "blog",
    "news": "blog",
    "landing": "landing-page",
    "landingpage": "landing-page",
    "marketing": "landing-page",
    "listing": "directory",
    "listings": "directory",
    "catalog": "directory",
}

# Trailing words that do not change the category ("saas-app", "blog-starter").
_CATEGORY_SUFFIXES = (
    "-application", "-app", "-starter", "-template", "-platform", "-website", "-site", "-store", "-shop",
)

_COMPLEXITY_SYNONYMS: dict[str, str] = {
    "low": "simple",
    "easy": "simple",
    "basic": "simple",
    "minimal": "simple",
    "medium": "moderate",
    "mid": "moderate",
    "intermediate": "moderate",
    "average": "moderate",
    "high": "complex",
    "hard": "complex",
    "advanced": "complex",
    "difficult": "complex",
}

_INTEGRATION_KEY_SYNONYMS: dict[str, str] = {
    "db": "database",
    "authentication": "auth",
    "payment": "payments",
    "billing": "payments",
    "mail": "email",
    "emails": "email",
    "llm": "ai",
    "files": "storage",
    "file-storage": "storage",
    "uploads": "storage",
    "error-tracking": "monitoring",
}

_ROUTE_TYPE_SYNONYMS: dict[str, str] = {
    "endpoint": "api",
    "api-route": "api",
    "route-handler": "api",
    "rest": "api",
    "view": "page",
    "screen": "page",
    "page-route": "page",
}

_COMPONENT_TYPE_SYNONYMS: dict[str, str] = {
    "component": "ui",
    "ui-component": "ui",
    "widget": "ui",
    "element": "ui",
    "primitive": "ui",
}

_LAYOUT_SYNONYMS: dict[str, str] = {
    "landing": "default",
    "main": "default",
    "standard": "default",
    "base": "default",
    "root": "default",
    "public": "default",
    "marketing": "default",
}

# Component "template" answers that name no actual template component.
_NEW_COMPONENT = "create-new"
_NEW_COMPONENT_SYNONYMS = frozenset({"existing", "new", "custom", "none", "null", "create", "create-new-component"})

_EMPTY_PROVIDERS = frozenset({"", "none", "null", "n/a", "no", "false"})
_TRUE_PROVIDERS = frozenset({"yes", "true"})
_PROVIDER_RE = re.compile(r"[a-z0-9][a-z0-9_.-]*")
_METHOD_RE = re.compile(r"[A-Za-z]+")


def _normalise_token(value: Any) -> Any:
    """Lower-case and trim enum-like strings ('Moderate ' -> 'moderate')."""
    if isinstance(value, str):
        return value.strip().lower().replace(" ", "-").replace("_", "-")
    return value


def _note(info: ValidationInfo) -> None:
    fixes = info.context.get("fixes") if isinstance(info.context, dict) else None
    if fixes is not None:
        fixes.append(NORMALIZE_VALUE)


def _canonical(value: Any, info: ValidationInfo, synonyms: dict[str, str]) -> Any:
    """Map a model answer through *synonyms*, noting the mapping."""
    token = _normalise_token(value)
    if isinstance(token, str) and token in synonyms:
        _note(info)
        return synonyms[token]
    return token


def canonical_category(token: str) -> str:
    """Return the category or template id *token* most likely means.

    Unknown tokens are returned unchanged.
    """
    if token in _CATEGORY_SYNONYMS:
        return _CATEGORY_SYNONYMS[token]
    stripped = token
    for suffix in _CATEGORY_SUFFIXES:
        if stripped.endswith(suffix) and len(stripped) > len(suffix):
            stripped = stripped[: -len(suffix)]
            break
    return _CATEGORY_SYNONYMS.get(stripped, stripped)


def _category(value: Any, info: ValidationInfo, known: frozenset[str]) -> Any:
    token = _normalise_token(value)
    if not isinstance(token, str) or not token or token in known:
        return token
    mapped = canonical_category(token)
    if mapped != token:
        _note(info)
    return mapped


def _provider(category: str, provider: Any) -> tuple[Optional[Any], bool]:
    """Return ``(provider, normalised)`` for one integration answer."""
    if isinstance(provider, bool):
        return (DEFAULT_PROVIDERS.get(category) if provider else None), True
    if not isinstance(provider, str):
        return provider, False
    cleaned = provider.strip().lower()
    if cleaned in _EMPTY_PROVIDERS:
        return None, cleaned in ("no", "false")
    if cleaned in _TRUE_PROVIDERS:
        return DEFAULT_PROVIDERS.get(category), True
    # "supabase(auth+db)", "stripe (subscriptions)", "resend/sendgrid"
    match = _PROVIDER_RE.match(cleaned)
    if match and match.group(0) != cleaned:
        return match.group(0), True
    return cleaned, False


def _clean_integrations(value: Any, info: ValidationInfo) -> Any:
    """Canonicalise integration keys and providers, dropping empty ones."""
    if not isinstance(value, dict):
        return value
    cleaned: dict[str, Any] = {}
    for key, provider in value.items():
        category = _normalise_token(str(key))
        if category in _INTEGRATION_KEY_SYNONYMS:
            category = _INTEGRATION_KEY_SYNONYMS[category]
            _note(info)
        provider, normalised = _provider(category, provider)
        if normalised:
            _note(info)
        if provider is not None:
            cleaned[category] = provider
    return cleaned


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class ProjectCategory(str, Enum):
    """Kind of application the description asks for."""
    SAAS = "saas"
    DASHBOARD = "dashboard"
    ECOMMERCE = "ecommerce"
    BLOG = "blog"
    LANDING_PAGE = "landing-page"
    DIRECTORY = "directory"
    MARKETPLACE = "marketplace"
    PORTFOLIO = "portfolio"
    OTHER = "other"


class Complexity(str, Enum):
    """Estimated implementation complexity."""
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"


class HTTPMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"


class RouteType(str, Enum):
    PAGE = "page"
    API = "api"


_CATEGORY_IDS = frozenset(category.value for category in ProjectCategory)
_TEMPLATE_IDS = frozenset(template.id for template in list_templates())


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------

class ProjectInput(_Artifact):
    """What the user asked for."""
    description: str = Field(..., min_length=1, max_length=10_000)
    project_name: Optional[str] = Field(default=None)
    template: Optional[str] = Field(default=None, description="Template id chosen by the user")
    vision: Optional[str] = Field(default=None)
    mission: Optional[str] = Field(default=None)


# ---------------------------------------------------------------------------
# Stage 1: intent
# ---------------------------------------------------------------------------

class ProjectIntent(_Artifact):
    """Structured reading of the free-text description."""
    category: ProjectCategory = Field(..., description="Application category")
    confidence: float = Field(..., ge=0.0, le=1.0)
    reasoning: str = Field(default="")
    suggested_template: Optional[str] = Field(default=None)
    features: list[str] = Field(default_factory=list)
    integrations: IntegrationSelection = Field(
        default_factory=IntegrationSelection, description="Requested provider per category"
    )
    complexity: Complexity = Field(default=Complexity.MODERATE)
    key_entities: list[str] = Field(default_factory=list)

    @field_validator("category", mode="before")
    @classmethod
    def _normalise_category(cls, value: Any, info: ValidationInfo) -> Any:
        return _category(value, info, _CATEGORY_IDS)

    @field_validator("complexity", mode="before")
    @classmethod
    def _normalise_complexity(cls, value: Any, info: ValidationInfo) -> Any:
        return _canonical(value, info, _COMPLEXITY_SYNONYMS)

    @field_validator("suggested_template", mode="before")
    @classmethod
    def _normalise_template(cls, value: Any, info: ValidationInfo) -> Any:
        return _category(value, info, _TEMPLATE_IDS) or None

    @field_validator("integrations", mode="before")
    @classmethod
    def _normalise_integrations(cls, value: Any, info: ValidationInfo) -> Any:
        return _clean_integrations(value, info)


# ---------------------------------------------------------------------------
# Stage 2: architecture
# ---------------------------------------------------------------------------

class PageDefinition(_Artifact):
    path: str = Field(..., min_length=1, description="URL path, e.g. '/dashboard'")
    name: str = Field(..., min_length=1)
    description: str = Field(default="")
    components: list[str] = Field(default_factory=list)
    layout: Optional[str] = Field(default=None)

    @field_validator("layout", mode="before")
    @classmethod
    def _normalise_layout(cls, value: Any, info: ValidationInfo) -> Any:
        return _canonical(value, info, _LAYOUT_SYNONYMS) or None


class ComponentDefinition(_Artifact):
    name: str = Field(..., min_length=1)
    type: str = Field(default="ui")
    description: str = Field(default="")
    props: dict[str, str] = Field(default_factory=dict)
    template: str = Field(default=_NEW_COMPONENT, description="Existing template component, or 'create-new'")

    @field_validator("type", mode="before")
    @classmethod
    def _normalise_type(cls, value: Any, info: ValidationInfo) -> Any:
        return _canonical(value, info, _COMPONENT_TYPE_SYNONYMS) or "ui"

    @field_validator("template", mode="before")
    @classmethod
    def _normalise_template(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return _NEW_COMPONENT
        token = _normalise_token(value)
        if token in _NEW_COMPONENT_SYNONYMS or token == "":
            _note(info)
            return _NEW_COMPONENT
        # Template component names are kept as written.
        return value.strip() if isinstance(value, str) else value


class RouteDefinition(_Artifact):
    path: str = Field(..., min_length=1)
    type: RouteType = Field(default=RouteType.PAGE)
    method: Optional[HTTPMethod] = Field(default=None)
    description: str = Field(default="")

    @field_validator("type", mode="before")
    @classmethod
    def _normalise_type(cls, value: Any, info: ValidationInfo) -> Any:
        return _canonical(value, info, _ROUTE_TYPE_SYNONYMS)

    @field_validator("method", mode="before")
    @classmethod
    def _normalise_method(cls, value: Any, info: ValidationInfo) -> Any:
        if not isinstance(value, str):
            return value
        methods = _METHOD_RE.findall(value.upper())
        if not methods:
            return None
        if len(methods) > 1:
            # "POST|GET", "GET, POST": the first method wins.
            _note(info)
        return methods[0]


class ProjectArchitecture(_Artifact):
    """Pages, components and routes of the project, plus its resolved integrations."""
    template: str = Field(..., min_length=1)
    pages: list[PageDefinition] = Field(..., min_length=1)
    components: list[ComponentDefinition] = Field(default_factory=list)
    routes: list[RouteDefinition] = Field(default_factory=list)
    integrations: IntegrationSelection = Field(default_factory=IntegrationSelection)
    warnings: list[str] = Field(default_factory=list, description="Integration resolution warnings")

    @field_validator("template", mode="before")
    @classmethod
    def _normalise_template(cls, value: Any, info: ValidationInfo) -> Any:
        return _category(value, info, _TEMPLATE_IDS)

    @field_validator("integrations", mode="before")
    @classmethod
    def _normalise_integrations(cls, value: Any, info: ValidationInfo) -> Any:
        return _clean_integrations(value, info)


# ---------------------------------------------------------------------------
# Stage 3: code
# ---------------------------------------------------------------------------

class FileDefinition(_Artifact):
    path: str = Field(..., min_length=1, description="Path relative to the project root")
    content: str = Field(...)
    overwrite: bool = Field(default=False, description="Replace the template's file if it exists")


class IntegrationCode(_Artifact):
    integration: str = Field(..., min_length=1, description="Integration the files belong to, e.g. 'payments'")
    files: list[FileDefinition] = Field(default_factory=list)


class GeneratedCode(_Artifact):
    files: list[FileDefinition] = Field(default_factory=list)
    integration_code: list[IntegrationCode] = Field(default_factory=list)

    @property
    def file_count(self) -> int:
        return len(self.files) + sum(len(bundle.files) for bundle in self.integration_code)


# ---------------------------------------------------------------------------
# Stage 4: context
# ---------------------------------------------------------------------------

class ProjectContext(_Artifact):
    """Continuation files handed to the developer's editor."""
    cursorrules: str = Field(..., min_length=100)
    start_prompt: str = Field(..., min_length=100)
