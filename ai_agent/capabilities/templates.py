"""Built-in template integration metadata.

Each template declares which providers it supports per integration category,
which provider to fall back to, and which categories it cannot work without.
"""

from __future__ import annotations

from ..errors import ConfigurationError
from .models import IntegrationCategory as C
from .models import IntegrationSelection, TemplateMetadata


DEFAULT_TEMPLATE = "saas"

_TEMPLATES: dict[str, TemplateMetadata] = {
    "saas": TemplateMetadata(
        id="saas",
        name="SaaS Starter",
        description="Multi-user product with auth, billing and a dashboard",
        supported={
            C.AUTH: ("supabase", "clerk"),
            C.DATABASE: ("supabase",),
            C.PAYMENTS: ("stripe", "paddle"),
            C.EMAIL: ("resend", "sendgrid"),
            C.ANALYTICS: ("posthog", "plausible"),
            C.STORAGE: ("uploadthing", "supabase"),
            C.AI: ("openai", "anthropic"),
            C.MONITORING: ("sentry",),
        },
        defaults=IntegrationSelection(
            auth="supabase", database="supabase", payments="stripe", email="resend", analytics="posthog",
        ),
        required=(C.AUTH, C.PAYMENTS),
    ),
    "dashboard": TemplateMetadata(
        id="dashboard",
        name="Admin Dashboard",
        description="Data-heavy internal tool with tables and charts",
        supported={
            C.AUTH: ("supabase", "clerk"),
            C.DATABASE: ("supabase",),
            C.ANALYTICS: ("posthog", "plausible"),
            C.AI: ("openai", "anthropic"),
            C.MONITORING: ("sentry",),
        },
        defaults=IntegrationSelection(auth="supabase", database="supabase"),
        required=(C.AUTH,),
    ),
    "ecommerce": TemplateMetadata(
        id="ecommerce",
        name="E-commerce Store",
        description="Product catalogue, cart and checkout",
        supported={
            C.AUTH: ("supabase", "clerk"),
            C.DATABASE: ("supabase",),
            C.PAYMENTS: ("stripe",),
            C.EMAIL: ("resend", "sendgrid"),
            C.ANALYTICS: ("posthog", "plausible"),
            C.STORAGE: ("uploadthing", "supabase"),
            C.SEARCH: ("algolia",),
        },
        defaults=IntegrationSelection(payments="stripe", email="resend"),
        required=(C.PAYMENTS,),
    ),
    "blog": TemplateMetadata(
        id="blog",
        name="Blog",
        description="Content site with posts and an optional CMS",
        supported={
            C.CMS: ("sanity",),
            C.ANALYTICS: ("plausible", "posthog"),
            C.EMAIL: ("resend",),
        },
        defaults=IntegrationSelection(analytics="plausible"),
        required=(),
    ),
    "landing-page": TemplateMetadata(
        id="landing-page",
        name="Landing Page",
        description="Marketing page with waitlist capture",
        supported={
            C.EMAIL: ("resend", "sendgrid"),
            C.ANALYTICS: ("plausible", "posthog"),
        },
        defaults=IntegrationSelection(email="resend", analytics="plausible"),
        required=(),
    ),
    "directory": TemplateMetadata(
        id="directory",
        name="Directory",
        description="Searchable listings with submissions",
        supported={
            C.AUTH: ("supabase", "clerk"),
            C.DATABASE: ("supabase",),
            C.SEARCH: ("algolia",),
            C.STORAGE: ("uploadthing", "supabase"),
            C.PAYMENTS: ("stripe",),
        },
        defaults=IntegrationSelection(auth="supabase", database="supabase"),
        required=(C.DATABASE,),
    ),
}


def list_templates() -> list[TemplateMetadata]:
    return list(_TEMPLATES.values())


def get_template(template_id: str) -> TemplateMetadata:
    """Look up a built-in template by id.

    Raises:
        ConfigurationError: If no template has that id.
    """
    try:
        return _TEMPLATES[template_id]
    except KeyError:
        known = ", ".join(sorted(_TEMPLATES))
        raise ConfigurationError(f"Unknown template '{template_id}' (known: {known})") from None
