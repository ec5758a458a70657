"""Built-in capability catalogue.

The descriptors below mirror the integrations the scaffolding product ships.
A deployment can replace them with a descriptor file (see ``loader``).
"""

from __future__ import annotations

from typing import Any

from .models import Capability


_CATALOG_VERSION = 1

_CAPABILITIES: list[dict[str, Any]] = [
    # -- auth ---------------------------------------------------------------
    {
        "id": "auth:supabase",
        "label": "Supabase Auth",
        "group": "auth",
        "conflicts": ["auth:clerk"],
        "provides": ["auth", "sessions", "oauth"],
        "env": [
            {"name": "NEXT_PUBLIC_SUPABASE_URL", "description": "Project URL"},
            {"name": "NEXT_PUBLIC_SUPABASE_ANON_KEY", "description": "Public anon key"},
        ],
        "tests": ["auth-login", "auth-session"],
    },
    {
        "id": "auth:clerk",
        "label": "Clerk",
        "group": "auth",
        "conflicts": ["auth:supabase"],
        "provides": ["auth", "sessions", "user-management"],
        "env": [
            {"name": "NEXT_PUBLIC_CLERK_PUBLISHABLE_KEY", "description": "Publishable key"},
            {"name": "CLERK_SECRET_KEY", "description": "Secret key"},
        ],
        "tests": ["auth-login"],
    },
    # -- database -----------------------------------------------------------
    {
        "id": "database:supabase",
        "label": "Supabase Postgres",
        "group": "database",
        "provides": ["database", "realtime"],
        "env": [{"name": "SUPABASE_SERVICE_ROLE_KEY", "description": "Server-side key"}],
        "post_install": ["Run the generated SQL migrations"],
    },
    # -- payments -----------------------------------------------------------
    {
        "id": "payments:stripe",
        "label": "Stripe",
        "group": "payments",
        "conflicts": ["payments:paddle"],
        "provides": ["payments", "subscriptions", "checkout"],
        "env": [
            {"name": "STRIPE_SECRET_KEY", "description": "Secret API key"},
            {"name": "STRIPE_WEBHOOK_SECRET", "description": "Webhook signing secret"},
        ],
        "post_install": ["Register the /api/webhooks/stripe endpoint in the Stripe dashboard"],
        "tests": ["checkout-session"],
    },
    {
        "id": "payments:paddle",
        "label": "Paddle",
        "group": "payments",
        "conflicts": ["payments:stripe"],
        "provides": ["payments", "subscriptions"],
        "env": [{"name": "PADDLE_API_KEY", "description": "API key"}],
    },
    # -- email --------------------------------------------------------------
    {
        "id": "email:resend",
        "label": "Resend",
        "group": "email",
        "provides": ["transactional-email"],
        "env": [{"name": "RESEND_API_KEY", "description": "API key"}],
    },
    {
        "id": "email:sendgrid",
        "label": "SendGrid",
        "group": "email",
        "provides": ["transactional-email"],
        "env": [{"name": "SENDGRID_API_KEY", "description": "API key"}],
    },
    # -- analytics ----------------------------------------------------------
    {
        "id": "analytics:posthog",
        "label": "PostHog",
        "group": "analytics",
        "provides": ["product-analytics", "feature-flags"],
        "env": [{"name": "NEXT_PUBLIC_POSTHOG_KEY", "description": "Project key"}],
    },
    {
        "id": "analytics:plausible",
        "label": "Plausible",
        "group": "analytics",
        "provides": ["web-analytics"],
        "env": [{"name": "NEXT_PUBLIC_PLAUSIBLE_DOMAIN", "description": "Tracked domain"}],
    },
    # -- storage ------------------------------------------------------------
    {
        "id": "storage:uploadthing",
        "label": "UploadThing",
        "group": "storage",
        "provides": ["file-upload"],
        "env": [{"name": "UPLOADTHING_TOKEN", "description": "API token"}],
    },
    {
        "id": "storage:supabase",
        "label": "Supabase Storage",
        "group": "storage",
        "requires": ["database:supabase"],
        "provides": ["file-upload", "object-storage"],
    },
    # -- ai -----------------------------------------------------------------
    {
        "id": "ai:openai",
        "label": "OpenAI",
        "group": "ai",
        "provides": ["chat-completions", "embeddings"],
        "env": [{"name": "OPENAI_API_KEY", "description": "API key"}],
    },
    {
        "id": "ai:anthropic",
        "label": "Anthropic",
        "group": "ai",
        "provides": ["chat-completions"],
        "env": [{"name": "ANTHROPIC_API_KEY", "description": "API key"}],
    },
    # -- search / cms / monitoring ------------------------------------------
    {
        "id": "search:algolia",
        "label": "Algolia",
        "group": "search",
        "provides": ["search"],
        "env": [
            {"name": "NEXT_PUBLIC_ALGOLIA_APP_ID", "description": "Application id"},
            {"name": "ALGOLIA_ADMIN_KEY", "description": "Admin key"},
        ],
        "post_install": ["Run the index sync script once"],
    },
    {
        "id": "cms:sanity",
        "label": "Sanity",
        "group": "cms",
        "provides": ["content-management"],
        "env": [{"name": "NEXT_PUBLIC_SANITY_PROJECT_ID", "description": "Project id"}],
    },
    {
        "id": "monitoring:sentry",
        "label": "Sentry",
        "group": "monitoring",
        "provides": ["error-tracking"],
        "env": [{"name": "SENTRY_DSN", "description": "Project DSN"}],
    },
]


def default_descriptor() -> dict[str, Any]:
    """Return the built-in catalogue in descriptor-file form."""
    return {"version": _CATALOG_VERSION, "capabilities": [dict(c) for c in _CAPABILITIES]}


def default_capabilities() -> list[Capability]:
    """Return the built-in catalogue as validated ``Capability`` models."""
    return [Capability.model_validate(entry) for entry in _CAPABILITIES]


# Provider assumed when model output only says a category is wanted ("auth": true).
DEFAULT_PROVIDERS: dict[str, str] = {
    "auth": "supabase",
    "database": "supabase",
    "payments": "stripe",
    "email": "resend",
    "analytics": "posthog",
    "storage": "uploadthing",
    "ai": "openai",
    "search": "algolia",
    "cms": "sanity",
    "monitoring": "sentry",
}
