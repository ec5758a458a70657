"""Shared pytest fixtures for the AI Agent test suite.

Provides reusable fixtures for:
- A scripted fake LLM provider that replays canned responses
- A retry policy without backoff delays
- Valid stage payloads (intent, architecture, code, context)
- Small capability sets and template metadata
"""

from __future__ import annotations

import textwrap
from typing import Any, Callable, Union

import pytest

from ai_agent.capabilities.models import (
    Capability,
    IntegrationCategory,
    IntegrationSelection,
    TemplateMetadata,
)
from ai_agent.llm_client import LLMRequest, LLMResponse
from ai_agent.pipeline.retry import RetryPolicy
from ai_agent.pipeline.tokens import TokenTracker


# ---------------------------------------------------------------------------
# Fake provider
# ---------------------------------------------------------------------------

Script = Union[str, LLMResponse, BaseException]


class FakeProvider:
    """LLM provider that replays a fixed script of responses.

    Each script entry is either response text (returned as a successful
    ``LLMResponse``), a ready-made ``LLMResponse``, or an exception to raise.
    The last entry repeats once the script runs out.
    """

    def __init__(self, script: list[Script], input_tokens: int = 100, output_tokens: int = 50) -> None:
        assert script, "script must not be empty"
        self.script = list(script)
        self.input_tokens = input_tokens
        self.output_tokens = output_tokens
        self.requests: list[LLMRequest] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    async def complete(self, request: LLMRequest) -> LLMResponse:
        index = min(len(self.requests), len(self.script) - 1)
        self.requests.append(request)
        entry = self.script[index]
        if isinstance(entry, BaseException):
            raise entry
        if isinstance(entry, LLMResponse):
            return entry
        return LLMResponse(
            text=entry,
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
            model=request.model,
        )


@pytest.fixture
def fake_provider() -> Callable[..., FakeProvider]:
    """Factory for ``FakeProvider`` instances.

    Usage::

        def test_stage(fake_provider):
            provider = fake_provider(['{"a": 1}'])
    """
    return FakeProvider


@pytest.fixture
def no_delay_policy() -> RetryPolicy:
    """Three attempts, no sleeping between them."""
    return RetryPolicy(max_attempts=3, base_delay=0.0)


@pytest.fixture
def tracker() -> TokenTracker:
    return TokenTracker(session_id="test-session")


# ---------------------------------------------------------------------------
# Stage payloads
# ---------------------------------------------------------------------------

@pytest.fixture
def intent_payload() -> dict[str, Any]:
    return {
        "category": "saas",
        "confidence": 0.92,
        "reasoning": "Subscription product with user accounts and billing.",
        "suggested_template": "saas",
        "features": ["class booking", "memberships", "instructor schedules"],
        "integrations": {"auth": "clerk", "payments": "stripe", "email": "resend"},
        "complexity": "moderate",
        "key_entities": ["studio", "class", "member"],
    }


@pytest.fixture
def architecture_payload() -> dict[str, Any]:
    return {
        "template": "saas",
        "pages": [
            {"path": "/", "name": "Home", "description": "Landing page", "components": ["Hero"]},
            {"path": "/dashboard", "name": "Dashboard", "description": "Member dashboard"},
        ],
        "components": [
            {"name": "Hero", "type": "section", "description": "Hero banner", "template": "hero-centered"},
            {"name": "ClassCalendar", "type": "feature", "description": "Weekly class calendar"},
        ],
        "routes": [
            {"path": "/api/bookings", "type": "api", "method": "post", "description": "Create a booking"},
        ],
        "integrations": {"auth": "clerk", "payments": "stripe"},
    }


@pytest.fixture
def code_payload() -> dict[str, Any]:
    return {
        "files": [
            {"path": "app/dashboard/page.tsx", "content": "export default function Page() { return null }"},
            {"path": "components/ClassCalendar.tsx", "content": "export function ClassCalendar() {}"},
        ],
        "integration_code": [
            {
                "integration": "payments",
                "files": [{"path": "lib/stripe.ts", "content": "export const stripe = {}", "overwrite": True}],
            }
        ],
    }


@pytest.fixture
def context_text() -> str:
    rules = "You are working on a Next.js 14 App Router project using TypeScript and Tailwind. " * 3
    prompt = "Continue building the booking flow: wire the calendar to the bookings API route. " * 3
    return f"---CURSORRULES---\n{rules}\n---STARTPROMPT---\n{prompt}\n"


# ---------------------------------------------------------------------------
# Capabilities
# ---------------------------------------------------------------------------

@pytest.fixture
def simple_capabilities() -> list[Capability]:
    """A small valid capability set with one requirement and one symmetric conflict."""
    return [
        Capability(id="auth:supabase", group="auth", conflicts=frozenset({"auth:clerk"})),
        Capability(id="auth:clerk", group="auth", conflicts=frozenset({"auth:supabase"})),
        Capability(id="database:supabase", group="database"),
        Capability(id="storage:supabase", group="storage", requires=frozenset({"database:supabase"})),
        Capability(id="payments:stripe", group="payments"),
    ]


@pytest.fixture
def auth_template() -> TemplateMetadata:
    """Template supporting a single auth provider ``a``, required and defaulted."""
    return TemplateMetadata(
        id="minimal",
        supported={IntegrationCategory.AUTH: ("a",)},
        defaults=IntegrationSelection(auth="a"),
        required=(IntegrationCategory.AUTH,),
    )


@pytest.fixture
def descriptor_yaml() -> str:
    return textwrap.dedent("""\
        version: 1
        capabilities:
          - id: "auth:clerk"
            label: Clerk
            group: auth
            env:
              - name: CLERK_SECRET_KEY
          - id: "payments:stripe"
            group: payments
            requires: ["auth:clerk"]
            post_install:
              - stripe login
        """)
