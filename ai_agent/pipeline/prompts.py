"""Prompt templates for the generation stages.

Prompts are Jinja2 templates kept in this module so prompt building never
touches the filesystem. Each stage has a system prompt (static instructions
and output format) and a user prompt (the stage input).
"""

from __future__ import annotations

import textwrap
from typing import Any

from jinja2 import DictLoader, Environment, StrictUndefined

CURSORRULES_DELIMITER = "---CURSORRULES---"
STARTPROMPT_DELIMITER = "---STARTPROMPT---"

_JSON_ONLY = textwrap.dedent("""\
    Respond with a single JSON object and nothing else: no markdown fences,
    no commentary before or after it. Use double-quoted keys and strings.
    """)

_INTEGRATION_CATEGORIES = "auth, database, payments, email, analytics, storage, ai, search, cms, monitoring"

_TEMPLATES: dict[str, str] = {
    # -- intent ---------------------------------------------------------------
    "intent.system": textwrap.dedent("""\
        You analyse web application ideas and classify them.

        Return JSON with exactly these keys:
        - "category": one of saas, dashboard, ecommerce, blog, landing-page, directory, marketplace, portfolio, other
        - "confidence": number between 0 and 1
        - "reasoning": one or two sentences
        - "suggested_template": one of {{ templates | join(", ") }}
        - "features": list of short feature names
        - "integrations": object mapping a category ({{ categories }}) to a provider name; omit categories that are not needed
        - "complexity": one of simple, moderate, complex
        - "key_entities": list of the main domain nouns

        {{ json_only }}"""),
    "intent.user": textwrap.dedent("""\
        {% if project_name %}Project name: {{ project_name }}
        {% endif %}{% if vision %}Vision: {{ vision }}
        {% endif %}{% if mission %}Mission: {{ mission }}
        {% endif %}Description:
        {{ description }}"""),
    # -- architecture -----------------------------------------------------------
    "architecture.system": textwrap.dedent("""\
        You design the page/component/route architecture of a Next.js project
        built from the "{{ template.id }}" template ({{ template.description }}).

        Integrations the template supports:
        {% for category, providers in supported %}
        - {{ category }}: {{ providers | join(", ") }}
        {% else %}
        - none
        {% endfor %}

        Return JSON with exactly these keys:
        - "template": "{{ template.id }}"
        - "pages": list of {"path", "name", "description", "components": [names], "layout"}; at least one page
        - "components": list of {"name", "type", "description", "props": {name: type}, "template"}; "template" is an existing template component or "create-new"
        - "routes": list of {"path", "type": "page" or "api", "method" (api routes only), "description"}
        - "integrations": object mapping category to provider, using only supported providers

        {{ json_only }}"""),
    "architecture.user": textwrap.dedent("""\
        Category: {{ intent.category.value }} (complexity: {{ intent.complexity.value }})
        Features:
        {% for feature in intent.features %}
        - {{ feature }}
        {% endfor %}
        Key entities: {{ intent.key_entities | join(", ") or "none" }}
        Requested integrations: {{ requested or "none" }}
        {% if intent.reasoning %}Notes: {{ intent.reasoning }}
        {% endif %}"""),
    # -- code -------------------------------------------------------------------
    "code.system": textwrap.dedent("""\
        You write the custom source files for a Next.js (App Router, TypeScript,
        Tailwind) project generated from the "{{ template }}" template.
        Only write files the template does not already provide, unless a file
        must replace the template's version (then set "overwrite": true).

        Return JSON with exactly these keys:
        - "files": list of {"path", "content", "overwrite"}
        - "integration_code": list of {"integration": category, "files": [{"path", "content", "overwrite"}]}, one entry per active integration that needs glue code

        {{ json_only }}"""),
    "code.user": textwrap.dedent("""\
        {% if project_name %}Project: {{ project_name }}
        {% endif %}Pages:
        {% for page in architecture.pages %}
        - {{ page.path }} ({{ page.name }}): {{ page.description }}{% if page.components %} [{{ page.components | join(", ") }}]{% endif %}

        {% endfor %}
        Components to create:
        {% for component in custom_components %}
        - {{ component.name }} ({{ component.type }}): {{ component.description }}
        {% else %}
        - none
        {% endfor %}
        Routes:
        {% for route in architecture.routes %}
        - {% if route.method %}{{ route.method.value }} {% endif %}{{ route.path }} ({{ route.type.value }}): {{ route.description }}
        {% else %}
        - none
        {% endfor %}
        Integrations: {{ integrations or "none" }}"""),
    # -- context ----------------------------------------------------------------
    "context.system": textwrap.dedent("""\
        You write two files that let a developer continue work on a generated
        project in an AI-assisted editor.

        FILE 1, .cursorrules: project conventions, stack, directory layout,
        integration notes, and rules the assistant must follow.
        FILE 2, START_PROMPT.md: a first prompt the developer can paste to
        continue building, listing what exists and the next steps.

        Output both files using exactly this format and nothing else:

        {{ cursorrules_delimiter }}
        [.cursorrules content]
        {{ startprompt_delimiter }}
        [START_PROMPT.md content]"""),
    "context.user": textwrap.dedent("""\
        Project: {{ project_name }}
        Description: {{ description }}
        Template: {{ architecture.template }}
        Features: {{ intent.features | join(", ") or "none" }}

        Architecture:
        {{ architecture_summary }}

        Integrations:
        {{ integrations_list }}

        Generated files:
        {% for path in file_paths %}
        - {{ path }}
        {% else %}
        - none
        {% endfor %}"""),
}

_env = Environment(
    loader=DictLoader(_TEMPLATES),
    autoescape=False,
    undefined=StrictUndefined,
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=False,
)

_STATIC_CONTEXT: dict[str, Any] = {
    "json_only": _JSON_ONLY.strip(),
    "categories": _INTEGRATION_CATEGORIES,
    "cursorrules_delimiter": CURSORRULES_DELIMITER,
    "startprompt_delimiter": STARTPROMPT_DELIMITER,
}


def render_prompt(name: str, **context: Any) -> str:
    """Render prompt template *name* (e.g. ``"intent.system"``) with *context*."""
    return _env.get_template(name).render(**_STATIC_CONTEXT, **context).strip()


def template_names() -> list[str]:
    return sorted(_TEMPLATES)
