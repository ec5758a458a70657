"""Capability descriptor file loading.

A descriptor file is a versioned document listing capability records::

    version: 1
    capabilities:
      - id: auth:supabase
        label: Supabase Auth
        group: auth
        conflicts: [auth:clerk]

JSON and YAML are both accepted; the format is picked from the file suffix.
The loaded data is consumed read-only.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from ..errors import ConfigurationError
from .models import Capability

SUPPORTED_VERSIONS = {1}


def parse_descriptor(data: Any, source: str = "<descriptor>") -> list[Capability]:
    """Turn an already-decoded descriptor document into ``Capability`` models.

    Raises:
        ConfigurationError: On an unsupported version or malformed records.
    """
    if not isinstance(data, dict):
        raise ConfigurationError(f"{source}: descriptor must be a mapping with 'version' and 'capabilities'")

    version = data.get("version")
    if version not in SUPPORTED_VERSIONS:
        raise ConfigurationError(f"{source}: unsupported descriptor version {version!r}")

    entries = data.get("capabilities")
    if not isinstance(entries, list):
        raise ConfigurationError(f"{source}: 'capabilities' must be a list")

    capabilities: list[Capability] = []
    for index, entry in enumerate(entries):
        try:
            capabilities.append(Capability.model_validate(entry))
        except ValidationError as exc:
            first = exc.errors()[0]
            loc = ".".join(str(p) for p in first.get("loc", ()))
            raise ConfigurationError(
                f"{source}: capability #{index} is invalid at '{loc}': {first.get('msg')}"
            ) from exc
    return capabilities


def load_capabilities(path: str | Path) -> list[Capability]:
    """Load capability descriptors from a JSON or YAML file.

    Raises:
        ConfigurationError: If the file is missing, cannot be decoded, or is
            not a valid descriptor.
    """
    file_path = Path(path)
    if not file_path.exists():
        raise ConfigurationError(f"Capability descriptor not found: {file_path}")

    raw = file_path.read_text(encoding="utf-8")
    try:
        if file_path.suffix.lower() in (".yaml", ".yml"):
            data = yaml.safe_load(raw)
        else:
            data = json.loads(raw)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Cannot decode capability descriptor {file_path}: {exc}") from exc

    return parse_descriptor(data, source=str(file_path))
