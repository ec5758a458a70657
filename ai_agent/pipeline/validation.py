"""Schema validation of parsed stage output.

Wraps Pydantic validation so a stage gets either a typed value or a single
``SchemaViolationError`` naming the first offending field.
"""

from __future__ import annotations

from typing import Any, Generic, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from ..errors import SchemaViolationError

M = TypeVar("M", bound=BaseModel)


def _format_loc(loc: tuple[Any, ...]) -> str:
    parts: list[str] = []
    for item in loc:
        if isinstance(item, int):
            parts.append(f"[{item}]")
        else:
            parts.append(f".{item}" if parts else str(item))
    return "".join(parts) or "<root>"


class SchemaValidator(Generic[M]):
    """Validates candidate values against one Pydantic model."""

    def __init__(self, model: Type[M]) -> None:
        self.model = model

    def validate(self, value: Any, *, stage: Optional[str] = None, fixes: Optional[list[str]] = None) -> M:
        """Return *value* as an instance of the model.

        When *fixes* is given, the model's normalising validators append the
        name of every value they had to map onto its canonical form.

        Raises:
            SchemaViolationError: With the path and message of the first
                error, e.g. ``pages[0].path: Field required``.
        """
        try:
            return self.model.model_validate(value, context=None if fixes is None else {"fixes": fixes})
        except ValidationError as exc:
            errors = exc.errors()
            first = errors[0]
            field_path = _format_loc(tuple(first.get("loc", ())))
            extra = f" (+{len(errors) - 1} more)" if len(errors) > 1 else ""
            raise SchemaViolationError(
                f"{self.model.__name__} invalid at {field_path}: {first.get('msg')}{extra}",
                field_path=field_path,
                stage=stage,
            ) from exc
