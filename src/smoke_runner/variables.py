"""Resolution of ``$name.path`` references between scenario steps.

A leading ``$$`` escapes the reference syntax: ``"$$HOME"`` resolves to the
literal ``"$HOME"``.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from .errors import EvaluationError
from .models import Step

_REFERENCE = re.compile(r"^\$([A-Za-z_]\w*)((?:\.\w+)*)$")
_RESOLVED_FIELDS = ("url", "text", "keys", "args")


def resolve_value(value: Any, variables: Mapping[str, Any]) -> Any:
    """Replace variable references inside ``value``, recursing into containers."""

    if isinstance(value, str):
        if value.startswith("$$"):
            return value[1:]
        match = _REFERENCE.match(value)
        if not match:
            return value
        name, path = match.group(1), match.group(2)
        if name not in variables:
            raise EvaluationError(f"Undefined variable ${name}")
        return _walk(variables[name], path.split(".")[1:], value)
    if isinstance(value, list):
        return [resolve_value(item, variables) for item in value]
    if isinstance(value, dict):
        return {key: resolve_value(item, variables) for key, item in value.items()}
    return value


def resolve_step(step: Step, variables: Mapping[str, Any]) -> Step:
    """Return a copy of ``step`` with its payload references resolved."""

    updates: dict[str, Any] = {}
    for field in _RESOLVED_FIELDS:
        current = getattr(step, field)
        resolved = resolve_value(current, variables)
        if field != "args" and resolved is not None:
            resolved = str(resolved)
        if resolved is not current:
            updates[field] = resolved
    if step.has_expectation:
        updates["expected"] = resolve_value(step.expected, variables)
    if not updates:
        return step
    return step.model_copy(update=updates)


def _walk(value: Any, parts: list[str], reference: str) -> Any:
    for part in parts:
        if isinstance(value, Mapping) and part in value:
            value = value[part]
        elif isinstance(value, list) and part.isdigit() and int(part) < len(value):
            value = value[int(part)]
        else:
            raise EvaluationError(f"Cannot resolve {reference}: no '{part}' in {value!r}")
    return value
