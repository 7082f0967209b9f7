from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

from nabd.schemas.skill import SkillInputSchema
from nabd.skills.errors import SkillInputError


def _coerce_number(value: Any) -> float | int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            parsed = float(text)
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    return None


def parse_input_against_schema(schema: SkillInputSchema, raw_input: Any) -> dict[str, Any]:
    """Validate raw tool input against a skill's declared properties.

    Non-mapping input is treated as an empty object. Every field problem is
    collected, and a single ``SkillInputError`` carrying all of them is raised
    when any were found.
    """
    base: Mapping[str, Any] = raw_input if isinstance(raw_input, Mapping) else {}
    output: dict[str, Any] = {}
    errors: list[str] = []

    if not schema.additional_properties:
        unknown = [key for key in base if key not in schema.properties]
        if unknown:
            errors.append(f"unsupported input fields: {', '.join(unknown)}")

    for key, prop in schema.properties.items():
        value = base.get(key)
        is_required = key in schema.required

        if value is None:
            if is_required:
                errors.append(f'field "{key}" is required')
            continue

        if prop.type == "string":
            if not isinstance(value, str):
                errors.append(f'field "{key}" must be a string')
                continue
            trimmed = value.strip()
            if not trimmed:
                if is_required:
                    errors.append(f'field "{key}" cannot be empty')
                continue
            output[key] = trimmed

        elif prop.type == "number":
            number = _coerce_number(value)
            if number is None:
                errors.append(f'field "{key}" must be a number')
                continue
            output[key] = number

        elif prop.type == "boolean":
            if not isinstance(value, bool):
                errors.append(f'field "{key}" must be a boolean')
                continue
            output[key] = value

    if errors:
        raise SkillInputError(errors)

    if schema.additional_properties:
        for key, value in base.items():
            if key not in schema.properties:
                output[key] = value

    return output
