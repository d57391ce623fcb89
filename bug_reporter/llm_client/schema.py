"""
Structured-output contract with the model.

REPORT_SCHEMA is sent with every generation call and is also what the
response is checked against; nothing about the report shape is inferred
from examples.
"""

from __future__ import annotations

from typing import Any, Dict, List

REPORT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "suggestedTitle": {
            "type": "string",
            "description": "A concise, improved title for the bug report.",
        },
        "summary": {
            "type": "string",
            "description": "A brief summary of the bug and its impact.",
        },
        "stepsToReproduce": {
            "type": "array",
            "items": {"type": "string"},
            "description": "A numbered list of clear, simple steps to reproduce the bug.",
        },
        "expectedBehavior": {
            "type": "string",
            "description": "A clear description of what should have happened.",
        },
        "actualBehavior": {
            "type": "string",
            "description": "A clear description of what actually happened.",
        },
        "impact": {
            "type": "string",
            "description": "The potential impact of this bug (e.g., user experience, data loss, functionality blocked).",
        },
        "environment": {
            "type": "object",
            "properties": {
                "browser": {
                    "type": "string",
                    "description": 'Assumed browser (e.g., Chrome, Firefox). State "Not specified" if unknown.',
                },
                "os": {
                    "type": "string",
                    "description": 'Assumed operating system (e.g., Windows, macOS). State "Not specified" if unknown.',
                },
                "device": {
                    "type": "string",
                    "description": 'Assumed device type (e.g., Desktop, Mobile). State "Not specified" if unknown.',
                },
            },
            "required": ["browser", "os", "device"],
        },
        "suggestedFix": {
            "type": "string",
            "description": "A brief, high-level suggestion for how to fix the bug, if obvious.",
        },
    },
    "required": [
        "suggestedTitle",
        "summary",
        "stepsToReproduce",
        "expectedBehavior",
        "actualBehavior",
        "impact",
        "environment",
    ],
}

NOT_SPECIFIED = "Not specified"

_PY_TYPES = {
    "object": dict,
    "array": list,
    "string": str,
    "boolean": bool,
    "number": (int, float),
    "integer": int,
}


def validate_against_schema(data: Any, schema: Dict[str, Any], path: str = "$") -> List[str]:
    """
    Return the list of violations of `data` against `schema` (empty = valid).

    Covers the subset used by REPORT_SCHEMA: type, properties, required, items.
    """
    errors: List[str] = []
    expected = schema.get("type")
    py_type = _PY_TYPES.get(expected) if expected else None

    if py_type is not None:
        # bool is an int subclass; keep numbers strict
        if isinstance(data, bool) and expected in ("number", "integer"):
            return [f"{path}: expected {expected}, got boolean"]
        if not isinstance(data, py_type):
            return [f"{path}: expected {expected}, got {type(data).__name__}"]

    if expected == "object":
        for key in schema.get("required", []):
            if key not in data or data[key] is None:
                errors.append(f"{path}.{key}: required field missing")
        for key, sub in schema.get("properties", {}).items():
            if key in data and data[key] is not None:
                errors.extend(validate_against_schema(data[key], sub, f"{path}.{key}"))

    if expected == "array" and "items" in schema:
        for i, item in enumerate(data):
            errors.extend(validate_against_schema(item, schema["items"], f"{path}[{i}]"))

    return errors


def to_gemini_schema(schema: Dict[str, Any]) -> Dict[str, Any]:
    """Gemini's responseSchema uses the OpenAPI subset with upper-case type names."""
    out: Dict[str, Any] = {}
    for key, value in schema.items():
        if key == "type":
            out[key] = str(value).upper()
        elif key == "properties":
            out[key] = {name: to_gemini_schema(sub) for name, sub in value.items()}
        elif key == "items":
            out[key] = to_gemini_schema(value)
        else:
            out[key] = value
    return out
