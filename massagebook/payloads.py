"""Request body helpers shared by the blueprints."""
from __future__ import annotations

from typing import Any, Mapping

from flask import request

from .errors import ValidationFailed


def json_body() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationFailed("request body must be a JSON object")
    return payload


def string_field(payload: Mapping[str, Any], field: str, strip: bool = True) -> str:
    """Return ``payload[field]`` as a string, or ``""`` when absent or null."""
    value = payload.get(field)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationFailed(f"{field} must be a string")
    return value.strip() if strip else value
