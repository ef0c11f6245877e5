"""
app/utils/validators.py — Lenient request body parsing and model validation
Bodies arrive as JSON or form-urlencoded. Anything unparseable becomes an
empty dict; emptiness is validated downstream.
"""
from __future__ import annotations

import json
from typing import Any, Optional, Type, TypeVar
from urllib.parse import parse_qsl

from loguru import logger
from pydantic import BaseModel, ValidationError

from app.core.errors import SubmissionValidationError

T = TypeVar("T", bound=BaseModel)


def safe_parse_json(text: str) -> Optional[dict[str, Any]]:
    """
    Safely parse a JSON object. Returns None on failure or when the
    document is not an object (no exception raised).
    """
    text = text.strip()
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        logger.debug(f"JSON parse failed: {exc} | Text: {text[:200]!r}")
        return None
    if not isinstance(data, dict):
        logger.debug(f"JSON body is {type(data).__name__}, expected object")
        return None
    return data


def parse_form(text: str) -> dict[str, str]:
    """form-urlencoded → dict; first value wins for repeated keys."""
    result: dict[str, str] = {}
    for key, value in parse_qsl(text, keep_blank_values=True):
        result.setdefault(key, value)
    return result


def parse_request_body(raw: bytes, content_type: Optional[str]) -> dict[str, Any]:
    """
    Decode a request body by content type, falling back to sniffing a
    leading '{'. Never raises.
    """
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        logger.debug("Request body is not valid UTF-8; treating as empty")
        return {}

    content_type = (content_type or "").lower()
    if "application/json" in content_type:
        return safe_parse_json(text) or {}
    if "application/x-www-form-urlencoded" in content_type:
        return parse_form(text)
    if text.strip().startswith("{"):
        return safe_parse_json(text) or {}
    return parse_form(text)


def parse_model(model_class: Type[T], data: dict[str, Any], context: str = "") -> T:
    """
    Validate a parsed body into a Pydantic model.
    Raises SubmissionValidationError carrying the first error message.
    """
    try:
        return model_class.model_validate(data)
    except ValidationError as exc:
        errors = exc.errors()
        first = errors[0] if errors else {}
        loc = ".".join(str(p) for p in first.get("loc", ()))
        logger.debug(f"Validation failed [{context}]: {errors}")
        raise SubmissionValidationError(
            f"Invalid field {loc!r}: {first.get('msg', 'invalid value')}"
        ) from exc
