# Overview: Request-body parsing helpers and JSON error rendering for the API routes.

from __future__ import annotations

from datetime import datetime
from typing import Any

from flask import jsonify, request

from .errors import EngineError, ValidationError
from .money import to_paise
from .time_utils import parse_iso_datetime


def json_body() -> dict:
    """Parsed JSON object from the current request, or ValidationError."""
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data


def get_str(data: dict, key: str, *, required: bool = False, default: str | None = None) -> str | None:
    value = data.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{key} is required")
        return default
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    return value.strip()


def get_int(data: dict, key: str, *, required: bool = False, default: int | None = None) -> int | None:
    value = data.get(key)
    if value is None:
        if required:
            raise ValidationError(f"{key} is required")
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise ValidationError(f"{key} must be an integer")


def get_amount_paise(data: dict, *, prefix: str = "amount", required: bool = True) -> int | None:
    """
    Money from a request body: `<prefix>_paise` (integer) wins over `<prefix>`
    (rupees, at most two decimals).
    """
    paise_key = f"{prefix}_paise"
    if data.get(paise_key) is not None:
        return get_int(data, paise_key)
    if data.get(prefix) is not None:
        return to_paise(data[prefix])
    if required:
        raise ValidationError(f"{paise_key} or {prefix} is required")
    return None


def get_datetime(data: dict, key: str, *, required: bool = False) -> datetime | None:
    value = data.get(key)
    if value is None or value == "":
        if required:
            raise ValidationError(f"{key} is required")
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be an ISO-8601 datetime")
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{key} must be an ISO-8601 datetime")


def query_flag(name: str, default: bool = False) -> bool:
    raw = request.args.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def error_response(exc: EngineError) -> Any:
    """JSON body + status for an engine error; never includes a traceback."""
    return jsonify(exc.to_dict()), exc.http_status
