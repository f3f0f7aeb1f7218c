"""Small helpers for reading request input in the blueprints."""

from typing import Any, Dict

from flask import request

from portfolio_manager.exceptions import ValidationError

TRUTHY = ('1', 'true', 'yes', 'on')


def read_json_body() -> Dict[str, Any]:
    """Return the JSON object body, or raise ValidationError."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def flag(name: str, default: bool = False) -> bool:
    """Read a boolean query-string or form flag such as ``?preview=true``."""
    value = request.args.get(name)
    if value is None:
        value = request.form.get(name)
    if value is None:
        return default
    return value.strip().lower() in TRUTHY
