"""
Input validation utilities.

Centralized validation logic with clear error messages. The ``validate_*``
checks return a ValidationResult; the ``clean_*`` helpers turn a JSON payload
into model keyword arguments and raise ValidationError on the first problem.
"""

from typing import Any, Dict, Iterable, List, Optional
import re
import logging

from portfolio_manager.exceptions import ValidationError
from portfolio_manager.models import (
    BANK_ACCOUNT_TYPES,
    HOLDING_TYPES,
    RETIREMENT_ACCOUNT_TYPES,
    RETIREMENT_HOLDING_TYPES,
    BankAccount,
    Holding,
    Portfolio,
    RetirementAccount,
    RetirementHolding,
)

logger = logging.getLogger(__name__)

SYMBOL_PATTERN = r'^[A-Za-z0-9.\-^=]+$'


class ValidationResult:
    """Result of a validation check"""

    def __init__(self, is_valid: bool, error: Optional[str] = None):
        self.is_valid = is_valid
        self.error = error

    def __bool__(self):
        return self.is_valid


def validate_number(
    value: Any,
    field_name: str,
    min_value: Optional[float] = None,
    max_value: Optional[float] = None,
    allow_zero: bool = True
) -> ValidationResult:
    """
    Validate that value is a valid number.

    Args:
        value: Value to validate
        field_name: Field name for error messages
        min_value: Minimum allowed value (inclusive)
        max_value: Maximum allowed value (inclusive)
        allow_zero: Whether zero is allowed

    Returns:
        ValidationResult
    """
    if isinstance(value, bool):
        return ValidationResult(False, f"{field_name} must be a number")
    try:
        num = float(value)
    except (ValueError, TypeError):
        return ValidationResult(False, f"{field_name} must be a number")

    if num != num or num in (float('inf'), float('-inf')):
        return ValidationResult(False, f"{field_name} must be a finite number")

    if not allow_zero and num == 0:
        return ValidationResult(False, f"{field_name} cannot be zero")

    if min_value is not None and num < min_value:
        return ValidationResult(
            False,
            f"{field_name} must be at least {min_value}"
        )

    if max_value is not None and num > max_value:
        return ValidationResult(
            False,
            f"{field_name} must be at most {max_value}"
        )

    return ValidationResult(True)


def validate_string(
    value: Any,
    field_name: str,
    min_length: Optional[int] = None,
    max_length: Optional[int] = None,
    pattern: Optional[str] = None,
    required: bool = True
) -> ValidationResult:
    """
    Validate string value.

    Args:
        value: Value to validate
        field_name: Field name for error messages
        min_length: Minimum string length
        max_length: Maximum string length
        pattern: Regex pattern to match
        required: Whether field is required

    Returns:
        ValidationResult
    """
    if value is not None and not isinstance(value, str):
        return ValidationResult(False, f"{field_name} must be text")

    str_value = (value or '').strip()

    if not str_value and required:
        return ValidationResult(False, f"{field_name} is required")

    if not str_value:
        return ValidationResult(True)

    if min_length is not None and len(str_value) < min_length:
        return ValidationResult(
            False,
            f"{field_name} must be at least {min_length} characters"
        )

    if max_length is not None and len(str_value) > max_length:
        return ValidationResult(
            False,
            f"{field_name} must be at most {max_length} characters"
        )

    if pattern and not re.match(pattern, str_value):
        return ValidationResult(
            False,
            f"{field_name} format is invalid"
        )

    return ValidationResult(True)


def validate_choice(
    value: Any,
    field_name: str,
    choices: Iterable[Any]
) -> ValidationResult:
    """Validate value is in allowed choices."""
    choices = list(choices)
    if value not in choices:
        choices_str = ', '.join(str(c) for c in choices)
        return ValidationResult(
            False,
            f"{field_name} must be one of: {choices_str}"
        )

    return ValidationResult(True)


def validate_symbol(symbol: Any, required: bool = True) -> ValidationResult:
    """Validate a ticker symbol (letters, digits and . - ^ =)."""
    return validate_string(symbol, "Symbol", max_length=20, pattern=SYMBOL_PATTERN, required=required)


def validate_percentage(value: Any, field_name: str = "Percentage") -> ValidationResult:
    """Validate percentage value (0-100)"""
    return validate_number(value, field_name, min_value=0, max_value=100)


def validate_shares_amount(shares: Any) -> ValidationResult:
    """Validate number of shares"""
    return validate_number(shares, "Shares", min_value=0, allow_zero=False)


def validate_amount(value: Any, field_name: str) -> ValidationResult:
    """Validate a non-negative money amount"""
    return validate_number(value, field_name, min_value=0, max_value=1_000_000_000_000)


# Payload cleaning

def _label(name: str) -> str:
    return name.replace('_', ' ').capitalize()


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _ensure(result: ValidationResult, field: str) -> None:
    if not result:
        raise ValidationError(result.error, field=field)


def _clean_value(name: str, kind: Any, value: Any) -> Any:
    label = _label(name)

    if isinstance(kind, tuple):
        _ensure(validate_choice(value, label, kind), name)
        return value
    if kind == 'text':
        _ensure(validate_string(value, label, max_length=200, required=False), name)
        return (value or '').strip()
    if kind == 'required_text':
        _ensure(validate_string(value, label, max_length=200), name)
        return value.strip()
    if kind == 'optional_text':
        if _blank(value):
            return None
        _ensure(validate_string(value, label, max_length=200, required=False), name)
        return value.strip()
    if kind == 'symbol':
        _ensure(validate_symbol(value), name)
        return value.strip().upper()
    if kind == 'optional_symbol':
        if _blank(value):
            return None
        _ensure(validate_symbol(value), name)
        return value.strip().upper()
    if kind == 'shares':
        _ensure(validate_shares_amount(value), name)
        return float(value)
    if kind == 'amount':
        _ensure(validate_amount(value, label), name)
        return float(value)
    if kind == 'optional_amount':
        if _blank(value):
            return None
        _ensure(validate_amount(value, label), name)
        return float(value)
    if kind == 'balance':
        _ensure(validate_number(value, label), name)
        return float(value)
    if kind == 'percentage':
        if _blank(value):
            return None
        _ensure(validate_percentage(value, label), name)
        return float(value)
    raise ValueError(f"Unknown field kind: {kind}")


def clean_payload(data: Any, model: type, rules: Dict[str, Any],
                  required: Iterable[str] = (), partial: bool = False) -> Dict[str, Any]:
    """
    Validate ``data`` against ``rules`` and return model keyword arguments.

    Keys are accepted in snake_case or in the model's record spelling
    (``avgCost``). Unknown keys are ignored. With ``partial`` only the
    supplied fields are checked, as for an update.
    """
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")

    cleaned = {}
    for name, kind in rules.items():
        keys = (name, model.record_key(name))
        key = next((k for k in keys if k in data), None)
        if key is None:
            if name in required and not partial:
                raise ValidationError(f"{_label(name)} is required", field=name)
            continue
        cleaned[name] = _clean_value(name, kind, data[key])

    if partial and not cleaned:
        raise ValidationError("No updatable fields supplied")
    return cleaned


HOLDING_RULES = {
    'symbol': 'symbol',
    'name': 'text',
    'type': HOLDING_TYPES,
    'shares': 'shares',
    'avg_cost': 'amount',
    'current_price': 'amount',
}

RETIREMENT_HOLDING_RULES = {
    'name': 'required_text',
    'ticker': 'optional_symbol',
    'type': RETIREMENT_HOLDING_TYPES,
    'shares': 'amount',
    'current_value': 'amount',
}

PORTFOLIO_RULES = {
    'name': 'required_text',
    'broker': 'text',
    'account_number': 'optional_text',
}

RETIREMENT_ACCOUNT_RULES = {
    'name': 'required_text',
    'type': RETIREMENT_ACCOUNT_TYPES,
    'provider': 'text',
    'account_number': 'optional_text',
    'employer': 'optional_text',
    'current_balance': 'optional_amount',
    'contribution_ytd': 'amount',
    'employer_match_ytd': 'optional_amount',
    'vesting_percent': 'percentage',
}

BANK_ACCOUNT_RULES = {
    'name': 'required_text',
    'type': BANK_ACCOUNT_TYPES,
    'bank_name': 'text',
    'account_number': 'optional_text',
    'balance': 'balance',
    'interest_rate': 'percentage',
}


def clean_holding(data: Any, partial: bool = False) -> Dict[str, Any]:
    cleaned = clean_payload(data, Holding, HOLDING_RULES, required=('symbol', 'shares'), partial=partial)
    if not partial:
        cleaned.setdefault('name', '')
        cleaned['name'] = cleaned['name'] or cleaned['symbol']
        # Same default as a CSV row without a price column
        cleaned.setdefault('current_price', cleaned.get('avg_cost', 0.0))
    return cleaned


def clean_retirement_holding(data: Any, partial: bool = False) -> Dict[str, Any]:
    return clean_payload(data, RetirementHolding, RETIREMENT_HOLDING_RULES, required=('name',), partial=partial)


def clean_portfolio(data: Any, partial: bool = False) -> Dict[str, Any]:
    return clean_payload(data, Portfolio, PORTFOLIO_RULES, required=('name',), partial=partial)


def clean_retirement_account(data: Any, partial: bool = False) -> Dict[str, Any]:
    return clean_payload(data, RetirementAccount, RETIREMENT_ACCOUNT_RULES, required=('name',), partial=partial)


def clean_bank_account(data: Any, partial: bool = False) -> Dict[str, Any]:
    return clean_payload(data, BankAccount, BANK_ACCOUNT_RULES, required=('name',), partial=partial)


def clean_symbols(values: Any) -> List[str]:
    """Validate a list of ticker symbols, returning them upper-cased."""
    if not isinstance(values, list):
        raise ValidationError("symbols must be a list", field='symbols')
    symbols = []
    for value in values:
        _ensure(validate_symbol(value), 'symbols')
        symbols.append(value.strip().upper())
    return symbols
