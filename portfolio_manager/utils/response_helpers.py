"""
Response helpers for consistent API responses.

Every endpoint answers with ``{success, data?, message?}`` or
``{success: false, error, details?, error_code?}``.
"""
from flask import jsonify
from typing import Any, Dict, Optional, Union
import logging

from portfolio_manager.exceptions import (
    NotFoundError,
    PortfolioError,
    RefreshInProgressError,
    StorageError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def success_response(
    data: Any = None,
    message: Optional[str] = None,
    status: int = 200
) -> tuple:
    """
    Create a standardized success response.

    Example:
        return success_response(data=portfolio.to_record(), message='Created', status=201)
    """
    response: Dict[str, Any] = {'success': True}

    if message is not None:
        response['message'] = message

    if data is not None:
        response['data'] = data

    logger.debug(f"Success response: {status} - {message or 'OK'}")
    return jsonify(response), status


def error_response(
    message: str,
    status: int = 400,
    details: Optional[Union[str, Dict, list]] = None,
    error_code: Optional[str] = None
) -> tuple:
    """
    Create a standardized error response.

    Common status codes:
        400 - Bad Request (validation errors, invalid input)
        404 - Not Found
        409 - Conflict (refresh already running)
        413 - Payload Too Large (CSV upload)
        429 - Too Many Requests (rate limited)
        500 - Internal Server Error
        503 - Service Unavailable (storage or quote source failure)
    """
    response: Dict[str, Any] = {
        'error': message,
        'success': False
    }

    if details is not None:
        response['details'] = details

    if error_code is not None:
        response['error_code'] = error_code

    logger.warning(f"Error response: {status} - {message}")
    if details:
        logger.debug(f"Error details: {details}")

    return jsonify(response), status


def validation_error_response(
    field: Optional[str],
    message: str,
    value: Any = None
) -> tuple:
    """Create a 400 response for a field that failed validation."""
    details = {'field': field, 'message': message}
    if value is not None:
        details['value'] = value

    return error_response(
        message=f'Validation error: {field}' if field else message,
        status=400,
        details=details,
        error_code='VALIDATION_ERROR'
    )


def not_found_response(
    resource: str,
    identifier: Optional[Union[str, int]] = None
) -> tuple:
    """
    Create a standardized "not found" error response.

    Example:
        return not_found_response('Portfolio', portfolio_id)
    """
    if identifier is not None:
        message = f'{resource} not found: {identifier}'
        details = {'resource': resource, 'identifier': identifier}
    else:
        message = f'{resource} not found'
        details = {'resource': resource}

    return error_response(
        message=message,
        status=404,
        details=details,
        error_code='NOT_FOUND'
    )


def conflict_response(
    message: str,
    details: Optional[Dict] = None
) -> tuple:
    return error_response(
        message=message,
        status=409,
        details=details,
        error_code='CONFLICT'
    )


def service_unavailable_response(
    service: str,
    message: Optional[str] = None
) -> tuple:
    """
    Create a standardized service unavailable error response.

    Used when the storage backend or the quote source fails.
    """
    if message:
        full_message = f'{service} is temporarily unavailable: {message}'
    else:
        full_message = f'{service} is temporarily unavailable'

    return error_response(
        message=full_message,
        status=503,
        details={'service': service},
        error_code='SERVICE_UNAVAILABLE'
    )


def portfolio_error_response(error: PortfolioError) -> tuple:
    """Map an application exception onto the matching response."""
    if isinstance(error, ValidationError):
        return validation_error_response(error.field, str(error))
    if isinstance(error, NotFoundError):
        return not_found_response(error.resource, error.identifier)
    if isinstance(error, RefreshInProgressError):
        return conflict_response(str(error))
    if isinstance(error, StorageError):
        return service_unavailable_response('Storage', str(error))
    return error_response(str(error), status=500)
