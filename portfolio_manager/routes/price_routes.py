"""Price refresh and quote lookup API."""

from flask import Blueprint, current_app, request
import logging

from portfolio_manager.extensions import get_services, limiter
from portfolio_manager.utils.request_helpers import flag, read_json_body
from portfolio_manager.utils.response_helpers import not_found_response, success_response
from portfolio_manager.validation import clean_symbols, validate_symbol
from portfolio_manager.exceptions import ValidationError

logger = logging.getLogger(__name__)

price_bp = Blueprint('prices', __name__, url_prefix='/prices')


def _refresh_limit() -> str:
    return current_app.config.get('PRICE_REFRESH_RATE_LIMIT', '10 per minute')


@price_bp.route('/refresh', methods=['POST'])
@limiter.limit(_refresh_limit)
def refresh_prices():
    """
    Refresh prices of every portfolio and retirement account.

    Runs in the background and answers 202 right away; ``?wait=true`` runs
    the refresh inline and returns its summary.
    """
    coordinator = get_services().price_sync

    if flag('wait'):
        summary = coordinator.refresh_all()
        return success_response(data=summary.to_dict(), message=summary.progress)

    coordinator.start_refresh()
    logger.info(f"Price refresh requested by {request.remote_addr}")
    return success_response(data=coordinator.status(), message='Price refresh started', status=202)


@price_bp.route('/status', methods=['GET'])
def refresh_status():
    return success_response(data=get_services().price_sync.status())


@price_bp.route('/quote/<symbol>', methods=['GET'])
def get_quote(symbol):
    result = validate_symbol(symbol)
    if not result:
        raise ValidationError(result.error, field='symbol')

    quote = get_services().quotes.get_quote(symbol)
    if quote is None:
        return not_found_response('Quote', symbol.upper())
    return success_response(data=quote.to_dict())


@price_bp.route('/quotes', methods=['POST'])
def get_quotes():
    """Batch lookup: ``{"symbols": [...]}``. Symbols without a quote are omitted."""
    symbols = clean_symbols(read_json_body().get('symbols'))
    quotes = get_services().quotes.get_quotes(symbols)
    return success_response(data={symbol: quote.to_dict() for symbol, quote in quotes.items()})
