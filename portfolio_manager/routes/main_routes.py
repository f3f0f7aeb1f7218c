"""Dashboard summary across all containers."""

from flask import Blueprint
import logging

from portfolio_manager.extensions import cache, get_services
from portfolio_manager.services import SummaryService
from portfolio_manager.utils.response_helpers import success_response

logger = logging.getLogger(__name__)

main_bp = Blueprint('main', __name__)


@cache.memoize()
def dashboard_summary() -> dict:
    services = get_services()
    return SummaryService.build_summary(
        services.portfolios.get_all(),
        services.retirement_accounts.get_all(),
        services.bank_accounts.get_all(),
    )


def invalidate_dashboard_summary() -> None:
    """Drop the memoized summary; called whenever a collection changes."""
    cache.delete_memoized(dashboard_summary)
    logger.debug("Dashboard summary cache cleared")


@main_bp.route('/dashboard', methods=['GET'])
def dashboard():
    return success_response(data=dashboard_summary())
