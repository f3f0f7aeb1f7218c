"""Retirement account API."""

from flask import Blueprint
import logging

from portfolio_manager.extensions import get_services
from portfolio_manager.models import RetirementAccount, RetirementHolding
from portfolio_manager.utils.request_helpers import read_json_body
from portfolio_manager.utils.response_helpers import success_response
from portfolio_manager.validation import clean_retirement_account, clean_retirement_holding

logger = logging.getLogger(__name__)

retirement_bp = Blueprint('retirement', __name__, url_prefix='/retirement')


def account_payload(account: RetirementAccount) -> dict:
    data = account.to_record()
    data['value'] = account.value
    return data


@retirement_bp.route('', methods=['GET'])
def list_accounts():
    accounts = get_services().retirement_accounts.get_all()
    return success_response(data=[account_payload(a) for a in accounts])


@retirement_bp.route('', methods=['POST'])
def create_account():
    fields = clean_retirement_account(read_json_body())
    account = get_services().retirement_accounts.create(RetirementAccount(**fields))
    return success_response(data=account_payload(account), message='Retirement account created', status=201)


@retirement_bp.route('/<account_id>', methods=['GET'])
def get_account(account_id):
    return success_response(data=account_payload(get_services().retirement_accounts.require(account_id)))


@retirement_bp.route('/<account_id>', methods=['PUT', 'PATCH'])
def update_account(account_id):
    changes = clean_retirement_account(read_json_body(), partial=True)
    account = get_services().retirement_accounts.update(account_id, **changes)
    return success_response(data=account_payload(account), message='Retirement account updated')


@retirement_bp.route('/<account_id>', methods=['DELETE'])
def delete_account(account_id):
    get_services().retirement_accounts.delete(account_id)
    return success_response(message='Retirement account deleted')


@retirement_bp.route('/<account_id>/holdings', methods=['POST'])
def add_holding(account_id):
    holding = RetirementHolding(**clean_retirement_holding(read_json_body()))
    holding = get_services().retirement_accounts.add_holding(account_id, holding)
    return success_response(data=holding.to_record(), message='Holding added', status=201)


@retirement_bp.route('/<account_id>/holdings/<holding_id>', methods=['PUT', 'PATCH'])
def update_holding(account_id, holding_id):
    changes = clean_retirement_holding(read_json_body(), partial=True)
    holding = get_services().retirement_accounts.update_holding(account_id, holding_id, **changes)
    return success_response(data=holding.to_record(), message='Holding updated')


@retirement_bp.route('/<account_id>/holdings/<holding_id>', methods=['DELETE'])
def delete_holding(account_id, holding_id):
    get_services().retirement_accounts.delete_holding(account_id, holding_id)
    return success_response(message='Holding deleted')


@retirement_bp.route('/<account_id>/refresh-prices', methods=['POST'])
def refresh_account_prices(account_id):
    summary = get_services().price_sync.refresh_container('retirement', account_id)
    return success_response(data=summary.to_dict(), message=summary.progress)
