"""Bank account API. Plain CRUD; balances are entered by hand."""

from flask import Blueprint

from portfolio_manager.extensions import get_services
from portfolio_manager.models import BankAccount
from portfolio_manager.utils.request_helpers import read_json_body
from portfolio_manager.utils.response_helpers import success_response
from portfolio_manager.validation import clean_bank_account

bank_account_bp = Blueprint('bank_accounts', __name__, url_prefix='/bank-accounts')


@bank_account_bp.route('', methods=['GET'])
def list_accounts():
    accounts = get_services().bank_accounts.get_all()
    return success_response(data=[a.to_record() for a in accounts])


@bank_account_bp.route('', methods=['POST'])
def create_account():
    account = get_services().bank_accounts.create(BankAccount(**clean_bank_account(read_json_body())))
    return success_response(data=account.to_record(), message='Bank account created', status=201)


@bank_account_bp.route('/<account_id>', methods=['GET'])
def get_account(account_id):
    return success_response(data=get_services().bank_accounts.require(account_id).to_record())


@bank_account_bp.route('/<account_id>', methods=['PUT', 'PATCH'])
def update_account(account_id):
    changes = clean_bank_account(read_json_body(), partial=True)
    account = get_services().bank_accounts.update(account_id, **changes)
    return success_response(data=account.to_record(), message='Bank account updated')


@bank_account_bp.route('/<account_id>', methods=['DELETE'])
def delete_account(account_id):
    get_services().bank_accounts.delete(account_id)
    return success_response(message='Bank account deleted')
