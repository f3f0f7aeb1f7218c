"""
Data model shared by the import, quote and price sync services.
"""

from portfolio_manager.models.base import generate_id
from portfolio_manager.models.portfolio import HOLDING_TYPES, Holding, Portfolio
from portfolio_manager.models.retirement import (
    RETIREMENT_ACCOUNT_TYPES,
    RETIREMENT_HOLDING_TYPES,
    RetirementAccount,
    RetirementHolding,
)
from portfolio_manager.models.bank_account import BANK_ACCOUNT_TYPES, BankAccount
from portfolio_manager.models.results import ParseResult, Quote, WriteResult

__all__ = [
    'generate_id',
    'HOLDING_TYPES',
    'Holding',
    'Portfolio',
    'RETIREMENT_ACCOUNT_TYPES',
    'RETIREMENT_HOLDING_TYPES',
    'RetirementAccount',
    'RetirementHolding',
    'BANK_ACCOUNT_TYPES',
    'BankAccount',
    'ParseResult',
    'Quote',
    'WriteResult',
]
