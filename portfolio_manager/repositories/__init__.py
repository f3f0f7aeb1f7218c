"""
Repository layer for data access.

Repositories own the in-memory collections and write through the
persistence port. Consumers observe changes via ``subscribe``.
"""

from portfolio_manager.repositories.base import CollectionRepository, HoldingsRepository
from portfolio_manager.repositories.portfolio_repository import PortfolioRepository
from portfolio_manager.repositories.retirement_repository import RetirementRepository
from portfolio_manager.repositories.bank_account_repository import BankAccountRepository

__all__ = [
    'CollectionRepository',
    'HoldingsRepository',
    'PortfolioRepository',
    'RetirementRepository',
    'BankAccountRepository',
]
