"""
Shared Flask extension instances and the per-app service container.

Separating these from main.py prevents circular imports between the app
factory and the blueprints.
"""

from dataclasses import dataclass

from flask import current_app
from flask_caching import Cache
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from portfolio_manager.repositories import BankAccountRepository, PortfolioRepository, RetirementRepository
from portfolio_manager.services.price_sync_service import PriceSyncCoordinator
from portfolio_manager.services.quote_service import QuoteService
from portfolio_manager.storage import StorageBackend

# Configured in create_app
cache = Cache()
limiter = Limiter(key_func=get_remote_address)

EXTENSION_KEY = 'portfolio_manager'


@dataclass
class AppServices:
    """Everything built once at startup from the selected storage backend."""
    storage: StorageBackend
    portfolios: PortfolioRepository
    retirement_accounts: RetirementRepository
    bank_accounts: BankAccountRepository
    quotes: QuoteService
    price_sync: PriceSyncCoordinator


def get_services() -> AppServices:
    return current_app.extensions[EXTENSION_KEY]
