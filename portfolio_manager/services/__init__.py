"""
Service layer for business logic.

Services hold no Flask state; repositories and the quote source are passed
in, which keeps them testable without an application.
"""

from portfolio_manager.services.csv_import_service import CSVImportService, ImportResult
from portfolio_manager.services.quote_service import QuoteService
from portfolio_manager.services.price_sync_service import PriceSyncCoordinator, RefreshState, RefreshSummary
from portfolio_manager.services.summary_service import SummaryService

__all__ = [
    'CSVImportService',
    'ImportResult',
    'QuoteService',
    'PriceSyncCoordinator',
    'RefreshState',
    'RefreshSummary',
    'SummaryService',
]
