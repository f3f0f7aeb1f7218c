"""Repository for brokerage portfolios."""

from portfolio_manager.models import Holding, Portfolio
from portfolio_manager.repositories.base import HoldingsRepository
from portfolio_manager.storage import PORTFOLIOS


class PortfolioRepository(HoldingsRepository):
    collection = PORTFOLIOS
    model = Portfolio
    holding_model = Holding
    resource_name = 'Portfolio'

    def total_value(self) -> float:
        return sum(p.value for p in self.get_all())
