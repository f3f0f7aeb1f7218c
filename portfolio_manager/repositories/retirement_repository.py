"""Repository for retirement accounts."""

from portfolio_manager.models import RetirementAccount, RetirementHolding
from portfolio_manager.repositories.base import HoldingsRepository
from portfolio_manager.storage import RETIREMENT_ACCOUNTS


class RetirementRepository(HoldingsRepository):
    collection = RETIREMENT_ACCOUNTS
    model = RetirementAccount
    holding_model = RetirementHolding
    resource_name = 'Retirement account'

    def total_value(self) -> float:
        return sum(a.value for a in self.get_all())
