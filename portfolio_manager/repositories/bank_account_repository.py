"""Repository for bank accounts."""

from portfolio_manager.models import BankAccount
from portfolio_manager.repositories.base import CollectionRepository
from portfolio_manager.storage import BANK_ACCOUNTS


class BankAccountRepository(CollectionRepository):
    collection = BANK_ACCOUNTS
    model = BankAccount
    resource_name = 'Bank account'

    def total_balance(self) -> float:
        return sum(a.balance for a in self.get_all())
