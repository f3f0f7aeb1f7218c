"""Bank accounts. Plain balances; never touched by a price refresh."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from portfolio_manager.models.base import RecordMixin, generate_id, utcnow

BANK_ACCOUNT_TYPES = ('checking', 'savings', 'money_market', 'cd', 'other')


@dataclass
class BankAccount(RecordMixin):
    name: str
    type: str = 'checking'
    bank_name: str = ''
    account_number: Optional[str] = None
    balance: float = 0.0
    interest_rate: Optional[float] = None
    id: str = field(default_factory=generate_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
