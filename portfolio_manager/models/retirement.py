"""Retirement accounts and their holdings."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, List, Optional, Set, Tuple

from portfolio_manager.models.base import RecordMixin, generate_id, utcnow

RETIREMENT_HOLDING_TYPES = ('stock', 'bond', 'target_date', 'money_market', 'balanced', 'other')
RETIREMENT_ACCOUNT_TYPES = ('401k', 'traditional_ira', 'roth_ira', '403b', '457b', 'sep_ira', 'simple_ira')


@dataclass
class RetirementHolding(RecordMixin):
    """
    A fund position in a retirement account.

    The value is stored directly. A unit price can only be inferred when the
    share count is positive, which is why a refresh skips holdings without one.
    """
    name: str
    ticker: Optional[str] = None
    type: str = 'other'
    shares: float = 0.0
    current_value: float = 0.0
    id: Optional[str] = None


@dataclass
class RetirementAccount(RecordMixin):
    name: str
    type: str = '401k'
    provider: str = ''
    account_number: Optional[str] = None
    employer: Optional[str] = None
    holdings: List[RetirementHolding] = field(default_factory=list)
    current_balance: Optional[float] = None
    contribution_ytd: float = 0.0
    employer_match_ytd: Optional[float] = None
    vesting_percent: Optional[float] = None
    id: str = field(default_factory=generate_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    _children = {'holdings': RetirementHolding}
    _record_aliases = {
        'contribution_ytd': 'contributionYTD',
        'employer_match_ytd': 'employerMatchYTD',
    }

    @property
    def value(self) -> float:
        # Rollover accounts may carry a balance without individual holdings
        return sum(h.current_value for h in self.holdings) + (self.current_balance or 0)

    def symbols_of_interest(self) -> Set[str]:
        return {h.ticker.upper() for h in self.holdings if h.ticker}

    def apply_prices(self, price_map: Dict[str, float]) -> Tuple[List[RetirementHolding], int]:
        """Recompute ``current_value`` for ticker-keyed holdings with a positive share count."""
        updated = []
        changed = 0
        for holding in self.holdings:
            new_price = price_map.get(holding.ticker.upper()) if holding.ticker else None
            if new_price is None or not holding.shares or holding.shares <= 0:
                updated.append(holding)
                continue
            updated.append(replace(holding, current_value=holding.shares * new_price))
            changed += 1
        return updated, changed
