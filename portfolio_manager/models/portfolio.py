"""Brokerage portfolios and their holdings."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, List, Optional, Set, Tuple

from portfolio_manager.models.base import RecordMixin, generate_id, utcnow

HOLDING_TYPES = ('stock', 'etf', 'bond', 'mutual_fund', 'crypto', 'cash', 'other')


@dataclass
class Holding(RecordMixin):
    """One position inside a portfolio. Value is derived from the unit price."""
    symbol: str
    name: str = ''
    type: str = 'stock'
    shares: float = 0.0
    avg_cost: float = 0.0
    current_price: float = 0.0
    id: Optional[str] = None

    @property
    def value(self) -> float:
        return self.shares * self.current_price

    @property
    def cost(self) -> float:
        return self.shares * self.avg_cost

    @property
    def gain_loss(self) -> float:
        return self.value - self.cost

    @property
    def gain_loss_percent(self) -> float:
        if self.cost == 0:
            return 0.0
        return (self.value - self.cost) / self.cost * 100


@dataclass
class Portfolio(RecordMixin):
    name: str
    broker: str = ''
    account_number: Optional[str] = None
    holdings: List[Holding] = field(default_factory=list)
    id: str = field(default_factory=generate_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    _children = {'holdings': Holding}

    @property
    def value(self) -> float:
        return sum(h.value for h in self.holdings)

    @property
    def cost(self) -> float:
        return sum(h.cost for h in self.holdings)

    @property
    def gain_loss_percent(self) -> float:
        cost = self.cost
        if cost == 0:
            return 0.0
        return (self.value - cost) / cost * 100

    def symbols_of_interest(self) -> Set[str]:
        """Upper-cased symbols worth quoting; cash positions have no market price."""
        return {h.symbol.upper() for h in self.holdings if h.type != 'cash' and h.symbol}

    def apply_prices(self, price_map: Dict[str, float]) -> Tuple[List[Holding], int]:
        """
        Return the holdings with ``current_price`` replaced from ``price_map``.

        Holdings whose symbol has no price pass through unchanged. The second
        element is the number of holdings that received a new price.
        """
        updated = []
        changed = 0
        for holding in self.holdings:
            new_price = price_map.get(holding.symbol.upper())
            if new_price is None:
                updated.append(holding)
                continue
            updated.append(replace(holding, current_price=new_price))
            changed += 1
        return updated, changed
