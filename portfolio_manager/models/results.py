"""Value objects returned across the service boundaries."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from portfolio_manager.models.portfolio import Holding


@dataclass
class Quote:
    """Current price and day-over-day change for a ticker. Never persisted."""
    symbol: str
    price: float
    change: float = 0.0
    change_percent: float = 0.0
    name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'symbol': self.symbol,
            'price': self.price,
            'change': self.change,
            'changePercent': self.change_percent,
            'name': self.name,
        }


@dataclass
class ParseResult:
    """
    Outcome of parsing one CSV document.

    Holdings carry no id yet. When a required column is missing the holdings
    list is empty and ``errors`` holds the single fatal message.
    """
    holdings: List[Holding] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'holdings': [h.to_record() for h in self.holdings],
            'errors': list(self.errors),
            'warnings': list(self.warnings),
        }


@dataclass
class WriteResult:
    """Outcome of one write through the persistence port."""
    success: bool
    error: Optional[str] = None
