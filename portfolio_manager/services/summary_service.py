"""
Dashboard figures across every container type.

Pure Python - no Flask dependencies. Takes the current collections as input
and returns plain dictionaries ready for JSON.
"""

import logging
from typing import Any, Dict, List

import pandas as pd

from portfolio_manager.models import BankAccount, Portfolio, RetirementAccount

logger = logging.getLogger(__name__)

RECENT_PORTFOLIO_COUNT = 4

SEGMENTS = (
    ('investments', 'Investments'),
    ('retirement', 'Retirement'),
    ('cash', 'Cash'),
)


def _percentage(value: float, total: float) -> float:
    if total <= 0:
        return 0.0
    return value / total * 100


class SummaryService:
    """Net worth, allocation and per-portfolio statistics for the dashboard."""

    @staticmethod
    def holdings_frame(portfolios: List[Portfolio]) -> pd.DataFrame:
        """One row per portfolio holding with its value and cost."""
        rows = [
            {
                'portfolio_id': p.id,
                'symbol': h.symbol,
                'type': h.type,
                'value': h.value,
                'cost': h.cost,
            }
            for p in portfolios
            for h in p.holdings
        ]
        return pd.DataFrame(rows, columns=['portfolio_id', 'symbol', 'type', 'value', 'cost'])

    @staticmethod
    def portfolio_stats(portfolios: List[Portfolio]) -> List[Dict[str, Any]]:
        return [
            {
                'id': p.id,
                'name': p.name,
                'broker': p.broker,
                'holdings_count': len(p.holdings),
                'value': p.value,
                'cost': p.cost,
                'gain_loss': p.value - p.cost,
                'gain_loss_percent': p.gain_loss_percent,
                'updated_at': p.updated_at.isoformat(),
            }
            for p in portfolios
        ]

    @staticmethod
    def allocation_by_type(portfolios: List[Portfolio]) -> List[Dict[str, Any]]:
        """Portfolio holdings grouped by holding type, largest first."""
        df = SummaryService.holdings_frame(portfolios)
        if df.empty:
            return []

        grouped = df.groupby('type', as_index=False)['value'].sum()
        total = grouped['value'].sum()
        grouped = grouped.sort_values('value', ascending=False)
        return [
            {
                'type': row.type,
                'value': float(row.value),
                'percentage': _percentage(float(row.value), float(total)),
            }
            for row in grouped.itertuples(index=False)
        ]

    @staticmethod
    def build_summary(portfolios: List[Portfolio],
                      retirement_accounts: List[RetirementAccount],
                      bank_accounts: List[BankAccount]) -> Dict[str, Any]:
        totals = {
            'investments': float(sum(p.value for p in portfolios)),
            'retirement': float(sum(a.value for a in retirement_accounts)),
            'cash': float(sum(a.balance or 0 for a in bank_accounts)),
        }
        net_worth = sum(totals.values())

        # Zero-percent segments are left out of the allocation bar
        allocation = []
        for key, label in SEGMENTS:
            percentage = _percentage(totals[key], net_worth)
            if percentage > 0:
                allocation.append({'segment': label, 'value': totals[key], 'percentage': percentage})

        recent = sorted(portfolios, key=lambda p: p.updated_at, reverse=True)[:RECENT_PORTFOLIO_COUNT]

        summary = {
            'net_worth': net_worth,
            'totals': totals,
            'allocation': allocation,
            'portfolios': SummaryService.portfolio_stats(portfolios),
            'allocation_by_type': SummaryService.allocation_by_type(portfolios),
            'holdings_count': sum(len(p.holdings) for p in portfolios),
            'recent_portfolios': [p.id for p in recent],
            'counts': {
                'portfolios': len(portfolios),
                'retirement_accounts': len(retirement_accounts),
                'bank_accounts': len(bank_accounts),
            },
        }
        logger.debug(f"Dashboard summary computed: net worth {net_worth:.2f}")
        return summary
