"""
Tests for the repositories: write-through, swap-on-success and listeners.
"""

from unittest.mock import MagicMock

import pytest

from portfolio_manager.exceptions import NotFoundError, StorageError, ValidationError
from portfolio_manager.models import BankAccount, Holding, Portfolio, RetirementAccount, RetirementHolding
from portfolio_manager.repositories import BankAccountRepository, PortfolioRepository, RetirementRepository
from tests.conftest import MemoryStorage


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def portfolios(storage):
    repo = PortfolioRepository(storage)
    repo.load()
    return repo


class TestLoad:
    """Tests for loading collections at startup"""

    def test_load_existing_records(self):
        storage = MemoryStorage({'portfolios': [
            {'id': 'p1', 'name': 'Brokerage', 'broker': 'Schwab', 'createdAt': '2024-01-01T00:00:00Z',
             'updatedAt': '2024-01-02T00:00:00Z',
             'holdings': [{'id': 'h1', 'symbol': 'AAPL', 'shares': 10, 'avgCost': 150, 'currentPrice': 175}]},
        ]})
        repo = PortfolioRepository(storage)

        assert repo.load() == 1
        portfolio = repo.get_by_id('p1')
        assert portfolio.broker == 'Schwab'
        assert portfolio.holdings[0].avg_cost == 150
        assert portfolio.value == 1750

    def test_malformed_records_are_skipped(self):
        storage = MemoryStorage({'portfolios': [{'id': 'p1', 'name': 'Good'}, {'id': 'p2'}]})
        repo = PortfolioRepository(storage)

        assert repo.load() == 1
        assert repo.get_by_id('p2') is None

    def test_read_failure_leaves_repository_empty(self):
        storage = MagicMock()
        storage.read.side_effect = StorageError('unreachable')
        repo = PortfolioRepository(storage)

        assert repo.load() == 0
        assert repo.get_all() == []


class TestMutations:
    """Tests for create/update/delete"""

    def test_create_writes_through(self, portfolios, storage):
        portfolio = portfolios.create(Portfolio(name='Brokerage'))

        assert portfolios.get_by_id(portfolio.id) == portfolio
        assert storage.data['portfolios'][0]['name'] == 'Brokerage'
        assert 'createdAt' in storage.data['portfolios'][0]

    def test_failed_write_leaves_memory_untouched(self, storage):
        repo = PortfolioRepository(storage)
        repo.load()
        listener = MagicMock()
        repo.subscribe(listener)
        storage.fail_collections.add('portfolios')

        with pytest.raises(StorageError):
            repo.create(Portfolio(name='Brokerage'))

        assert repo.get_all() == []
        listener.assert_not_called()

    def test_update_stamps_updated_at(self, portfolios):
        portfolio = portfolios.create(Portfolio(name='Old'))

        updated = portfolios.update(portfolio.id, name='New', broker='Fidelity')

        assert updated.name == 'New'
        assert updated.broker == 'Fidelity'
        assert updated.updated_at >= portfolio.updated_at
        assert updated.created_at == portfolio.created_at

    @pytest.mark.parametrize('field', ['id', 'created_at', 'holdings'])
    def test_update_rejects_protected_fields(self, portfolios, field):
        portfolio = portfolios.create(Portfolio(name='Brokerage'))
        with pytest.raises(ValidationError):
            portfolios.update(portfolio.id, **{field: None})

    def test_update_rejects_unknown_fields(self, portfolios):
        portfolio = portfolios.create(Portfolio(name='Brokerage'))
        with pytest.raises(ValidationError):
            portfolios.update(portfolio.id, colour='red')

    def test_missing_container(self, portfolios):
        with pytest.raises(NotFoundError) as exc_info:
            portfolios.update('missing', name='x')
        assert str(exc_info.value) == 'Portfolio not found: missing'
        with pytest.raises(NotFoundError):
            portfolios.delete('missing')

    def test_delete(self, portfolios, storage):
        portfolio = portfolios.create(Portfolio(name='Brokerage'))

        portfolios.delete(portfolio.id)

        assert portfolios.get_all() == []
        assert storage.data['portfolios'] == []


class TestHoldings:
    """Tests for holding-level operations"""

    def test_add_holding_assigns_id(self, portfolios):
        portfolio = portfolios.create(Portfolio(name='Brokerage'))

        holding = portfolios.add_holding(portfolio.id, Holding(symbol='AAPL', shares=1))

        assert holding.id
        assert portfolios.get_by_id(portfolio.id).holdings == [holding]

    def test_add_no_holdings(self, portfolios):
        portfolio = portfolios.create(Portfolio(name='Brokerage'))
        assert portfolios.add_holdings(portfolio.id, []) == []
        with pytest.raises(NotFoundError):
            portfolios.add_holdings('missing', [])

    def test_update_and_delete_holding(self, portfolios):
        portfolio = portfolios.create(Portfolio(name='Brokerage'))
        holding = portfolios.add_holding(portfolio.id, Holding(symbol='AAPL', shares=1))

        updated = portfolios.update_holding(portfolio.id, holding.id, shares=5)
        assert updated.shares == 5
        assert updated.id == holding.id

        portfolios.delete_holding(portfolio.id, holding.id)
        assert portfolios.get_by_id(portfolio.id).holdings == []

    def test_missing_holding(self, portfolios):
        portfolio = portfolios.create(Portfolio(name='Brokerage'))
        with pytest.raises(NotFoundError) as exc_info:
            portfolios.update_holding(portfolio.id, 'nope', shares=1)
        assert exc_info.value.resource == 'Holding'
        with pytest.raises(NotFoundError):
            portfolios.delete_holding(portfolio.id, 'nope')

    def test_update_holding_prices(self, portfolios, storage):
        portfolio = portfolios.create(Portfolio(name='Brokerage', holdings=[
            Holding(symbol='AAPL', shares=2, current_price=100, id='h1'),
            Holding(symbol='MSFT', shares=1, current_price=300, id='h2'),
        ]))

        result = portfolios.update_holding_prices(portfolio.id, {'AAPL': 150.0})

        assert result.success is True
        holdings = portfolios.get_by_id(portfolio.id).holdings
        assert [h.current_price for h in holdings] == [150.0, 300]
        assert storage.data['portfolios'][0]['holdings'][0]['currentPrice'] == 150.0

    def test_update_holding_prices_failure_is_returned(self, portfolios, storage):
        portfolio = portfolios.create(Portfolio(name='Brokerage', holdings=[
            Holding(symbol='AAPL', shares=2, current_price=100, id='h1'),
        ]))
        storage.fail_collections.add('portfolios')

        result = portfolios.update_holding_prices(portfolio.id, {'AAPL': 150.0})

        assert result.success is False
        assert portfolios.get_by_id(portfolio.id).holdings[0].current_price == 100

    def test_update_holding_prices_missing_container(self, portfolios):
        result = portfolios.update_holding_prices('gone', {'AAPL': 1.0})
        assert result.success is False
        assert 'gone' in result.error

    def test_retirement_prices_use_shares(self, storage):
        repo = RetirementRepository(storage)
        repo.load()
        account = repo.create(RetirementAccount(name='401k', current_balance=1000, holdings=[
            RetirementHolding(name='Fund', ticker='vffvx', shares=4, current_value=100, id='r1'),
        ]))

        repo.update_holding_prices(account.id, {'VFFVX': 30.0})

        assert repo.get_by_id(account.id).holdings[0].current_value == 120.0
        assert repo.total_value() == 1120.0


class TestListeners:
    """Tests for subscribe/unsubscribe"""

    def test_listener_receives_new_items(self, portfolios):
        listener = MagicMock()
        portfolios.subscribe(listener)

        portfolio = portfolios.create(Portfolio(name='Brokerage'))

        listener.assert_called_once_with('portfolios', [portfolio])

    def test_unsubscribe(self, portfolios):
        listener = MagicMock()
        unsubscribe = portfolios.subscribe(listener)
        unsubscribe()
        unsubscribe()

        portfolios.create(Portfolio(name='Brokerage'))

        listener.assert_not_called()

    def test_failing_listener_does_not_affect_others(self, portfolios):
        broken = MagicMock(side_effect=RuntimeError('listener bug'))
        healthy = MagicMock()
        portfolios.subscribe(broken)
        portfolios.subscribe(healthy)

        portfolio = portfolios.create(Portfolio(name='Brokerage'))

        assert portfolios.get_by_id(portfolio.id) is not None
        healthy.assert_called_once()


class TestBankAccounts:
    """Tests for the bank account repository"""

    def test_total_balance(self, storage):
        repo = BankAccountRepository(storage)
        repo.load()
        repo.create(BankAccount(name='Checking', balance=1200.5))
        repo.create(BankAccount(name='Savings', type='savings', balance=800))

        assert repo.total_balance() == 2000.5
        assert [r['bankName'] for r in storage.data['bankAccounts']] == ['', '']
