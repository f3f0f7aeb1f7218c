"""
API tests through the Flask test client.

The app runs on the testing configuration with a JSON file store in a
temporary directory; the quote service is patched so nothing touches the
network.
"""

import io
from unittest.mock import patch

import pytest

from portfolio_manager.models import Quote, WriteResult
from tests.test_data_generators import BAD_ROWS_CSV, BASIC_CSV, MISSING_SYMBOL_CSV


@pytest.fixture
def portfolio(client):
    response = client.post('/portfolios', json={'name': 'Brokerage', 'broker': 'Fidelity'})
    return response.get_json()['data']


class TestHealth:
    """Tests for /health"""

    def test_healthy(self, client):
        response = client.get('/health')

        assert response.status_code == 200
        data = response.get_json()
        assert data['status'] == 'healthy'
        assert data['storage'] == 'json'
        assert data['price_refresh'] == 'idle'

    def test_unhealthy_storage(self, client, services):
        with patch.object(services.storage, 'ping', return_value=False):
            response = client.get('/health')

        assert response.status_code == 503
        assert response.get_json()['status'] == 'unhealthy'


class TestPortfolioRoutes:
    """Tests for portfolio CRUD and holdings"""

    def test_create_and_list(self, client, portfolio):
        assert portfolio['name'] == 'Brokerage'
        assert portfolio['holdings'] == []
        assert portfolio['value'] == 0

        response = client.get('/portfolios')
        assert [p['id'] for p in response.get_json()['data']] == [portfolio['id']]

    def test_create_requires_name(self, client):
        response = client.post('/portfolios', json={'broker': 'Fidelity'})

        assert response.status_code == 400
        data = response.get_json()
        assert data['success'] is False
        assert data['error_code'] == 'VALIDATION_ERROR'
        assert data['details']['field'] == 'name'

    def test_non_json_body(self, client):
        response = client.post('/portfolios', data='name=x')
        assert response.status_code == 400

    def test_update(self, client, portfolio):
        response = client.patch(f"/portfolios/{portfolio['id']}", json={'name': 'Taxable'})

        assert response.status_code == 200
        assert response.get_json()['data']['name'] == 'Taxable'

    def test_missing_portfolio(self, client):
        response = client.get('/portfolios/nope')

        assert response.status_code == 404
        data = response.get_json()
        assert data['error'] == 'Portfolio not found: nope'
        assert data['error_code'] == 'NOT_FOUND'

    def test_delete(self, client, portfolio):
        assert client.delete(f"/portfolios/{portfolio['id']}").status_code == 200
        assert client.get(f"/portfolios/{portfolio['id']}").status_code == 404

    def test_holding_lifecycle(self, client, portfolio):
        base = f"/portfolios/{portfolio['id']}/holdings"

        created = client.post(base, json={'symbol': 'aapl', 'shares': 10, 'avgCost': 150, 'currentPrice': 175})
        assert created.status_code == 201
        holding = created.get_json()['data']
        assert holding['symbol'] == 'AAPL'
        assert holding['id']

        updated = client.put(f"{base}/{holding['id']}", json={'shares': 12})
        assert updated.get_json()['data']['shares'] == 12

        stored = client.get(f"/portfolios/{portfolio['id']}").get_json()['data']
        assert stored['value'] == 12 * 175
        assert stored['gainLossPercent'] == pytest.approx((175 - 150) / 150 * 100)

        assert client.delete(f"{base}/{holding['id']}").status_code == 200
        assert client.delete(f"{base}/{holding['id']}").status_code == 404

    def test_invalid_holding(self, client, portfolio):
        response = client.post(f"/portfolios/{portfolio['id']}/holdings", json={'symbol': 'AAPL', 'shares': 0})
        assert response.status_code == 400

    def test_storage_failure_is_503(self, client, services, portfolio):
        with patch.object(services.storage, 'write', return_value=WriteResult(False, 'disk full')):
            response = client.patch(f"/portfolios/{portfolio['id']}", json={'name': 'Lost'})

        assert response.status_code == 503
        assert response.get_json()['error_code'] == 'SERVICE_UNAVAILABLE'
        assert services.portfolios.get_by_id(portfolio['id']).name == 'Brokerage'


class TestCsvRoutes:
    """Tests for CSV template, import and export"""

    def test_template(self, client):
        response = client.get('/portfolios/import/template')

        assert response.status_code == 200
        assert response.mimetype == 'text/csv'
        assert 'portfolio_template.csv' in response.headers['Content-Disposition']
        assert response.get_data(as_text=True).startswith('Symbol,')

    def test_multipart_import(self, client, portfolio):
        response = client.post(
            f"/portfolios/{portfolio['id']}/import",
            data={'csv_file': (io.BytesIO(('\ufeff' + BASIC_CSV).encode('utf-8')), 'holdings.csv')},
            content_type='multipart/form-data',
        )

        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['imported_count'] == 3
        stored = client.get(f"/portfolios/{portfolio['id']}").get_json()['data']
        assert [h['symbol'] for h in stored['holdings']] == ['AAPL', 'MSFT', 'VOO']

    def test_json_preview_import(self, client, portfolio):
        response = client.post(f"/portfolios/{portfolio['id']}/import?preview=true", json={'content': BASIC_CSV})

        data = response.get_json()
        assert response.status_code == 200
        assert data['message'] == 'Found 3 holdings'
        assert data['data']['imported_count'] == 0
        stored = client.get(f"/portfolios/{portfolio['id']}").get_json()['data']
        assert stored['holdings'] == []

    def test_partial_import_reports_errors(self, client, portfolio):
        response = client.post(f"/portfolios/{portfolio['id']}/import", json={'content': BAD_ROWS_CSV})

        data = response.get_json()['data']
        assert response.status_code == 200
        assert data['imported_count'] == 1
        assert len(data['errors']) == 2

    def test_unparseable_file_is_400(self, client, portfolio):
        response = client.post(f"/portfolios/{portfolio['id']}/import", json={'content': MISSING_SYMBOL_CSV})

        data = response.get_json()
        assert response.status_code == 400
        assert data['error_code'] == 'CSV_PARSE_ERROR'
        assert data['details']['errors'] == ['Missing required column: Symbol']

    def test_wrong_extension(self, client, portfolio):
        response = client.post(
            f"/portfolios/{portfolio['id']}/import",
            data={'csv_file': (io.BytesIO(b'x'), 'holdings.xlsx')},
            content_type='multipart/form-data',
        )
        assert response.status_code == 400

    def test_no_upload(self, client, portfolio):
        response = client.post(f"/portfolios/{portfolio['id']}/import", json={})
        assert response.status_code == 400

    def test_import_into_missing_portfolio(self, client):
        response = client.post('/portfolios/nope/import', json={'content': BASIC_CSV})
        assert response.status_code == 404

    def test_export(self, client, portfolio):
        client.post(f"/portfolios/{portfolio['id']}/import", json={'content': BASIC_CSV})

        response = client.get(f"/portfolios/{portfolio['id']}/export")

        assert response.status_code == 200
        assert 'Brokerage_holdings.csv' in response.headers['Content-Disposition']
        lines = response.get_data(as_text=True).splitlines()
        assert lines[0] == 'Symbol,Name,Type,Shares,AvgCost,CurrentPrice'
        assert len(lines) == 4


class TestRetirementAndBankRoutes:
    """Tests for retirement and bank account endpoints"""

    def test_retirement_account(self, client):
        created = client.post('/retirement', json={'name': 'Roth IRA', 'type': 'roth_ira', 'currentBalance': 500})
        account = created.get_json()['data']
        assert created.status_code == 201

        holding = client.post(f"/retirement/{account['id']}/holdings",
                              json={'name': 'Fidelity 500', 'ticker': 'fxaix', 'shares': 10, 'currentValue': 1500})
        assert holding.get_json()['data']['ticker'] == 'FXAIX'

        stored = client.get(f"/retirement/{account['id']}").get_json()['data']
        assert stored['value'] == 2000

    def test_invalid_retirement_type(self, client):
        response = client.post('/retirement', json={'name': 'Pension', 'type': 'pension'})
        assert response.status_code == 400

    def test_bank_account_crud(self, client):
        created = client.post('/bank-accounts', json={'name': 'Checking', 'bankName': 'Chase', 'balance': 1200})
        account = created.get_json()['data']
        assert account['bankName'] == 'Chase'

        updated = client.put(f"/bank-accounts/{account['id']}", json={'balance': 900})
        assert updated.get_json()['data']['balance'] == 900

        assert client.delete(f"/bank-accounts/{account['id']}").status_code == 200
        assert client.get('/bank-accounts').get_json()['data'] == []


class TestPriceRoutes:
    """Tests for price refresh and quote lookup"""

    def test_refresh_wait(self, client, services, portfolio):
        client.post(f"/portfolios/{portfolio['id']}/holdings",
                    json={'symbol': 'AAPL', 'shares': 2, 'avgCost': 100, 'currentPrice': 100})

        with patch.object(services.quotes, 'get_quotes', return_value={'AAPL': Quote('AAPL', 125.0)}):
            response = client.post('/prices/refresh?wait=true')

        data = response.get_json()
        assert response.status_code == 200
        assert data['message'] == '1 prices updated'
        assert data['data']['containers_updated'] == 1
        stored = client.get(f"/portfolios/{portfolio['id']}").get_json()['data']
        assert stored['holdings'][0]['currentPrice'] == 125.0

    def test_refresh_in_background(self, client, services):
        with patch.object(services.price_sync, 'start_refresh') as start:
            response = client.post('/prices/refresh')

        assert response.status_code == 202
        start.assert_called_once_with()
        assert response.get_json()['data']['state'] == 'idle'

    def test_refresh_single_portfolio(self, client, services, portfolio):
        client.post(f"/portfolios/{portfolio['id']}/holdings", json={'symbol': 'MSFT', 'shares': 1})

        with patch.object(services.quotes, 'get_quotes', return_value={'MSFT': Quote('MSFT', 400.0)}) as get_quotes:
            response = client.post(f"/portfolios/{portfolio['id']}/refresh-prices")

        assert response.status_code == 200
        assert set(get_quotes.call_args[0][0]) == {'MSFT'}

    def test_refresh_in_progress_is_409(self, client, services, portfolio):
        services.price_sync._in_flight.add(f"portfolios:{portfolio['id']}")
        try:
            response = client.post(f"/portfolios/{portfolio['id']}/refresh-prices")
        finally:
            services.price_sync._in_flight.clear()

        assert response.status_code == 409

    def test_status(self, client):
        data = client.get('/prices/status').get_json()['data']
        assert data['state'] == 'idle'
        assert data['last_summary'] is None

    def test_quote(self, client, services):
        with patch.object(services.quotes, 'get_quote', return_value=Quote('AAPL', 190.0, 5.0, 2.7)):
            response = client.get('/prices/quote/aapl')

        assert response.get_json()['data']['changePercent'] == 2.7

    def test_missing_quote(self, client, services):
        with patch.object(services.quotes, 'get_quote', return_value=None):
            response = client.get('/prices/quote/ZZZZ')

        assert response.status_code == 404
        assert response.get_json()['error'] == 'Quote not found: ZZZZ'

    def test_batch_quotes(self, client, services):
        with patch.object(services.quotes, 'get_quotes', return_value={'AAPL': Quote('AAPL', 190.0)}):
            response = client.post('/prices/quotes', json={'symbols': ['aapl', 'nope']})

        assert list(response.get_json()['data']) == ['AAPL']

    def test_batch_quotes_require_list(self, client):
        response = client.post('/prices/quotes', json={'symbols': 'AAPL'})
        assert response.status_code == 400


class TestDashboard:
    """Tests for /dashboard"""

    def test_summary(self, client, portfolio):
        client.post(f"/portfolios/{portfolio['id']}/holdings",
                    json={'symbol': 'VOO', 'type': 'etf', 'shares': 2, 'avgCost': 400, 'currentPrice': 450})
        client.post('/bank-accounts', json={'name': 'Savings', 'type': 'savings', 'balance': 100})

        data = client.get('/dashboard').get_json()['data']

        assert data['net_worth'] == 1000
        assert data['recent_portfolios'] == [portfolio['id']]
        assert [s['segment'] for s in data['allocation']] == ['Investments', 'Cash']


def test_unknown_route_uses_error_envelope(client):
    response = client.get('/does-not-exist')

    assert response.status_code == 404
    assert response.get_json()['success'] is False
