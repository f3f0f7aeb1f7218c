"""
Portfolio API: containers, their holdings, CSV import/export and price refresh.
"""

from flask import Blueprint, Response, current_app, request
import logging

from portfolio_manager.exceptions import ValidationError
from portfolio_manager.extensions import get_services
from portfolio_manager.models import Holding, Portfolio
from portfolio_manager.services import CSVImportService
from portfolio_manager.utils.request_helpers import flag, read_json_body
from portfolio_manager.utils.response_helpers import error_response, success_response
from portfolio_manager.validation import clean_holding, clean_portfolio

logger = logging.getLogger(__name__)

portfolio_bp = Blueprint('portfolios', __name__, url_prefix='/portfolios')


def portfolio_payload(portfolio: Portfolio) -> dict:
    """Stored record plus the derived totals."""
    data = portfolio.to_record()
    data['value'] = portfolio.value
    data['cost'] = portfolio.cost
    data['gainLossPercent'] = portfolio.gain_loss_percent
    return data


def _csv_download(content: str, filename: str) -> Response:
    return Response(
        content,
        mimetype='text/csv',
        headers={'Content-Disposition': f'attachment; filename={filename}'}
    )


def _read_csv_upload() -> str:
    """CSV text from a multipart ``csv_file`` upload or a JSON ``content`` field."""
    if 'csv_file' in request.files:
        file = request.files['csv_file']
        if file.filename == '':
            raise ValidationError('No file selected', field='csv_file')
        extension = file.filename.rsplit('.', 1)[1].lower() if '.' in file.filename else None
        if extension is not None and extension not in current_app.config['ALLOWED_EXTENSIONS']:
            raise ValidationError('Only .csv files can be imported', field='csv_file')
        try:
            return file.read().decode('utf-8-sig')  # Handle BOM
        except UnicodeDecodeError as e:
            logger.error(f"CSV file encoding error: {e}")
            raise ValidationError('Invalid file encoding. Please ensure the file is UTF-8 encoded',
                                  field='csv_file')

    data = request.get_json(silent=True)
    if isinstance(data, dict) and isinstance(data.get('content'), str):
        return data['content']
    raise ValidationError('No file uploaded', field='csv_file')


@portfolio_bp.route('', methods=['GET'])
def list_portfolios():
    portfolios = get_services().portfolios.get_all()
    return success_response(data=[portfolio_payload(p) for p in portfolios])


@portfolio_bp.route('', methods=['POST'])
def create_portfolio():
    fields = clean_portfolio(read_json_body())
    portfolio = get_services().portfolios.create(Portfolio(**fields))
    return success_response(data=portfolio_payload(portfolio), message='Portfolio created', status=201)


@portfolio_bp.route('/<portfolio_id>', methods=['GET'])
def get_portfolio(portfolio_id):
    portfolio = get_services().portfolios.require(portfolio_id)
    return success_response(data=portfolio_payload(portfolio))


@portfolio_bp.route('/<portfolio_id>', methods=['PUT', 'PATCH'])
def update_portfolio(portfolio_id):
    changes = clean_portfolio(read_json_body(), partial=True)
    portfolio = get_services().portfolios.update(portfolio_id, **changes)
    return success_response(data=portfolio_payload(portfolio), message='Portfolio updated')


@portfolio_bp.route('/<portfolio_id>', methods=['DELETE'])
def delete_portfolio(portfolio_id):
    get_services().portfolios.delete(portfolio_id)
    return success_response(message='Portfolio deleted')


# --- Holdings ---

@portfolio_bp.route('/<portfolio_id>/holdings', methods=['POST'])
def add_holding(portfolio_id):
    holding = get_services().portfolios.add_holding(portfolio_id, Holding(**clean_holding(read_json_body())))
    return success_response(data=holding.to_record(), message='Holding added', status=201)


@portfolio_bp.route('/<portfolio_id>/holdings/<holding_id>', methods=['PUT', 'PATCH'])
def update_holding(portfolio_id, holding_id):
    changes = clean_holding(read_json_body(), partial=True)
    holding = get_services().portfolios.update_holding(portfolio_id, holding_id, **changes)
    return success_response(data=holding.to_record(), message='Holding updated')


@portfolio_bp.route('/<portfolio_id>/holdings/<holding_id>', methods=['DELETE'])
def delete_holding(portfolio_id, holding_id):
    get_services().portfolios.delete_holding(portfolio_id, holding_id)
    return success_response(message='Holding deleted')


# --- CSV ---

@portfolio_bp.route('/import/template', methods=['GET'])
def download_template():
    return _csv_download(CSVImportService.generate_template(), 'portfolio_template.csv')


@portfolio_bp.route('/<portfolio_id>/import', methods=['POST'])
def import_csv(portfolio_id):
    """
    Import holdings from a broker CSV.

    ``?preview=true`` only parses. The response always carries the parsed
    holdings together with every row error and warning.
    """
    repository = get_services().portfolios
    repository.require(portfolio_id)
    content = _read_csv_upload()
    logger.info(f"CSV import for portfolio {portfolio_id}: {len(content)} characters")

    result = CSVImportService.import_holdings(repository, portfolio_id, content, preview=flag('preview'))
    payload = result.to_dict()

    if not result.parse_result.holdings and result.parse_result.errors:
        return error_response(
            'CSV could not be imported',
            status=400,
            details=payload,
            error_code='CSV_PARSE_ERROR'
        )

    if flag('preview'):
        message = f"Found {len(result.parse_result.holdings)} holdings"
    else:
        message = f"Imported {len(result.imported)} holdings"
    return success_response(data=payload, message=message)


@portfolio_bp.route('/<portfolio_id>/export', methods=['GET'])
def export_csv(portfolio_id):
    portfolio = get_services().portfolios.require(portfolio_id)
    content = CSVImportService.export_holdings(portfolio.holdings)
    filename = f"{portfolio.name.strip().replace(' ', '_') or 'portfolio'}_holdings.csv"
    return _csv_download(content, filename)


# --- Prices ---

@portfolio_bp.route('/<portfolio_id>/refresh-prices', methods=['POST'])
def refresh_portfolio_prices(portfolio_id):
    summary = get_services().price_sync.refresh_container('portfolio', portfolio_id)
    return success_response(data=summary.to_dict(), message=summary.progress)
