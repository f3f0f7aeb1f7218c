from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge
import logging
import os
from datetime import datetime, timezone

from portfolio_manager.exceptions import PortfolioError
from portfolio_manager.extensions import EXTENSION_KEY, AppServices, cache, limiter
from portfolio_manager.repositories import BankAccountRepository, PortfolioRepository, RetirementRepository
from portfolio_manager.services import PriceSyncCoordinator, QuoteService
from portfolio_manager.storage import create_storage
from portfolio_manager.utils.response_helpers import error_response, portfolio_error_response

logger = logging.getLogger(__name__)


def build_services(app: Flask) -> AppServices:
    """Select the storage adapter once and wire every service on top of it."""
    config = app.config
    storage = create_storage(config)
    storage.initialize()

    portfolios = PortfolioRepository(storage)
    retirement_accounts = RetirementRepository(storage)
    bank_accounts = BankAccountRepository(storage)
    for repository in (portfolios, retirement_accounts, bank_accounts):
        repository.load()

    quotes = QuoteService(
        source=config['QUOTE_SOURCE'],
        api_url=config['QUOTE_API_URL'],
        timeout=config['QUOTE_TIMEOUT'],
        batch_timeout=config['QUOTE_BATCH_TIMEOUT'],
        max_workers=config['QUOTE_MAX_WORKERS'],
    )
    price_sync = PriceSyncCoordinator(
        quotes,
        portfolios,
        retirement_accounts,
        write_timeout=config['WRITE_TIMEOUT'],
        max_workers=config['WRITE_MAX_WORKERS'],
    )
    return AppServices(
        storage=storage,
        portfolios=portfolios,
        retirement_accounts=retirement_accounts,
        bank_accounts=bank_accounts,
        quotes=quotes,
        price_sync=price_sync,
    )


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(PortfolioError)
    def handle_portfolio_error(error):
        return portfolio_error_response(error)

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(error):
        return error_response('Uploaded file is too large', status=413, error_code='PAYLOAD_TOO_LARGE')

    @app.errorhandler(429)
    def handle_rate_limited(error):
        return error_response(f'Rate limit exceeded: {error.description}', status=429, error_code='RATE_LIMITED')

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return error_response(error.description or error.name, status=error.code)

    @app.errorhandler(Exception)
    def handle_unexpected(error):
        logger.exception("Unhandled error")
        return error_response('Internal server error', status=500)


def create_app(config_name=None, overrides=None):
    app = Flask(__name__)

    # Load configuration from config.py
    from config import config

    # Determine config name from environment or parameter
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    app.config.from_object(config.get(config_name, config['development']))
    app.json.sort_keys = False
    if overrides:
        app.config.update(overrides)

    logging.basicConfig(level=getattr(logging, str(app.config['LOG_LEVEL']).upper(), logging.INFO))
    logger.info(f"Logger initialized at {app.config['LOG_LEVEL']} level ({config_name} configuration)")

    cache.init_app(app)
    limiter.init_app(app)

    services = build_services(app)
    app.extensions[EXTENSION_KEY] = services

    # Repository listeners may fire from price refresh worker threads
    from portfolio_manager.routes.main_routes import invalidate_dashboard_summary

    def on_collection_changed(collection, items):
        with app.app_context():
            invalidate_dashboard_summary()

    for repository in (services.portfolios, services.retirement_accounts, services.bank_accounts):
        repository.subscribe(on_collection_changed)

    register_error_handlers(app)

    # Register blueprints
    from portfolio_manager.routes import bank_account_bp, main_bp, portfolio_bp, price_bp, retirement_bp
    app.register_blueprint(main_bp)
    app.register_blueprint(portfolio_bp)
    app.register_blueprint(retirement_bp)
    app.register_blueprint(bank_account_bp)
    app.register_blueprint(price_bp)

    from portfolio_manager.commands import register_commands
    register_commands(app)

    @app.route('/health')
    def health_check():
        """Health check endpoint for Docker and load balancers."""
        timestamp = datetime.now(timezone.utc).isoformat()
        if services.storage.ping():
            return jsonify({
                'status': 'healthy',
                'timestamp': timestamp,
                'storage': services.storage.name,
                'price_refresh': services.price_sync.state.value,
            }), 200

        logger.error(f"Health check failed: {services.storage.name} storage unreachable")
        return jsonify({
            'status': 'unhealthy',
            'timestamp': timestamp,
            'storage': services.storage.name,
            'error': 'storage unreachable',
        }), 503

    return app
