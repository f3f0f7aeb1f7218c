# Routes package initialization
from portfolio_manager.routes.main_routes import main_bp
from portfolio_manager.routes.portfolio_routes import portfolio_bp
from portfolio_manager.routes.retirement_routes import retirement_bp
from portfolio_manager.routes.bank_account_routes import bank_account_bp
from portfolio_manager.routes.price_routes import price_bp

__all__ = [
    'main_bp',
    'portfolio_bp',
    'retirement_bp',
    'bank_account_bp',
    'price_bp'
]
