"""
Flask CLI commands.

Usage:
    flask --app run init-storage
    flask --app run seed-demo
    flask --app run refresh-prices
    flask --app run import-csv PORTFOLIO_ID holdings.csv [--preview]
    flask --app run backup-storage
"""

import logging

import click
from flask import Flask
from flask.cli import with_appcontext

from portfolio_manager.exceptions import PortfolioError
from portfolio_manager.extensions import get_services
from portfolio_manager.models import (
    BankAccount,
    Holding,
    Portfolio,
    RetirementAccount,
    RetirementHolding,
    generate_id,
)
from portfolio_manager.services import CSVImportService

logger = logging.getLogger(__name__)

# fmt: off
DEMO_PORTFOLIOS = [
    {"name": "Global Core", "broker": "Fidelity", "holdings": [
        {"symbol": "VT",   "name": "Vanguard Total World Stock",     "type": "etf",   "shares": 100, "avg_cost": 95.0,   "current_price": 110.0},
        {"symbol": "AGG",  "name": "iShares Core US Aggregate Bond", "type": "bond",  "shares": 70,  "avg_cost": 108.5,  "current_price": 100.0},
        {"symbol": "VTI",  "name": "Vanguard Total Stock Market",    "type": "etf",   "shares": 20,  "avg_cost": 225.0,  "current_price": 280.0},
    ]},
    {"name": "Tech & AI", "broker": "Schwab", "holdings": [
        {"symbol": "AAPL", "name": "Apple",     "type": "stock", "shares": 15, "avg_cost": 186.6, "current_price": 230.0},
        {"symbol": "MSFT", "name": "Microsoft", "type": "stock", "shares": 8,  "avg_cost": 275.0, "current_price": 400.0},
        {"symbol": "NVDA", "name": "NVIDIA",    "type": "stock", "shares": 25, "avg_cost": 60.0,  "current_price": 130.0},
    ]},
    {"name": "Alternatives", "broker": "Coinbase", "holdings": [
        {"symbol": "BTC-USD", "name": "Bitcoin",         "type": "crypto", "shares": 0.15, "avg_cost": 53333.0, "current_price": 95000.0},
        {"symbol": "GLD",     "name": "SPDR Gold Trust", "type": "etf",    "shares": 8,    "avg_cost": 187.5,   "current_price": 250.0},
        {"symbol": "USD",     "name": "Cash sweep",      "type": "cash",   "shares": 1200, "avg_cost": 1.0,     "current_price": 1.0},
    ]},
]

DEMO_RETIREMENT_ACCOUNTS = [
    {"name": "Employer 401k", "type": "401k", "provider": "Vanguard", "employer": "Acme Corp",
     "contribution_ytd": 14500.0, "employer_match_ytd": 4350.0, "vesting_percent": 80.0, "holdings": [
        {"name": "Target Retirement 2055", "ticker": "VFFVX", "type": "target_date", "shares": 850, "current_value": 46750.0},
        {"name": "Stable Value Fund",      "ticker": None,    "type": "other",       "shares": 0,   "current_value": 8200.0},
     ]},
    {"name": "Roth IRA", "type": "roth_ira", "provider": "Fidelity", "contribution_ytd": 6500.0, "holdings": [
        {"name": "Fidelity 500 Index", "ticker": "FXAIX", "type": "stock", "shares": 120, "current_value": 22800.0},
     ]},
]

DEMO_BANK_ACCOUNTS = [
    {"name": "Everyday Checking", "type": "checking", "bank_name": "Chase", "balance": 5200.0},
    {"name": "Emergency Fund", "type": "savings", "bank_name": "Ally", "balance": 18000.0, "interest_rate": 4.2},
]
# fmt: on


def _replace_by_name(repository, items) -> int:
    """Delete existing containers with the same names, then create ``items``."""
    names = {item.name for item in items}
    for existing in repository.get_all():
        if existing.name in names:
            repository.delete(existing.id)
    for item in items:
        repository.create(item)
    return len(items)


def seed_demo_data(services) -> dict:
    """
    Load the demo containers. Idempotent: demo containers from an earlier
    run are deleted first, anything else is left alone.
    """
    portfolios = [
        Portfolio(
            name=p['name'],
            broker=p['broker'],
            holdings=[Holding(id=generate_id(), **h) for h in p['holdings']],
        )
        for p in DEMO_PORTFOLIOS
    ]
    retirement_accounts = []
    for data in DEMO_RETIREMENT_ACCOUNTS:
        data = dict(data)
        holdings = [RetirementHolding(id=generate_id(), **h) for h in data.pop('holdings')]
        retirement_accounts.append(RetirementAccount(holdings=holdings, **data))
    bank_accounts = [BankAccount(**data) for data in DEMO_BANK_ACCOUNTS]

    counts = {
        'portfolios': _replace_by_name(services.portfolios, portfolios),
        'retirement_accounts': _replace_by_name(services.retirement_accounts, retirement_accounts),
        'bank_accounts': _replace_by_name(services.bank_accounts, bank_accounts),
    }
    logger.info(f"Seeded demo data: {counts}")
    return counts


@click.command('init-storage')
@with_appcontext
def init_storage_command():
    """Create the configured backing store if it does not exist yet."""
    services = get_services()
    services.storage.initialize()
    click.echo(f"Initialized {services.storage.name} storage.")


@click.command('seed-demo')
@with_appcontext
def seed_demo_command():
    """Load demo portfolios, retirement and bank accounts."""
    try:
        counts = seed_demo_data(get_services())
    except PortfolioError as e:
        raise click.ClickException(f"Seeding failed: {e}")
    click.echo(
        f"Seeded {counts['portfolios']} portfolios, {counts['retirement_accounts']} retirement accounts "
        f"and {counts['bank_accounts']} bank accounts."
    )


@click.command('refresh-prices')
@with_appcontext
def refresh_prices_command():
    """Fetch current quotes and update every container."""
    try:
        summary = get_services().price_sync.refresh_all()
    except PortfolioError as e:
        raise click.ClickException(str(e))

    click.echo(summary.progress)
    click.echo(f"{summary.containers_updated}/{summary.containers_total} containers saved")
    for failure in summary.failures:
        click.echo(f"  failed: {failure['container']}: {failure['error']}", err=True)


@click.command('import-csv')
@click.argument('portfolio_id')
@click.argument('csv_file', type=click.File('r', encoding='utf-8-sig'))
@click.option('--preview', is_flag=True, help='Parse only; do not change the portfolio.')
@with_appcontext
def import_csv_command(portfolio_id, csv_file, preview):
    """Import holdings from CSV_FILE into PORTFOLIO_ID."""
    try:
        result = CSVImportService.import_holdings(
            get_services().portfolios, portfolio_id, csv_file.read(), preview=preview
        )
    except PortfolioError as e:
        raise click.ClickException(str(e))

    parse_result = result.parse_result
    for error in parse_result.errors:
        click.echo(f"error: {error}", err=True)
    for warning in parse_result.warnings:
        click.echo(f"warning: {warning}", err=True)

    if preview:
        click.echo(f"Parsed {len(parse_result.holdings)} holdings (preview, nothing imported).")
    else:
        click.echo(f"Imported {len(result.imported)} holdings.")


@click.command('backup-storage')
@with_appcontext
def backup_storage_command():
    """Back up the SQLite database file."""
    storage = get_services().storage
    backup = getattr(storage, 'backup', None)
    if backup is None:
        raise click.ClickException(f"The {storage.name} storage backend does not support backups")

    path = backup()
    if path is None:
        raise click.ClickException("Backup failed; see the log for details")
    click.echo(f"Backup written to {path}")


def register_commands(app: Flask) -> None:
    for command in (
        init_storage_command,
        seed_demo_command,
        refresh_prices_command,
        import_csv_command,
        backup_storage_command,
    ):
        app.cli.add_command(command)
