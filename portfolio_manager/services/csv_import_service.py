"""
CSV import for brokerage holdings.

Broker exports disagree on column names, separators and number formatting,
so parsing is tolerant: headers are matched by alias substrings, numbers are
cleaned before parsing and every data row is decoded in isolation. A bad row
is reported and skipped; it never aborts the rest of the file.

Pure text transform - no file system or network access.
"""

import io
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from portfolio_manager.models import Holding, ParseResult

logger = logging.getLogger(__name__)

# Checked in order; the first header containing an alias wins
COLUMN_ALIASES = {
    'symbol': ['symbol', 'ticker', 'stock'],
    'name': ['description', 'company', 'name'],
    'type': ['type', 'assettype', 'securitytype'],
    'shares': ['shares', 'quantity', 'qty', 'units'],
    'avg_cost': ['avgcost', 'averagecost', 'costbasis', 'cost', 'purchaseprice'],
    'current_price': ['currentprice', 'price', 'lastprice', 'marketprice', 'close'],
}

# Priority order matters: "exchange traded fund" must not fall through to the fund rule
TYPE_KEYWORDS = [
    ('etf', ('etf', 'exchange traded', 'exchange-traded', 'exchangetraded')),
    ('bond', ('bond',)),
    ('mutual_fund', ('mutual', 'fund')),
    ('crypto', ('crypto',)),
    ('cash', ('cash',)),
    ('other', ('other',)),
]

TEMPLATE_COLUMNS = ['Symbol', 'Name', 'Type', 'Shares', 'AvgCost', 'CurrentPrice']

TEMPLATE_CSV = """Symbol,Name,Type,Shares,AvgCost,CurrentPrice
AAPL,Apple Inc,stock,10,150.00,175.00
MSFT,Microsoft,stock,5,300.00,380.00
VOO,Vanguard S&P 500 ETF,etf,20,400.00,450.00"""

_NUMBER_PREFIX = re.compile(r'^\s*[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?')
_HEADER_SEPARATORS = re.compile(r'[_\s-]')
_NUMERIC_NOISE = re.compile(r'[,$]')
_LINE_BREAK = re.compile(r'\r?\n')

ColumnMap = Dict[str, Optional[int]]


@dataclass
class ImportResult:
    """ParseResult plus what was merged into the target portfolio."""
    parse_result: ParseResult
    imported: List[Holding] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = self.parse_result.to_dict()
        data['imported_count'] = len(self.imported)
        return data


def normalize_header(header: str) -> str:
    """Lowercase and drop underscores, hyphens and whitespace ("Avg Cost" -> "avgcost")."""
    return _HEADER_SEPARATORS.sub('', header.strip().lower())


def split_csv_line(line: str) -> List[str]:
    """
    Split one CSV line on commas outside double quotes, trimming each field.

    A doubled quote inside a quoted field is a literal quote character.
    """
    fields = []
    current = []
    in_quotes = False
    i = 0
    while i < len(line):
        char = line[i]
        if char == '"':
            if in_quotes and i + 1 < len(line) and line[i + 1] == '"':
                current.append('"')
                i += 1
            else:
                in_quotes = not in_quotes
        elif char == ',' and not in_quotes:
            fields.append(''.join(current).strip())
            current = []
        else:
            current.append(char)
        i += 1
    fields.append(''.join(current).strip())
    return fields


def map_columns(headers: List[str]) -> ColumnMap:
    """Resolve each canonical field to the index of the first matching normalized header."""
    column_map = {}
    for field_name, aliases in COLUMN_ALIASES.items():
        column_map[field_name] = None
        for alias in aliases:
            index = next((i for i, header in enumerate(headers) if alias in header), None)
            if index is not None:
                column_map[field_name] = index
                break
    return column_map


def classify_type(type_text: str) -> str:
    text = type_text.lower()
    for holding_type, keywords in TYPE_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return holding_type
    return 'stock'


def parse_number(text: str) -> Optional[float]:
    """
    Parse the leading number of ``text`` after stripping "$" and ",".

    Returns None when no number can be read. Never returns NaN or infinity.
    """
    match = _NUMBER_PREFIX.match(_NUMERIC_NOISE.sub('', text))
    if not match:
        return None
    return float(match.group(0))


def _parse_row(values: List[str], column_map: ColumnMap) -> Optional[Holding]:
    """Decode one data row. Returns None for rows that are skipped silently."""

    def get_value(key: str) -> str:
        index = column_map.get(key)
        if index is None or index >= len(values):
            return ''
        return values[index].strip()

    symbol = get_value('symbol').upper().replace('"', '').replace("'", '')
    if not symbol:
        return None

    shares = parse_number(get_value('shares')) or 0.0
    if shares <= 0:
        return None

    avg_cost = parse_number(get_value('avg_cost')) or 0.0
    current_price = parse_number(get_value('current_price'))
    if current_price is None:
        current_price = avg_cost

    if avg_cost < 0:
        raise ValueError(f"Average cost cannot be negative ({avg_cost})")
    if current_price < 0:
        raise ValueError(f"Current price cannot be negative ({current_price})")

    return Holding(
        symbol=symbol,
        name=get_value('name') or symbol,
        type=classify_type(get_value('type')),
        shares=shares,
        avg_cost=avg_cost,
        current_price=current_price,
    )


class CSVImportService:
    """
    Parse broker CSV exports into holdings and merge them into portfolios.

    Expected columns: Symbol, Name, Type, Shares, AvgCost, CurrentPrice.
    Only a symbol column is required; header names are case-insensitive and
    separator-agnostic ("Avg Cost", "avg_cost" and "AvgCost" all match).
    """

    @staticmethod
    def parse(content: str) -> ParseResult:
        result = ParseResult()

        lines = _LINE_BREAK.split(content.strip())
        if len(lines) < 2:
            result.errors.append('CSV file must have a header row and at least one data row')
            return result

        headers = [normalize_header(h) for h in split_csv_line(lines[0])]
        column_map = map_columns(headers)
        logger.debug(f"Resolved CSV columns: {column_map}")

        if column_map['symbol'] is None:
            result.errors.append('Missing required column: Symbol')
            logger.warning(f"CSV rejected, no symbol column among headers {headers}")
            return result

        for line_index, raw_line in enumerate(lines[1:], start=2):
            line = raw_line.strip()
            if not line:
                continue
            try:
                holding = _parse_row(split_csv_line(line), column_map)
            except Exception as e:
                result.errors.append(f"Row {line_index}: {e}")
                continue
            if holding is not None:
                result.holdings.append(holding)

        if not result.holdings and not result.errors:
            result.warnings.append('No valid holdings found in CSV')

        logger.info(
            f"Parsed CSV: {len(result.holdings)} holdings, "
            f"{len(result.errors)} errors, {len(result.warnings)} warnings"
        )
        return result

    @staticmethod
    def generate_template() -> str:
        """Sample CSV offered for download."""
        return TEMPLATE_CSV

    @staticmethod
    def export_holdings(holdings: List[Holding]) -> str:
        """Render holdings in the template layout so the file re-imports unchanged."""
        # Lazy import pandas - only needed when exporting
        import pandas as pd

        df = pd.DataFrame(
            [[h.symbol, h.name, h.type, h.shares, h.avg_cost, h.current_price] for h in holdings],
            columns=TEMPLATE_COLUMNS,
        )
        buffer = io.StringIO()
        df.to_csv(buffer, index=False, lineterminator='\n')
        return buffer.getvalue()

    @staticmethod
    def import_holdings(repository, portfolio_id: str, content: str, preview: bool = False) -> ImportResult:
        """
        Parse ``content`` and append the holdings to a portfolio.

        Errors and warnings are returned alongside whatever parsed
        successfully; partial files are still imported.
        """
        repository.require(portfolio_id)
        parse_result = CSVImportService.parse(content)
        if preview or not parse_result.holdings:
            return ImportResult(parse_result)

        imported = repository.add_holdings(portfolio_id, parse_result.holdings)
        logger.info(f"Imported {len(imported)} holdings into portfolio {portfolio_id}")
        return ImportResult(parse_result, imported)
