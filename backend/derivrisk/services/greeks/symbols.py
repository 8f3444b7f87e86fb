"""
NSE option symbol parsing.

Grammar: <UNDERLYING><YY><MMM><STRIKE><CE|PE>
Example: NIFTY24JAN20000CE -> NIFTY, Jan 2024 monthly expiry, 20000 call
"""

import re
from dataclasses import dataclass
from datetime import date
from typing import Optional

from derivrisk.core.market_hours import MONTHS, get_monthly_expiry
from derivrisk.schemas.positions import OptionClass

OPTION_SYMBOL_RE = re.compile(r"^([A-Z]+)(\d{2})([A-Z]{3})(\d+(?:\.\d+)?)(CE|PE)$")
UNDERLYING_RE = re.compile(r"^([A-Z]+)")


@dataclass(frozen=True)
class ParsedOptionSymbol:
    underlying: str
    expiry_date: date
    strike: float
    option_class: OptionClass


def extract_underlying(symbol: str) -> Optional[str]:
    """Leading letters of a symbol, None if there are none."""
    match = UNDERLYING_RE.match(symbol.upper())
    return match.group(1) if match else None


def parse_option_symbol(symbol: str) -> Optional[ParsedOptionSymbol]:
    """Parse an option symbol. Returns None for malformed symbols."""
    match = OPTION_SYMBOL_RE.match(symbol.upper())
    if not match:
        return None

    underlying, yy, mmm, strike, kind = match.groups()
    month = MONTHS.get(mmm)
    if month is None:
        return None

    strike_value = float(strike)
    if strike_value <= 0:
        return None

    return ParsedOptionSymbol(
        underlying=underlying,
        expiry_date=get_monthly_expiry(2000 + int(yy), month),
        strike=strike_value,
        option_class=OptionClass.CALL if kind == "CE" else OptionClass.PUT,
    )
