"""Option symbol parser tests."""

from datetime import date

import pytest

from derivrisk.schemas.positions import OptionClass
from derivrisk.services.greeks import extract_underlying, parse_option_symbol


def test_parse_call_symbol():
    parsed = parse_option_symbol("NIFTY24JAN20000CE")
    assert parsed is not None
    assert parsed.underlying == "NIFTY"
    assert parsed.expiry_date == date(2024, 1, 25)
    assert parsed.strike == 20000
    assert parsed.option_class == OptionClass.CALL


def test_parse_put_symbol():
    parsed = parse_option_symbol("BANKNIFTY24FEB45000PE")
    assert parsed.underlying == "BANKNIFTY"
    assert parsed.expiry_date == date(2024, 2, 29)
    assert parsed.option_class == OptionClass.PUT


def test_parse_is_case_insensitive():
    assert parse_option_symbol("nifty24jan20000ce").underlying == "NIFTY"


@pytest.mark.parametrize(
    "symbol",
    [
        "NIFTY",
        "NIFTY24JANFUT",
        "NIFTY24XYZ20000CE",
        "24JAN20000CE",
        "NIFTY24JAN20000XX",
        "NIFTY24JAN0CE",
        "",
    ],
)
def test_malformed_symbols_return_none(symbol):
    assert parse_option_symbol(symbol) is None


def test_extract_underlying():
    assert extract_underlying("RELIANCE24MAR2500CE") == "RELIANCE"
    assert extract_underlying("NIFTY") == "NIFTY"
    assert extract_underlying("123") is None
