"""
Tests for price formatting and listing reduction.
"""
import pytest

from codex_api.schemas.upstream import AdoptionPrice, PriceInfo
from codex_api.services.pricing import format_price, lowest_prices_by_token


def _listing(token_id, value, currency="ETH", decimals=18):
    return AdoptionPrice(tokenId=token_id, price=PriceInfo(value=value, currency=currency, decimals=decimals))


class TestFormatPrice:
    """format_price renders fixed-point integers."""

    def test_fractional_value(self):
        """Trailing zeros are removed from the fraction."""
        assert format_price("1337200000000000000", 18, "ETH") == "1.3372 ETH"

    def test_whole_value(self):
        """A zero fraction renders without a decimal point."""
        assert format_price("2000000000000000000", 18, "ETH") == "2 ETH"

    def test_truncates_to_max_digits(self):
        """Digits beyond the limit are truncated, not rounded."""
        assert format_price("1999999999999999999", 18, "ETH") == "1.99999 ETH"

    def test_custom_max_digits(self):
        assert format_price("1123456000000000000", 18, "ETH", max_fraction_digits=2) == "1.12 ETH"

    def test_zero_decimals(self):
        assert format_price("42", 0, "USDC") == "42 USDC"

    def test_leading_fraction_zeros_are_dropped(self):
        """0.05 renders as .5 because leading zeros of the remainder are stripped."""
        assert format_price("1050000000000000000", 18, "ETH") == "1.5 ETH"

    def test_zero_value(self):
        assert format_price("0", 18, "ETH") == "0 ETH"

    def test_accepts_int(self):
        assert format_price(1500000, 6, "USDC") == "1.5 USDC"

    def test_rejects_non_numeric(self):
        with pytest.raises(ValueError):
            format_price("abc", 18, "ETH")


class TestLowestPricesByToken:
    """lowest_prices_by_token keeps the cheapest listing per token."""

    def test_keeps_lowest(self):
        listings = [
            _listing("1", "2000000000000000000"),
            _listing("1", "1500000000000000000"),
            _listing("2", "3000000000000000000"),
        ]
        lowest = lowest_prices_by_token(listings)
        assert set(lowest) == {"1", "2"}
        assert lowest["1"].price.value == "1500000000000000000"

    def test_integer_comparison_not_lexical(self):
        """'900' is lower than '1000' even though it sorts higher as text."""
        lowest = lowest_prices_by_token([_listing("5", "1000"), _listing("5", "900")])
        assert lowest["5"].price.value == "900"

    def test_first_wins_on_tie(self):
        first = _listing("3", "100", currency="ETH")
        second = _listing("3", "100", currency="WETH")
        assert lowest_prices_by_token([first, second])["3"] is first

    def test_empty(self):
        assert lowest_prices_by_token([]) == {}
