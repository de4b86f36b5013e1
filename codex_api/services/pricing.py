"""
Price formatting and listing reduction for the price sync job.

All comparisons and arithmetic use Python ints on the fixed-point value, so
18-decimal wei amounts never go through float.
"""
from typing import Dict, Iterable

from codex_api.schemas.upstream import AdoptionPrice

MAX_FRACTION_DIGITS = 5


def format_price(value, decimals: int, currency: str, max_fraction_digits: int = MAX_FRACTION_DIGITS) -> str:
    """
    Format a fixed-point integer price as a short human string.

    The fractional remainder is left-padded to `decimals` digits, stripped of
    leading zeros, truncated to `max_fraction_digits` digits, then stripped
    of trailing zeros.

        >>> format_price("1337200000000000000", 18, "ETH")
        '1.3372 ETH'
        >>> format_price("2000000000000000000", 18, "ETH")
        '2 ETH'
    """
    numeric_value = int(value)
    divisor = 10 ** decimals
    whole_part, fractional_part = divmod(numeric_value, divisor)

    significant = str(fractional_part).zfill(decimals).lstrip("0")
    significant = significant[:max_fraction_digits].rstrip("0")

    if not significant:
        return f"{whole_part} {currency}"
    return f"{whole_part}.{significant} {currency}"


def lowest_prices_by_token(listings: Iterable[AdoptionPrice]) -> Dict[str, AdoptionPrice]:
    """Keep only the cheapest listing per tokenId (first one wins on ties)."""
    lowest: Dict[str, AdoptionPrice] = {}
    for listing in listings:
        existing = lowest.get(listing.tokenId)
        if existing is None or listing.price.amount < existing.price.amount:
            lowest[listing.tokenId] = listing
    return lowest
