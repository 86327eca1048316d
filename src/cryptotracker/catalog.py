from collections.abc import Iterable, Mapping
from enum import Enum

from cryptotracker.converter import parse_decimal
from cryptotracker.models import Product, Statistics
from cryptotracker.validator import is_valid


class PriceTrend(Enum):
    UP = "up"
    DOWN = "down"


def search_products(products: Iterable[Product], query: str) -> list[Product]:
    """Finds products whose base currency starts with the query.

    Matching is case-insensitive. A blank query matches nothing.
    """
    prefix = query.strip().upper()
    if not prefix:
        return []
    return [p for p in products if p.base_currency.upper().startswith(prefix)]


def displayable_products(
    products: Iterable[Product],
    stats: Mapping[str, Statistics],
    quote_currency: str = "",
) -> list[Product]:
    """Selects the products that can be listed, in catalog order.

    A product is listed only once it has valid statistics. If `quote_currency`
    is set, only products quoted in it are listed.
    """
    return [
        p
        for p in products
        if (not quote_currency or p.quote_currency == quote_currency)
        and is_valid(stats.get(p.display_name))
    ]


def price_trend(stats: Statistics) -> PriceTrend:
    """Whether the last price is above the open price.

    Unparsable prices count as zero.
    """
    last = parse_decimal(stats.last) or 0
    open_ = parse_decimal(stats.open) or 0
    return PriceTrend.UP if last > open_ else PriceTrend.DOWN
