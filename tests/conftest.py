import asyncio
from collections.abc import Iterable

import pytest

from cryptotracker.clients.base import CatalogClient
from cryptotracker.models import Product, Statistics

BTC_USD_STATS = Statistics(
    open="60000",
    high="61000",
    low="59000",
    last="60500",
    volume="1000",
    volume_30day="30000",
)


def make_product(base: str, quote: str, status: str = "online") -> Product:
    """Helper to create a Product in the catalog's naming convention."""
    name = f"{base}-{quote}"
    return Product(
        id=name,
        base_currency=base,
        quote_currency=quote,
        status=status,
        display_name=name,
    )


class FakeCatalogClient(CatalogClient):
    """An in-memory catalog client with controllable statistics responses.

    A response is looked up when the request starts. A gate registered for a
    display name holds the next request for it until the gate is set.
    """

    def __init__(
        self,
        products: Iterable[Product] = (),
        stats: dict[str, Statistics | Exception | None] | None = None,
    ) -> None:
        super().__init__()
        self.products = list(products)
        self.stats = dict(stats or {})
        self.gates: dict[str, asyncio.Event] = {}
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def venue_name(self) -> str:
        return "fake"

    def gate(self, display_name: str) -> asyncio.Event:
        """Holds the next statistics request for `display_name`."""
        event = asyncio.Event()
        self.gates[display_name] = event
        return event

    async def list_products(self) -> list[Product]:
        await asyncio.sleep(0)
        return list(self.products)

    async def get_statistics(self, display_name: str) -> Statistics | None:
        self.calls.append(display_name)
        result = self.stats.get(display_name)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            gate = self.gates.pop(display_name, None)
            if gate is not None:
                await gate.wait()
            else:
                await asyncio.sleep(0.001)
        finally:
            self.in_flight -= 1
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def btc_usd() -> Product:
    return make_product("BTC", "USD")


@pytest.fixture
def eth_usd() -> Product:
    return make_product("ETH", "USD")


@pytest.fixture
def eth_eur() -> Product:
    return make_product("ETH", "EUR")
