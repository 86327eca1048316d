from urllib.parse import quote

import httpx
from loguru import logger

from cryptotracker.clients.base import DEFAULT_TIMEOUT_S, CatalogClient
from cryptotracker.models import Product, Statistics

DEFAULT_BASE_URL = "https://api.exchange.coinbase.com"


class CoinbaseCatalogClient(CatalogClient):
    """Catalog client for the Coinbase Exchange public REST API.

    Only unauthenticated market data endpoints are used, so no credentials
    are needed.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ) -> None:
        super().__init__(http_client=http_client, timeout_s=timeout_s)
        self.base_url = base_url.rstrip("/")

    @property
    def venue_name(self) -> str:
        """Returns the unique, lowercase identifier for the exchange."""
        return "coinbase"

    async def list_products(self) -> list[Product]:
        """Fetches the product catalog from `GET /products`."""
        url = f"{self.base_url}/products"
        try:
            response = await self.http_client.get(url)
            response.raise_for_status()
            data = response.json()
            if not isinstance(data, list):
                err_msg = f"Expected a JSON array, got {type(data).__name__}"
                raise ValueError(err_msg)
            products = [Product.from_api(item) for item in data]
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"[{self.venue_name}] Failed to fetch products: {e}")
            return []

        logger.info(f"[{self.venue_name}] Fetched {len(products)} products.")
        return products

    async def get_statistics(self, display_name: str) -> Statistics | None:
        """Fetches one product's statistics from `GET /products/{name}/stats`."""
        url = f"{self.base_url}/products/{quote(display_name, safe='')}/stats"
        try:
            response = await self.http_client.get(url)
            response.raise_for_status()
            stats = Statistics.from_api(response.json())
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(
                f"[{self.venue_name}] Failed to fetch stats for {display_name}: {e}"
            )
            return None

        logger.debug(f"[{self.venue_name}] Fetched stats for {display_name}.")
        return stats
