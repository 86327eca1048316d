import abc
import types
from typing import Self

import httpx
from loguru import logger

from cryptotracker.models import Product, Statistics

DEFAULT_TIMEOUT_S = 20.0


class CatalogClient(abc.ABC):
    """An abstract base class for product catalog clients.

    This class owns the HTTP client lifecycle. A client may either borrow an
    `httpx.AsyncClient` supplied by the caller (which the caller then closes)
    or create its own on first use and close it in `aclose()`.

    Subclasses implement the two read operations. Neither operation may raise
    for network or decode failures: `list_products` returns an empty list and
    `get_statistics` returns None instead.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ) -> None:
        """Initializes the client.

        Args:
            http_client: A shared httpx.AsyncClient to issue requests with. If
                None, the client creates and owns one.
            timeout_s: Request timeout for an owned HTTP client.
        """
        self._http_client = http_client
        self._owns_http_client = http_client is None
        self._timeout_s = timeout_s

    @property
    @abc.abstractmethod
    def venue_name(self) -> str:
        """A unique, lowercase identifier for the exchange (e.g., 'coinbase')."""
        raise NotImplementedError

    @property
    def http_client(self) -> httpx.AsyncClient:
        """The HTTP client used for requests, created on first access if owned."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self._timeout_s, follow_redirects=True
            )
            logger.debug(f"[{self.venue_name}] Created HTTP client.")
        return self._http_client

    async def aclose(self) -> None:
        """Closes the HTTP client if this catalog client created it."""
        if self._owns_http_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
            logger.debug(f"[{self.venue_name}] Closed HTTP client.")

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: types.TracebackType | None,
    ) -> None:
        await self.aclose()

    @abc.abstractmethod
    async def list_products(self) -> list[Product]:
        """Fetches every tradable product in the catalog.

        Returns:
            The products in the order the exchange reported them, or an empty
            list if the request or its decoding failed.
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def get_statistics(self, display_name: str) -> Statistics | None:
        """Fetches the 24h/30d statistics for one product.

        Args:
            display_name: The product's display name (e.g., "BTC-USD").

        Returns:
            The statistics as received, or None if the request or its decoding
            failed. The record is not validated here.
        """
        raise NotImplementedError
