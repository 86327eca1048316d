import asyncio
import contextlib
from enum import Enum

from loguru import logger

from cryptotracker.clients.base import CatalogClient
from cryptotracker.index import StatisticsIndex
from cryptotracker.models import Product, Statistics
from cryptotracker.publisher import ProductsUpdated, Publisher, Topic
from cryptotracker.utils.rate_limiter import RequestThrottle

# The public Coinbase Exchange endpoints allow about 10 requests per second
# per IP address.
DEFAULT_MAX_CONCURRENCY = 8
DEFAULT_RATE_LIMIT = 10


class SyncState(Enum):
    """Where the current sync session is in its lifecycle."""

    IDLE = "idle"
    FETCHING_CATALOG = "fetching_catalog"
    FETCHING_STATS = "fetching_stats"
    LIVE = "live"


class SyncCoordinator:
    """Fetches the product catalog, then the statistics of every product.

    A sync session lists the products once, publishes them, and then fans out
    one statistics request per product through a `RequestThrottle`. Each
    response is written into the `StatisticsIndex` as soon as it arrives; there
    is no barrier waiting for the whole fan-out, and completion order does not
    matter.

    Every session is tagged with a generation number. Starting a new session
    cancels the previous one, and any response that still lands for an older
    generation is discarded, so a resync never mixes in stale data.

    All state is mutated on the event loop that runs the coordinator, which is
    therefore the loop subscribers should consume their queues on.
    """

    def __init__(
        self,
        client: CatalogClient,
        index: StatisticsIndex | None = None,
        publisher: Publisher | None = None,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        rate_limit: int | None = DEFAULT_RATE_LIMIT,
    ) -> None:
        """Initializes the coordinator.

        Args:
            client: The catalog client used for all requests.
            index: The index to store statistics in. A new one is created if
                None.
            publisher: The publisher for product events. Defaults to the
                index's publisher so that both topics share one fan-out.
            max_concurrency: The cap on in-flight statistics requests.
            rate_limit: The cap on statistics requests started per second, or
                None for no rate limit.

        Raises:
            ValueError: If either limit is not a positive integer.
        """
        if not isinstance(max_concurrency, int) or max_concurrency <= 0:
            err_msg = "Max concurrency must be a positive integer."
            raise ValueError(err_msg)
        if rate_limit is not None and (
            not isinstance(rate_limit, int) or rate_limit <= 0
        ):
            err_msg = "Rate limit must be a positive integer or None."
            raise ValueError(err_msg)
        if index is None:
            index = StatisticsIndex(publisher)
        self.client = client
        self.index = index
        self.publisher = publisher if publisher is not None else index.publisher
        self.max_concurrency = max_concurrency
        self.rate_limit = rate_limit

        self._generation = 0
        self._state = SyncState.IDLE
        self._products: tuple[Product, ...] = ()
        self._task: asyncio.Task[None] | None = None

    @property
    def generation(self) -> int:
        """The generation number of the current session (0 before any sync)."""
        return self._generation

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def products(self) -> tuple[Product, ...]:
        """The products published by the current session."""
        return self._products

    def start(self) -> int:
        """Starts a new sync session in a background task.

        Any running session is cancelled and the statistics index is cleared.

        Returns:
            The generation number of the new session.
        """
        if self._task is not None and not self._task.done():
            logger.info(f"Superseding sync session {self._generation}.")
            self._task.cancel()

        self._generation += 1
        generation = self._generation
        self.index.clear()
        self._products = ()
        self._state = SyncState.FETCHING_CATALOG
        self._task = asyncio.create_task(self._run_session(generation))
        return generation

    async def wait(self) -> None:
        """Waits until the current session has fetched everything.

        If the session is superseded while waiting, waits for the newer one.

        Raises:
            Exception: Whatever unexpected error ended the session.
        """
        while self._task is not None:
            task = self._task
            await asyncio.wait({task})
            if task is self._task:
                exc = None if task.cancelled() else task.exception()
                if exc is not None:
                    raise exc
                break

    async def sync(self) -> tuple[Product, ...]:
        """Runs a full session and waits for it to finish.

        Returns:
            The products published by the session.
        """
        self.start()
        await self.wait()
        return self._products

    async def stop(self) -> None:
        """Cancels the running session, if any, and returns to IDLE."""
        # Bumping the generation makes late responses of the session stale.
        self._generation += 1
        if self._task is not None and not self._task.done():
            logger.info("Stopping sync session...")
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self._task = None
        self._state = SyncState.IDLE

    async def refresh_statistics(self, display_name: str) -> Statistics | None:
        """Fetches the statistics of a single product outside the fan-out.

        A valid result is written into the index unless a new session started
        while the request was in flight.

        Args:
            display_name: The product's display name.

        Returns:
            The fetched statistics if they are valid, otherwise None.
        """
        generation = self._generation
        stats = await self.client.get_statistics(display_name)
        if generation != self._generation:
            logger.debug(f"Discarding stale stats for {display_name}.")
            return None
        if not self.index.upsert(display_name, stats):
            return None
        return stats

    async def _run_session(self, generation: int) -> None:
        """Runs one sync session: the catalog fetch, then the stats fan-out."""
        logger.info(f"Sync session {generation} started.")
        try:
            products = await self.client.list_products()
        except Exception:
            logger.exception("Unexpected error fetching the product catalog.")
            products = []
        if generation != self._generation:
            return

        self._products = tuple(products)
        self.publisher.publish(
            Topic.PRODUCTS, ProductsUpdated(generation, self._products)
        )
        self._state = SyncState.FETCHING_STATS

        try:
            throttle = RequestThrottle(self.max_concurrency, self.rate_limit)
            async with throttle:
                results = await asyncio.gather(
                    *(
                        self._fetch_statistics(generation, product, throttle)
                        for product in products
                    )
                )
        except Exception:
            logger.exception(f"Sync session {generation} failed.")
            if generation == self._generation:
                self._state = SyncState.IDLE
            raise

        if generation == self._generation:
            self._state = SyncState.LIVE
            logger.info(
                f"Sync session {generation} finished: stats for "
                f"{sum(results)}/{len(products)} products."
            )

    async def _fetch_statistics(
        self, generation: int, product: Product, throttle: RequestThrottle
    ) -> bool:
        """Fetches and indexes one product's statistics.

        Returns:
            True if a valid record was stored.
        """
        try:
            async with throttle.acquire():
                if generation != self._generation:
                    return False
                stats = await self.client.get_statistics(product.display_name)
        except Exception:
            logger.exception(
                f"Unexpected error fetching stats for {product.display_name}."
            )
            return False

        if generation != self._generation:
            logger.debug(f"Discarding stale stats for {product.display_name}.")
            return False
        return self.index.upsert(product.display_name, stats)
