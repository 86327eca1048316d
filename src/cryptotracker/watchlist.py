import abc
import asyncio
import json
from collections.abc import Callable, Iterable
from pathlib import Path

import aiofiles
import aiofiles.os
from loguru import logger

from cryptotracker.models import Product


def encode_watchlist(products: Iterable[Product]) -> bytes:
    """Serialises a watchlist as a UTF-8 JSON array of product objects."""
    return json.dumps([product.to_dict() for product in products]).encode("utf-8")


def decode_watchlist(blob: bytes | None) -> list[Product]:
    """Deserialises a watchlist blob.

    A missing or empty blob is an empty watchlist, and so is a blob that cannot
    be decoded: corruption is logged, never raised. If a product id occurs more
    than once only its first entry is kept.

    Args:
        blob: The stored bytes, or None if nothing was stored yet.

    Returns:
        The products in storage order.
    """
    if not blob:
        return []

    try:
        data = json.loads(blob.decode("utf-8"))
        if not isinstance(data, list):
            err_msg = f"Expected a JSON array, got {type(data).__name__}"
            raise ValueError(err_msg)
        products = [Product.from_api(item) for item in data]
    except ValueError as e:
        logger.warning(f"Could not decode the watchlist, treating it as empty: {e}")
        return []

    seen: set[str] = set()
    unique: list[Product] = []
    for product in products:
        if product.id not in seen:
            seen.add(product.id)
            unique.append(product)
    return unique


class BlobStorage(abc.ABC):
    """Durable storage for a single opaque blob."""

    @abc.abstractmethod
    async def read(self) -> bytes | None:
        """Returns the stored blob, or None if nothing has been stored."""
        raise NotImplementedError

    @abc.abstractmethod
    async def write(self, blob: bytes) -> None:
        """Replaces the stored blob."""
        raise NotImplementedError


class MemoryBlobStorage(BlobStorage):
    """Keeps the blob in memory, for tests and throwaway sessions."""

    def __init__(self, blob: bytes | None = None) -> None:
        self.blob = blob

    async def read(self) -> bytes | None:
        return self.blob

    async def write(self, blob: bytes) -> None:
        self.blob = blob


class FileBlobStorage(BlobStorage):
    """Stores the blob in a file without blocking the event loop.

    Writes go to a sibling temporary file that then replaces the target, so a
    crash mid-write leaves the previous blob intact.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    async def read(self) -> bytes | None:
        if not await aiofiles.os.path.exists(self.path):
            return None
        try:
            async with aiofiles.open(self.path, mode="rb") as f:
                return await f.read()
        except OSError as e:
            logger.warning(f"Could not read watchlist from '{self.path}': {e}")
            return None

    async def write(self, blob: bytes) -> None:
        await aiofiles.os.makedirs(self.path.parent, exist_ok=True)
        tmp_path = self.path.with_name(f"{self.path.name}.tmp")
        async with aiofiles.open(tmp_path, mode="wb") as f:
            await f.write(blob)
            await f.flush()
        await aiofiles.os.replace(tmp_path, self.path)
        logger.debug(f"Wrote {len(blob)} bytes to '{self.path}'.")


class WatchlistStore:
    """The user's persisted set of watched products.

    Products are stored whole, so the watchlist can be shown while the catalog
    is unreachable. Every mutation reads the full list from storage, changes
    it and writes the full list back. The read-modify-write cycle runs under a
    lock so that concurrent mutations never lose each other's changes.
    """

    def __init__(self, storage: BlobStorage) -> None:
        self.storage = storage
        self._lock = asyncio.Lock()

    async def all(self) -> list[Product]:
        """Returns the watched products in storage order."""
        return decode_watchlist(await self.storage.read())

    async def contains(self, product_id: str) -> bool:
        """Returns True if a product with this id is watched."""
        return any(product.id == product_id for product in await self.all())

    async def add(self, product: Product) -> None:
        """Watches a product. Does nothing if its id is already watched."""

        def _add(products: list[Product]) -> list[Product] | None:
            if any(p.id == product.id for p in products):
                return None
            return [*products, product]

        if await self._mutate(_add):
            logger.info(f"Added {product.id} to the watchlist.")

    async def remove(self, product_id: str) -> None:
        """Stops watching a product. Does nothing if it is not watched."""

        def _remove(products: list[Product]) -> list[Product] | None:
            remaining = [p for p in products if p.id != product_id]
            return None if len(remaining) == len(products) else remaining

        if await self._mutate(_remove):
            logger.info(f"Removed {product_id} from the watchlist.")

    async def toggle(self, product: Product) -> bool:
        """Adds the product if it is not watched, removes it otherwise.

        Returns:
            True if the product is watched afterwards.
        """
        watched = False

        def _toggle(products: list[Product]) -> list[Product]:
            nonlocal watched
            remaining = [p for p in products if p.id != product.id]
            if len(remaining) < len(products):
                return remaining
            watched = True
            return [*products, product]

        await self._mutate(_toggle)
        logger.info(
            f"{'Added' if watched else 'Removed'} {product.id} "
            f"{'to' if watched else 'from'} the watchlist."
        )
        return watched

    async def _mutate(
        self, change: Callable[[list[Product]], list[Product] | None]
    ) -> bool:
        """Applies `change` to the stored list and writes the result back.

        `change` returns None when there is nothing to write.

        Returns:
            True if the stored list was rewritten.
        """
        async with self._lock:
            products = decode_watchlist(await self.storage.read())
            updated = change(products)
            if updated is None:
                return False
            await self.storage.write(encode_watchlist(updated))
            return True
