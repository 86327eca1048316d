import asyncio
import json
from pathlib import Path

import pytest

from cryptotracker.models import Product
from cryptotracker.watchlist import (
    FileBlobStorage,
    MemoryBlobStorage,
    WatchlistStore,
    decode_watchlist,
    encode_watchlist,
)

from conftest import make_product


class CountingStorage(MemoryBlobStorage):
    """Memory storage that counts how often the blob is rewritten."""

    def __init__(self, blob: bytes | None = None) -> None:
        super().__init__(blob)
        self.writes = 0

    async def write(self, blob: bytes) -> None:
        self.writes += 1
        await super().write(blob)


@pytest.fixture
def storage() -> CountingStorage:
    return CountingStorage()


@pytest.fixture
def store(storage: CountingStorage) -> WatchlistStore:
    return WatchlistStore(storage)


def test_encoded_watchlist_is_a_json_array_of_products(btc_usd: Product) -> None:
    assert json.loads(encode_watchlist([btc_usd])) == [
        {
            "id": "BTC-USD",
            "base_currency": "BTC",
            "quote_currency": "USD",
            "status": "online",
            "display_name": "BTC-USD",
        }
    ]


def test_decoding_preserves_storage_order() -> None:
    products = [make_product(base, "USD") for base in ("SOL", "BTC", "ADA")]
    assert decode_watchlist(encode_watchlist(products)) == products


@pytest.mark.parametrize(
    "blob",
    [
        b"\xff\xfe\x00garbage",
        b"[{",
        b'{"id": "BTC-USD"}',
        b'[{"id": "BTC-USD"}]',
        b"null",
    ],
    ids=["not-utf8", "bad-json", "not-a-list", "malformed-record", "null"],
)
def test_corrupted_blobs_decode_as_empty(blob: bytes) -> None:
    assert decode_watchlist(blob) == []


def test_missing_or_empty_blob_decodes_as_empty() -> None:
    assert decode_watchlist(None) == []
    assert decode_watchlist(b"") == []


def test_duplicate_ids_keep_the_first_entry(btc_usd: Product) -> None:
    renamed = Product("BTC-USD", "BTC", "USD", "offline", "BTC-USD")
    assert decode_watchlist(encode_watchlist([btc_usd, renamed])) == [btc_usd]


@pytest.mark.asyncio
async def test_corrupted_storage_reads_as_empty_watchlist() -> None:
    store = WatchlistStore(MemoryBlobStorage(b"\x00\x01corrupted"))

    assert await store.all() == []
    assert not await store.contains("BTC-USD")


@pytest.mark.asyncio
async def test_add_and_contains(
    store: WatchlistStore, btc_usd: Product, eth_usd: Product
) -> None:
    await store.add(btc_usd)
    await store.add(eth_usd)

    assert await store.all() == [btc_usd, eth_usd]
    assert await store.contains("BTC-USD")
    assert not await store.contains("ETH-EUR")


@pytest.mark.asyncio
async def test_add_is_idempotent(
    store: WatchlistStore, storage: CountingStorage, btc_usd: Product
) -> None:
    await store.add(btc_usd)
    await store.add(btc_usd)

    assert await store.all() == [btc_usd]
    assert storage.writes == 1


@pytest.mark.asyncio
async def test_remove_is_idempotent(
    store: WatchlistStore,
    storage: CountingStorage,
    btc_usd: Product,
    eth_usd: Product,
) -> None:
    await store.add(btc_usd)
    await store.add(eth_usd)

    await store.remove("BTC-USD")
    await store.remove("BTC-USD")
    await store.remove("DOGE-USD")

    assert await store.all() == [eth_usd]
    assert storage.writes == 3


@pytest.mark.asyncio
async def test_adding_over_corrupted_storage_starts_a_new_watchlist(
    btc_usd: Product,
) -> None:
    storage = MemoryBlobStorage(b"not json")
    store = WatchlistStore(storage)

    await store.add(btc_usd)

    assert decode_watchlist(storage.blob) == [btc_usd]


@pytest.mark.asyncio
async def test_toggle(store: WatchlistStore, btc_usd: Product) -> None:
    assert await store.toggle(btc_usd) is True
    assert await store.contains("BTC-USD")

    assert await store.toggle(btc_usd) is False
    assert await store.all() == []


@pytest.mark.asyncio
async def test_concurrent_mutations_are_not_lost() -> None:
    store = WatchlistStore(MemoryBlobStorage())
    products = [make_product(base, "USD") for base in "ABCDEFGHIJ"]

    await asyncio.gather(*(store.add(p) for p in products))

    assert sorted(p.id for p in await store.all()) == sorted(p.id for p in products)


@pytest.mark.asyncio
async def test_file_storage_persists_across_stores(
    tmp_path: Path, btc_usd: Product, eth_eur: Product
) -> None:
    path = tmp_path / "nested" / "watchlist.json"

    first = WatchlistStore(FileBlobStorage(path))
    await first.add(btc_usd)
    await first.add(eth_eur)

    second = WatchlistStore(FileBlobStorage(path))
    assert await second.all() == [btc_usd, eth_eur]
    assert not path.with_name("watchlist.json.tmp").exists()


@pytest.mark.asyncio
async def test_file_storage_reads_none_when_missing(tmp_path: Path) -> None:
    assert await FileBlobStorage(tmp_path / "missing.json").read() is None


@pytest.mark.asyncio
async def test_unreadable_file_reads_as_empty_watchlist(tmp_path: Path) -> None:
    path = tmp_path / "watchlist.json"
    path.mkdir()

    store = WatchlistStore(FileBlobStorage(path))

    assert await FileBlobStorage(path).read() is None
    assert await store.all() == []
