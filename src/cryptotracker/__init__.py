# src/cryptotracker/__init__.py
"""CryptoTracker: a product catalog and statistics tracker for Coinbase Exchange.

This package contains the core synchronisation logic that keeps an in-memory,
observable view of the exchange's tradable products and their 24h/30d
statistics, together with a persisted watchlist and a price converter.

The library is built on asyncio: network reads are the only suspension points,
and all shared state is mutated on the event loop that runs the sync.

Key sub-packages:
- `clients`: Read-only REST clients for the product catalog.
- `utils`: Shared utilities such as the request throttle.
"""

import importlib.metadata

try:
    __version__: str = importlib.metadata.version("cryptotracker")
except importlib.metadata.PackageNotFoundError:
    # Not installed, e.g. running straight from a source checkout.
    __version__ = "0.0.0-dev"
