# src/cryptotracker/clients/__init__.py
"""This package contains the read-only REST clients for product catalogs.

Each client is a thin, stateless boundary over one exchange's public API. It
lists tradable products and fetches per-product statistics, absorbing every
transport or decode failure and reporting "no data" instead.

All clients inherit from the `CatalogClient` abstract base class defined in
`cryptotracker.clients.base`.
"""
