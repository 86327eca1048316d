from dataclasses import asdict, dataclass, fields
from enum import Enum
from typing import Any, Self

from cryptotracker import validator

# Raw status strings reported by the catalog endpoint, grouped by meaning.
_ACTIVE_STATUSES = frozenset({"online", "active"})
_OFFLINE_STATUSES = frozenset({"offline", "delisted"})


class ProductStatus(Enum):
    """Coarse trading status of a product."""

    ACTIVE = "active"
    OFFLINE = "offline"
    OTHER = "other"


@dataclass(frozen=True)
class Product:
    """A tradable trading pair from the exchange catalog.

    Products are immutable once fetched. The `display_name` (conventionally
    "BASE-QUOTE") is the key used to look up a product's statistics.
    """

    id: str
    base_currency: str
    quote_currency: str
    status: str
    display_name: str

    @classmethod
    def from_api(cls, data: Any) -> Self:
        """Builds a Product from a catalog JSON object.

        Extra keys in the payload are ignored.

        Raises:
            ValueError: If `data` is not an object, or a field is missing or is
                not a string.
        """
        if not isinstance(data, dict):
            err_msg = f"Expected a product object, got {type(data).__name__}"
            raise ValueError(err_msg)

        values: dict[str, str] = {}
        for f in fields(cls):
            value = data.get(f.name)
            if not isinstance(value, str):
                err_msg = f"Product field '{f.name}' is missing or not a string"
                raise ValueError(err_msg)
            values[f.name] = value
        return cls(**values)

    def to_dict(self) -> dict[str, str]:
        """Returns the catalog JSON object form of this product."""
        return asdict(self)

    @property
    def status_kind(self) -> ProductStatus:
        """The raw `status` string mapped onto a ProductStatus."""
        status = self.status.lower()
        if status in _ACTIVE_STATUSES:
            return ProductStatus.ACTIVE
        if status in _OFFLINE_STATUSES:
            return ProductStatus.OFFLINE
        return ProductStatus.OTHER


@dataclass(frozen=True)
class Statistics:
    """24h and 30d price/volume statistics for one product.

    All values are kept as the decimal-formatted strings received from the
    exchange so that no precision is lost at the boundary.
    """

    open: str
    high: str
    low: str
    last: str
    volume: str
    volume_30day: str

    @classmethod
    def from_api(cls, data: Any) -> Self:
        """Builds a Statistics record from a stats JSON object.

        Missing or null fields become empty strings, so an incomplete payload
        produces an invalid record instead of an error. Numbers are converted
        to their string form.

        Raises:
            ValueError: If `data` is not an object.
        """
        if not isinstance(data, dict):
            err_msg = f"Expected a stats object, got {type(data).__name__}"
            raise ValueError(err_msg)

        values: dict[str, str] = {}
        for f in fields(cls):
            value = data.get(f.name)
            values[f.name] = "" if value is None else str(value)
        return cls(**values)

    def to_dict(self) -> dict[str, str]:
        """Returns the stats JSON object form of this record."""
        return asdict(self)

    @property
    def is_valid(self) -> bool:
        """True if every field is present and non-empty."""
        return validator.is_valid(self)
