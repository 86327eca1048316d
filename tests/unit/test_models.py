import pytest
from hypothesis import given
from hypothesis import strategies as st

from cryptotracker.models import Product, ProductStatus, Statistics
from cryptotracker.validator import is_valid

PRODUCT_PAYLOAD = {
    "id": "BTC-USD",
    "base_currency": "BTC",
    "quote_currency": "USD",
    "status": "online",
    "display_name": "BTC-USD",
    "min_market_funds": "1",
}


def test_product_from_api_ignores_extra_keys() -> None:
    product = Product.from_api(PRODUCT_PAYLOAD)

    assert product == Product(
        id="BTC-USD",
        base_currency="BTC",
        quote_currency="USD",
        status="online",
        display_name="BTC-USD",
    )
    assert "min_market_funds" not in product.to_dict()


@pytest.mark.parametrize("missing", ["id", "base_currency", "display_name"])
def test_product_from_api_rejects_missing_fields(missing: str) -> None:
    payload = {k: v for k, v in PRODUCT_PAYLOAD.items() if k != missing}
    with pytest.raises(ValueError, match=missing):
        Product.from_api(payload)


def test_product_from_api_rejects_non_string_fields() -> None:
    with pytest.raises(ValueError, match="status"):
        Product.from_api({**PRODUCT_PAYLOAD, "status": 1})


def test_product_from_api_rejects_non_objects() -> None:
    with pytest.raises(ValueError):
        Product.from_api(["BTC-USD"])


@pytest.mark.parametrize(
    ("status", "kind"),
    [
        ("online", ProductStatus.ACTIVE),
        ("ACTIVE", ProductStatus.ACTIVE),
        ("offline", ProductStatus.OFFLINE),
        ("delisted", ProductStatus.OFFLINE),
        ("post_only", ProductStatus.OTHER),
    ],
)
def test_product_status_kind(status: str, kind: ProductStatus) -> None:
    product = Product.from_api({**PRODUCT_PAYLOAD, "status": status})
    assert product.status_kind is kind
    assert product.status == status


def test_statistics_from_api_keeps_strings_verbatim() -> None:
    stats = Statistics.from_api(
        {
            "open": "60000.00000000",
            "high": "61000.1",
            "low": "59000",
            "last": "60500.12345678901",
            "volume": "1000",
            "volume_30day": "30000",
            "rfq_volume_24hour": "12",
        }
    )
    assert stats.open == "60000.00000000"
    assert stats.last == "60500.12345678901"
    assert stats.is_valid


def test_statistics_from_api_turns_missing_and_null_fields_into_blanks() -> None:
    stats = Statistics.from_api({"open": None, "high": "1", "low": 2, "last": "3"})

    assert stats.open == ""
    assert stats.low == "2"
    assert stats.volume == ""
    assert not stats.is_valid


def test_statistics_from_api_rejects_non_objects() -> None:
    with pytest.raises(ValueError):
        Statistics.from_api(None)


def test_absent_statistics_are_invalid() -> None:
    assert not is_valid(None)


@given(values=st.lists(st.text(max_size=8), min_size=6, max_size=6))
def test_validity_requires_every_field(values: list[str]) -> None:
    """A record is valid exactly when none of its six fields is empty."""
    stats = Statistics(*values)
    assert stats.is_valid == all(values)
    assert is_valid(stats) == stats.is_valid


@pytest.mark.parametrize(
    "field_name", ["open", "high", "low", "last", "volume", "volume_30day"]
)
def test_any_single_empty_field_invalidates(field_name: str) -> None:
    payload = {
        "open": "60000",
        "high": "61000",
        "low": "59000",
        "last": "60500",
        "volume": "1000",
        "volume_30day": "30000",
    }
    assert Statistics.from_api(payload).is_valid
    assert not Statistics.from_api({**payload, field_name: ""}).is_valid
