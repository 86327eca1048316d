from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation, localcontext
from typing import Final

MAX_FRACTION_DIGITS: Final[int] = 6
_QUANTUM: Final[Decimal] = Decimal(1).scaleb(-MAX_FRACTION_DIGITS)

Number = str | int | float | Decimal


def parse_decimal(value: Number | None) -> Decimal | None:
    """Parses user or API input into a finite Decimal.

    Surrounding whitespace is ignored. Empty, non-numeric and non-finite input
    (NaN, Infinity) yields None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, int | float):
        number = Decimal(str(value))
    else:
        text = value.strip()
        # Decimal() accepts digit separators, user input must not.
        if not text or "_" in text:
            return None
        try:
            number = Decimal(text)
        except InvalidOperation:
            return None
    return number if number.is_finite() else None


def _round(number: Decimal) -> Decimal:
    """Rounds to MAX_FRACTION_DIGITS, half to even."""
    digits = max(number.adjusted() + 1, 1) + MAX_FRACTION_DIGITS
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, digits)
        return number.quantize(_QUANTUM, rounding=ROUND_HALF_EVEN)


def format_number(value: Number | None) -> str:
    """Formats a number for display.

    The result has at most six fractional digits, no grouping separators, no
    trailing zeros and never uses exponent notation. Unparsable input formats
    as "0".

    Examples:
        >>> format_number("1234567.1234567")
        '1234567.123457'
        >>> format_number("60500.000")
        '60500'
    """
    number = parse_decimal(value)
    if number is None:
        return "0"

    text = format(_round(number), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return "0" if text == "-0" else text


class ConversionCalculator:
    """Converts between an amount of the base currency and its total value.

    The reference price is the product's last traded price in the quote
    currency. Each conversion returns the formatted result, or None when no
    result can be produced: the price is missing or not a positive number, or
    the input is empty or not a number.
    """

    def __init__(self, price: Number | None) -> None:
        parsed = parse_decimal(price)
        self.price: Decimal | None = None
        if parsed is not None and parsed > 0:
            self.price = parsed

    def total_value(self, amount_owned: Number | None) -> str | None:
        """Returns amount_owned * price."""
        amount = parse_decimal(amount_owned)
        if amount is None or self.price is None:
            return None
        return format_number(amount * self.price)

    def amount_owned(self, total_value: Number | None) -> str | None:
        """Returns total_value / price."""
        total = parse_decimal(total_value)
        if total is None or self.price is None:
            return None
        return format_number(total / self.price)


@dataclass
class ConversionForm:
    """A pair of linked amount/total fields, as edited on a detail screen.

    Editing one field recomputes the other. Clearing a field clears the other;
    input that produces no result leaves the other field as it was.
    """

    calculator: ConversionCalculator
    amount: str = ""
    total: str = ""

    def edit_amount(self, text: str) -> None:
        self.amount = text
        if not text.strip():
            self.total = ""
            return
        result = self.calculator.total_value(text)
        if result is not None:
            self.total = result

    def edit_total(self, text: str) -> None:
        self.total = text
        if not text.strip():
            self.amount = ""
            return
        result = self.calculator.amount_owned(text)
        if result is not None:
            self.amount = result
