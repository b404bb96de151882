# storefront/client/pricing.py
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, NamedTuple, Union

from storefront.errors import ValidationError

TAX_RATE = Decimal("0.10")


class OrderSummary(NamedTuple):
    """Order totals, all in cents."""

    subtotal: int
    tax: int
    total: int


def round_cents(amount: Decimal) -> int:
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_price(price_in_cents: int) -> str:
    return f"${Decimal(price_in_cents) / 100:.2f}"


def parse_price(value: Union[str, int, float, Decimal]) -> int:
    """Dollar amount as typed into a form -> integer cents."""
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError("Price must be a positive number", field="price")
    if not amount.is_finite() or amount < 0:
        raise ValidationError("Price must be a positive number", field="price")
    return round_cents(amount * 100)


def calculate_subtotal(lines: Iterable) -> int:
    # lines whose menu item is gone count as zero
    return sum(line.menu_item.price * line.quantity for line in lines if line.menu_item is not None)


def calculate_tax(subtotal: int, rate: Decimal = TAX_RATE) -> int:
    return round_cents(Decimal(subtotal) * rate)


def summarize(lines: Iterable) -> OrderSummary:
    subtotal = calculate_subtotal(lines)
    tax = calculate_tax(subtotal)
    return OrderSummary(subtotal=subtotal, tax=tax, total=subtotal + tax)
