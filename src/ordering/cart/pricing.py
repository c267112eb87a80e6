"""Exact money arithmetic for cart and order amounts.

Amounts are held as ``Decimal`` in memory and as decimal strings in storage,
so totals never pick up binary floating point drift.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from protean.exceptions import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value, field: str = "amount") -> Decimal:
    """Parse a price from str/int/Decimal. Floats are routed through ``str`` to keep their printed value."""
    if isinstance(value, Decimal):
        return value
    if value is None or value == "":
        return ZERO
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValidationError({field: [f"Invalid amount: {value!r}"]}) from exc


def quantize(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_storage(amount: Decimal) -> str:
    return str(quantize(amount))


def to_minor_units(amount: Decimal) -> int:
    """Whole cents, as payment gateways expect."""
    return int(quantize(amount) * 100)


def format_money(amount: Decimal, symbol: str = "$") -> str:
    return f"{symbol}{quantize(amount)}"


def format_option_label(name: str, price_modifier: Decimal) -> str:
    """``"Oat milk (+$0.50)"``; a zero modifier shows just the name."""
    if price_modifier == ZERO:
        return name
    sign = "+" if price_modifier > ZERO else "-"
    return f"{name} ({sign}{format_money(abs(price_modifier))})"
