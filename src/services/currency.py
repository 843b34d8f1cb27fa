"""
Currency normalization for monetary approvals.

The engine never fetches FX rates. The caller supplies the rate it got from
the FX collaborator, and the converted amount plus the rate are stored with
the request so later review does not depend on re-fetching a historical rate.
"""
from dataclasses import dataclass, asdict
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Union

from ..core.errors import ValidationError

TWOPLACES = Decimal("0.01")

Number = Union[Decimal, int, float, str]


def _to_decimal(value: Number, field: str) -> Decimal:
    # str() first so floats like 32.5 don't carry binary noise into the Decimal
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} is not a valid number: {value!r}", field=field)
    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number", field=field)
    return result


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def same_currency(a: str, b: str) -> bool:
    return a.strip().upper() == b.strip().upper()


def to_base_currency(
    amount: Number,
    source_currency: str,
    rate: Number,
    base_currency: str
) -> Decimal:
    """
    Convert an amount into the organization's base currency.

    Args:
        amount: Amount in source_currency (must be >= 0)
        source_currency: ISO code of the amount
        rate: Units of base_currency per unit of source_currency
        base_currency: Reporting currency

    Returns:
        Amount in base currency. When the currencies match the amount is
        returned unchanged and the rate is ignored; otherwise the product is
        rounded to minor units.
    """
    value = _to_decimal(amount, "amount")
    if value < 0:
        raise ValidationError("amount must not be negative", field="amount")

    if same_currency(source_currency, base_currency):
        return value

    fx = _to_decimal(rate, "exchange_rate")
    if fx <= 0:
        raise ValidationError("exchange_rate must be positive", field="exchange_rate")

    return quantize_money(value * fx)


@dataclass(frozen=True)
class NormalizedAmount:
    """Evidentiary record of a conversion, persisted alongside the request."""

    amount: Decimal
    currency: str
    exchange_rate: Decimal
    amount_in_base_currency: Decimal
    base_currency: str

    def to_dict(self) -> dict:
        return asdict(self)


def normalize_amount(
    amount: Optional[Number],
    currency: Optional[str],
    rate: Optional[Number],
    base_currency: str
) -> Optional[NormalizedAmount]:
    """
    Validate an amount/currency pairing and derive the base-currency amount.

    Returns None for requests that carry no monetary value.

    Raises:
        ValidationError: amount without currency (or the reverse), or a
            foreign-currency amount submitted without an exchange rate
    """
    if amount is None and not currency:
        return None
    if amount is None:
        raise ValidationError("currency given without amount", field="amount")
    if not currency or not currency.strip():
        raise ValidationError("amount given without currency", field="currency")

    code = currency.strip().upper()
    base = base_currency.strip().upper()

    if code == base:
        fx = Decimal("1")
    elif rate is None:
        raise ValidationError(
            f"exchange_rate is required to convert {code} into {base}",
            field="exchange_rate"
        )
    else:
        fx = _to_decimal(rate, "exchange_rate")

    # Round once so the stored amount times the stored rate gives the stored base amount
    quantized = quantize_money(_to_decimal(amount, "amount"))
    return NormalizedAmount(
        amount=quantized,
        currency=code,
        exchange_rate=fx,
        amount_in_base_currency=quantize_money(to_base_currency(quantized, code, fx, base)),
        base_currency=base,
    )
