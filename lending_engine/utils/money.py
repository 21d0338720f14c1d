"""Currency configuration, rounding and formatting"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

Number = Union[int, float, Decimal, str]


@dataclass(frozen=True)
class CurrencyConfig:
    """Organization currency, passed explicitly wherever amounts are rounded or shown"""

    code: str = "KES"
    symbol: str = "KSh"
    decimals: int = 0  # minor-unit precision used for rounding

    @property
    def quantum(self) -> Decimal:
        return Decimal(1).scaleb(-self.decimals)


DEFAULT_CURRENCY = CurrencyConfig()


def to_decimal(value: Number) -> Decimal:
    """Convert via str so floats keep their printed value (0.1 -> Decimal('0.1'))"""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value: Number, currency: CurrencyConfig = DEFAULT_CURRENCY) -> Decimal:
    """Round half-up to the currency's minor unit"""
    return to_decimal(value).quantize(currency.quantum, rounding=ROUND_HALF_UP)


def format_currency(
    amount: Number,
    currency: CurrencyConfig = DEFAULT_CURRENCY,
    show_symbol: bool = True,
    use_code: bool = False,
    decimals: int | None = None,
) -> str:
    """
    Format an amount with thousands separators and the currency prefix.

    Example:
        format_currency(1234.5, CurrencyConfig("KES", "KSh", 0)) -> "KSh 1,235"
    """
    places = currency.decimals if decimals is None else decimals
    rounded = round_money(amount, CurrencyConfig(currency.code, currency.symbol, places))
    formatted = f"{rounded:,.{places}f}"

    if use_code:
        return f"{currency.code} {formatted}"
    if show_symbol:
        return f"{currency.symbol} {formatted}"
    return formatted
