"""
Module: books_kernel.db.types
Responsibility: Annotated type aliases and rounding helpers for financial-grade
    column types.  Centralizes precision and rounding so that every model,
    engine, and service uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, selectors/, and books_engines.  MUST NOT import from any of
    those layers.

Invariants enforced:
    - No floats.  All monetary amounts are Decimal with explicit precision.
    - round_money() is the sanctioned rounding function for money (half-up
      to 2 places by default).
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

from sqlalchemy import Numeric, String

# 38 digits total, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]

# Exchange rates carry more places than amounts
Rate = Annotated[Decimal, Numeric(38, 18)]

# ISO 4217 currency code
Currency = Annotated[str, String(3)]

ShortCode = Annotated[str, String(50)]

LongText = Annotated[str, String(4000)]


MONEY_DECIMAL_PLACES = 2
QUANTITY_DECIMAL_PLACES = 4
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    """Coerce int/str/Decimal input to Decimal; floats go through str()."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the specified decimal places.

    Preconditions: value is a Decimal.
    Postconditions: Returns value quantized with the given rounding mode.
    """
    return value.quantize(Decimal(1).scaleb(-decimal_places), rounding=rounding)


def round_quantity(value: Decimal) -> Decimal:
    """Round an inventory quantity to QUANTITY_DECIMAL_PLACES."""
    return round_money(value, QUANTITY_DECIMAL_PLACES)
