"""
books_engines.depreciation -- Period depreciation for fixed assets.

Responsibility:
    Compute one period of book depreciation (and the parallel statutory
    tax track) for an asset under a fixed set of methods, and lazily
    generate the month-by-month schedule from any starting point.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumed by ``books_modules.assets.service.FixedAssetService``, which
    supplies the opening values read from persisted period records.

Invariants enforced:
    - Closing book value never falls below salvage value; every method's
      amount is clamped to ``opening - salvage``.
    - The period that completes the useful life absorbs whatever remains
      of the depreciable base, so a schedule run to completion totals
      exactly ``cost - salvage``.
    - Amounts are quantized to 2 decimal places (ROUND_HALF_UP).
    - The tax track runs on its own opening value with the statutory
      declining-balance rate and is clamped at salvage independently.
    - No clock access: period boundaries are always passed in.

Failure modes:
    - UnsupportedMethodError for UNITS_OF_PRODUCTION.
    - ValueError from ``DepreciationTerms`` for a non-positive useful life,
      negative cost or salvage, or salvage above cost.
    - ValueError from ``parse_period`` for a malformed ``YYYY-MM`` key.

Usage:
    from books_engines.depreciation import (
        DepreciationCalculator, DepreciationMethod, DepreciationTerms,
    )

    terms = DepreciationTerms(
        cost=Decimal("120000"), salvage_value=Decimal("0"),
        useful_life_years=5, method=DepreciationMethod.STRAIGHT_LINE,
        start_date=date(2025, 1, 1),
    )
    result = DepreciationCalculator().calculate_period(
        terms=terms, period_start=date(2025, 6, 1),
        period_end=date(2025, 6, 30), opening_book_value=Decimal("110000"),
    )
    result.depreciation_amount  # Decimal("2000.00")
"""

from __future__ import annotations

import calendar
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from books_engines.tracer import traced_engine
from books_kernel.exceptions import UnsupportedMethodError
from books_kernel.logging_config import get_logger

logger = get_logger("engines.depreciation")

ZERO = Decimal("0")
TWELVE = Decimal("12")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")
DEFAULT_DECLINING_RATE = Decimal("20")


class DepreciationMethod(str, Enum):
    """Closed set of supported depreciation methods."""

    STRAIGHT_LINE = "STRAIGHT_LINE"
    DECLINING_BALANCE = "DECLINING_BALANCE"
    DOUBLE_DECLINING = "DOUBLE_DECLINING"
    SUM_OF_YEARS_DIGITS = "SUM_OF_YEARS_DIGITS"
    UNITS_OF_PRODUCTION = "UNITS_OF_PRODUCTION"


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


# =============================================================================
# Period keys and month arithmetic
# =============================================================================


def parse_period(period: str) -> tuple[date, date]:
    """``"YYYY-MM"`` -> (first day, last day) of that month."""
    try:
        year_text, month_text = period.split("-")
        year, month = int(year_text), int(month_text)
    except ValueError as exc:
        raise ValueError(f"Period must be 'YYYY-MM', got {period!r}") from exc
    if len(year_text) != 4 or not 1 <= month <= 12:
        raise ValueError(f"Period must be 'YYYY-MM', got {period!r}")
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def period_key(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def month_index(origin: date, day: date) -> int:
    """Whole calendar months from ``origin``'s month to ``day``'s month."""
    return (day.year - origin.year) * 12 + (day.month - origin.month)


def months_in_period(period_start: date, period_end: date) -> int:
    """Calendar months covered by the period, both ends inclusive."""
    return month_index(period_start, period_end) + 1


def add_months(day: date, months: int) -> date:
    """First day of the month ``months`` after ``day``'s month."""
    total = day.year * 12 + (day.month - 1) + months
    return date(total // 12, total % 12 + 1, 1)


# =============================================================================
# Method formulas
# =============================================================================


def straight_line(
    cost: Decimal,
    salvage_value: Decimal,
    useful_life_years: int,
    months: int,
) -> Decimal:
    """((cost - salvage) / life) / 12 * months."""
    return (cost - salvage_value) / Decimal(useful_life_years) / TWELVE * Decimal(months)


def declining_balance(
    opening_book_value: Decimal,
    annual_rate_percent: Decimal,
    months: int,
) -> Decimal:
    """opening * (rate / 100 / 12) * months."""
    return opening_book_value * annual_rate_percent / HUNDRED / TWELVE * Decimal(months)


def double_declining(
    opening_book_value: Decimal,
    useful_life_years: int,
    months: int,
) -> Decimal:
    """opening * (2 / life / 12) * months."""
    return opening_book_value * Decimal(2) / Decimal(useful_life_years) / TWELVE * Decimal(months)


def sum_of_years_digits(
    cost: Decimal,
    salvage_value: Decimal,
    useful_life_years: int,
    months: int,
    year_number: int,
) -> Decimal:
    """((cost - salvage) * remaining / sum_of_years) / 12 * months."""
    remaining_years = useful_life_years - year_number + 1
    if remaining_years <= 0:
        return ZERO
    sum_of_years = Decimal(useful_life_years * (useful_life_years + 1) // 2)
    return (
        (cost - salvage_value) * Decimal(remaining_years) / sum_of_years
        / TWELVE * Decimal(months)
    )


def clamp_to_salvage(
    amount: Decimal,
    opening_book_value: Decimal,
    salvage_value: Decimal,
) -> Decimal:
    """Cap ``amount`` so the closing value stays at or above salvage."""
    headroom = max(ZERO, opening_book_value - salvage_value)
    return min(max(ZERO, amount), headroom)


# =============================================================================
# Value objects
# =============================================================================


@dataclass(frozen=True)
class DepreciationTerms:
    """Everything about an asset the calculation depends on."""

    cost: Decimal
    salvage_value: Decimal
    useful_life_years: int
    method: DepreciationMethod
    start_date: date
    declining_rate: Decimal | None = None  # annual %, book DECLINING_BALANCE
    tax_rate: Decimal | None = None  # annual %, statutory tax track

    def __post_init__(self) -> None:
        if self.useful_life_years <= 0:
            raise ValueError("useful_life_years must be positive")
        if self.cost < 0 or self.salvage_value < 0:
            raise ValueError("cost and salvage_value must be non-negative")
        if self.salvage_value > self.cost:
            raise ValueError("salvage_value cannot exceed cost")
        object.__setattr__(self, "method", DepreciationMethod(self.method))

    @property
    def total_months(self) -> int:
        return self.useful_life_years * 12


@dataclass(frozen=True)
class PeriodDepreciation:
    """One computed period, book and tax."""

    period: str
    period_start: date
    period_end: date
    method: DepreciationMethod
    months_in_period: int
    year_number: int
    opening_book_value: Decimal
    depreciation_amount: Decimal
    accumulated_depreciation: Decimal
    closing_book_value: Decimal
    tax_opening_book_value: Decimal | None = None
    tax_depreciation_amount: Decimal | None = None
    tax_book_value: Decimal | None = None
    details: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class DisposalResult:
    book_value: Decimal
    gain_loss: Decimal
    gain_loss_type: str  # "GAIN" or "LOSS"


# =============================================================================
# Calculator
# =============================================================================


class DepreciationCalculator:
    """
    Pure depreciation calculator.

    Contract:
        No I/O and no clock.  Opening values come from the caller, which
        reads them from the latest persisted period record (or uses the
        purchase price for the first period).
    Guarantees:
        - ``closing_book_value >= terms.salvage_value`` for every period.
        - Running ``iter_schedule`` to completion depreciates exactly
          ``cost - salvage``.
    Non-goals:
        - Units-of-production: production volumes are not modeled.
    """

    def raw_amount(
        self,
        terms: DepreciationTerms,
        months: int,
        opening_book_value: Decimal,
        year_number: int,
    ) -> Decimal:
        """Unclamped amount for the method, dispatched over the closed enum."""
        method = terms.method
        if method is DepreciationMethod.STRAIGHT_LINE:
            return straight_line(
                terms.cost, terms.salvage_value, terms.useful_life_years, months,
            )
        elif method is DepreciationMethod.DECLINING_BALANCE:
            rate = terms.declining_rate if terms.declining_rate is not None else DEFAULT_DECLINING_RATE
            return declining_balance(opening_book_value, rate, months)
        elif method is DepreciationMethod.DOUBLE_DECLINING:
            return double_declining(opening_book_value, terms.useful_life_years, months)
        elif method is DepreciationMethod.SUM_OF_YEARS_DIGITS:
            return sum_of_years_digits(
                terms.cost, terms.salvage_value, terms.useful_life_years,
                months, year_number,
            )
        elif method is DepreciationMethod.UNITS_OF_PRODUCTION:
            raise UnsupportedMethodError(
                method.value, "production-tracking data is not modeled",
            )
        raise UnsupportedMethodError(str(method), "unknown depreciation method")

    @traced_engine(
        "depreciation", "1.0",
        fingerprint_fields=("terms", "period_start", "period_end", "opening_book_value"),
    )
    def calculate_period(
        self,
        terms: DepreciationTerms,
        period_start: date,
        period_end: date,
        opening_book_value: Decimal,
        accumulated_depreciation: Decimal = ZERO,
        tax_opening_book_value: Decimal | None = None,
    ) -> PeriodDepreciation:
        """
        Depreciation for one period.

        The period is clipped to the asset's start month.  When the period
        reaches the final month of the useful life the whole remaining
        headroom above salvage is taken.

        Args:
            terms: Asset terms.
            period_start: First day of the period.
            period_end: Last day of the period.
            opening_book_value: Book value at the start of the period.
            accumulated_depreciation: Accumulated book depreciation at the
                start of the period.
            tax_opening_book_value: Tax book value at the start of the
                period; defaults to the book opening value.

        Raises:
            UnsupportedMethodError: UNITS_OF_PRODUCTION.
            ValueError: period_end precedes period_start.
        """
        if period_end < period_start:
            raise ValueError("period_end precedes period_start")

        first_month = max(month_index(terms.start_date, period_start), 0)
        last_month = month_index(terms.start_date, period_end)
        months = max(last_month - first_month + 1, 0)
        year_number = first_month // 12 + 1

        if months == 0:
            raw = ZERO
        elif last_month + 1 >= terms.total_months:
            # Final period of the useful life takes the remainder.
            raw = opening_book_value - terms.salvage_value
        else:
            raw = self.raw_amount(terms, months, opening_book_value, year_number)

        amount = _money(clamp_to_salvage(raw, opening_book_value, terms.salvage_value))
        closing = opening_book_value - amount

        tax_opening = None
        tax_amount = None
        tax_closing = None
        if terms.tax_rate is not None:
            tax_opening = (
                tax_opening_book_value if tax_opening_book_value is not None
                else opening_book_value
            )
            tax_amount = _money(
                clamp_to_salvage(
                    declining_balance(tax_opening, terms.tax_rate, months),
                    tax_opening,
                    terms.salvage_value,
                )
            )
            tax_closing = tax_opening - tax_amount

        details = {
            "method": terms.method.value,
            "cost": str(terms.cost),
            "salvage_value": str(terms.salvage_value),
            "useful_life_years": str(terms.useful_life_years),
            "months_in_period": str(months),
            "year_number": str(year_number),
            "raw_amount": str(raw),
        }
        if terms.method is DepreciationMethod.DECLINING_BALANCE:
            details["declining_rate"] = str(
                terms.declining_rate if terms.declining_rate is not None else DEFAULT_DECLINING_RATE
            )
        if terms.tax_rate is not None:
            details["tax_rate"] = str(terms.tax_rate)

        return PeriodDepreciation(
            period=period_key(period_start),
            period_start=period_start,
            period_end=period_end,
            method=terms.method,
            months_in_period=months,
            year_number=year_number,
            opening_book_value=opening_book_value,
            depreciation_amount=amount,
            accumulated_depreciation=accumulated_depreciation + amount,
            closing_book_value=closing,
            tax_opening_book_value=tax_opening,
            tax_depreciation_amount=tax_amount,
            tax_book_value=tax_closing,
            details=details,
        )

    def iter_schedule(
        self,
        terms: DepreciationTerms,
        first_period_start: date | None = None,
        opening_book_value: Decimal | None = None,
        accumulated_depreciation: Decimal = ZERO,
        tax_opening_book_value: Decimal | None = None,
    ) -> Iterator[PeriodDepreciation]:
        """
        Lazily yield monthly periods until the useful life elapses or the
        book value reaches salvage, whichever comes first.

        Without arguments the schedule starts at the asset's start month
        with the full cost.  To resume from persisted history pass the
        month after the last persisted period together with its closing
        values.
        """
        start = first_period_start or date(terms.start_date.year, terms.start_date.month, 1)
        opening = terms.cost if opening_book_value is None else opening_book_value
        accumulated = accumulated_depreciation
        tax_opening = tax_opening_book_value

        offset = max(month_index(terms.start_date, start), 0)
        while offset < terms.total_months and opening > terms.salvage_value:
            period_start, period_end = parse_period(period_key(add_months(terms.start_date, offset)))
            result = self.calculate_period(
                terms=terms,
                period_start=period_start,
                period_end=period_end,
                opening_book_value=opening,
                accumulated_depreciation=accumulated,
                tax_opening_book_value=tax_opening,
            )
            yield result
            opening = result.closing_book_value
            accumulated = result.accumulated_depreciation
            tax_opening = result.tax_book_value
            offset += 1


@traced_engine("disposal", "1.0", fingerprint_fields=("cost", "accumulated_depreciation", "proceeds"))
def calculate_disposal_gain_loss(
    cost: Decimal,
    accumulated_depreciation: Decimal,
    proceeds: Decimal,
) -> DisposalResult:
    """Gain (proceeds above book value) or loss on disposal."""
    book_value = cost - accumulated_depreciation
    gain_loss = proceeds - book_value
    return DisposalResult(
        book_value=book_value,
        gain_loss=gain_loss,
        gain_loss_type="GAIN" if gain_loss >= 0 else "LOSS",
    )
