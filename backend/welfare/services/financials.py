"""Financial computation engine: VAT, withholding, net amount, excess split.

Every function here is pure and total over non-negative finite input.
Callers sanitize raw numbers with :func:`sanitize_amount` first. All money
is ``Decimal`` quantized to cents, rounding half-up after every multiply or
divide, so recomputation on the same input is exact.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

VAT_RATE = Decimal("0.07")
WITHHOLDING_RATE = Decimal("0.03")

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
_TWO = Decimal(2)
_HUNDRED = Decimal(100)


# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BenefitFinancials:
    """Breakdown of a benefit request amount."""

    total: Decimal
    gross_amount: Decimal
    vat: Decimal
    withholding_tax: Decimal
    net_amount: Decimal
    excess_amount: Decimal = ZERO
    company_payment: Decimal = ZERO
    employee_payment: Decimal = ZERO


@dataclass(frozen=True)
class LineItem:
    """One expected cost on an advance or expense-clearing request."""

    name: str
    request_amount: Decimal
    tax_rate_percent: Decimal = ZERO


@dataclass(frozen=True)
class LineItemAmounts:
    name: str
    request_amount: Decimal
    tax_rate_percent: Decimal
    tax_amount: Decimal
    net_amount: Decimal


@dataclass(frozen=True)
class AdvanceTotals:
    """Per-item amounts plus request totals for an itemized request."""

    items: tuple[LineItemAmounts, ...]
    total_tax: Decimal
    submitted_amount: Decimal
    net_amount: Decimal


# ---------------------------------------------------------------------------
# Money helpers
# ---------------------------------------------------------------------------


def to_money(value: Decimal | int | str) -> Decimal:
    """Quantize to cents, half-up."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def sanitize_amount(value: object) -> Decimal:
    """Turn raw user input into a non-negative cent amount.

    ``None``, unparseable strings, NaN, infinities and negatives become 0.
    Floats go through ``str`` so ``0.1`` stays ``0.10`` rather than its
    binary expansion.
    """
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, float):
        value = str(value)
    try:
        number = Decimal(value)  # type: ignore[arg-type]
    except (InvalidOperation, TypeError, ValueError):
        return ZERO
    if not number.is_finite() or number < 0:
        return ZERO
    return to_money(number)


# ---------------------------------------------------------------------------
# Engine entry points
# ---------------------------------------------------------------------------


def compute_advance_total(line_items: Iterable[LineItem]) -> AdvanceTotals:
    """Totals for an advance or expense-clearing request.

    Tax per item is informational only: the disbursed amount of an item
    is its requested amount, and the request total is their sum.
    """
    computed: list[LineItemAmounts] = []
    for item in line_items:
        amount = to_money(item.request_amount)
        rate = Decimal(item.tax_rate_percent)
        computed.append(
            LineItemAmounts(
                name=item.name,
                request_amount=amount,
                tax_rate_percent=rate,
                tax_amount=to_money(amount * rate / _HUNDRED),
                net_amount=amount,
            )
        )

    total = sum((i.net_amount for i in computed), ZERO)
    total_tax = sum((i.tax_amount for i in computed), ZERO)
    return AdvanceTotals(
        items=tuple(computed),
        total_tax=total_tax,
        submitted_amount=total,
        net_amount=total,
    )


def compute_benefit_amounts(
    total: Decimal,
    is_vat_included: bool,
    remaining_budget: Decimal | None = None,
) -> BenefitFinancials:
    """Breakdown for a benefit request.

    ``remaining_budget`` is passed only for training. When the gross
    amount strictly exceeds it, the excess is split in half between the
    company and the employee, and the employee also carries the
    withholding tax. The employee share is ``excess - company`` so the
    two halves always add back to the excess after rounding.
    """
    total = to_money(total)
    if is_vat_included:
        vat = ZERO
        withholding = ZERO
        gross = total
    else:
        vat = to_money(total * VAT_RATE)
        withholding = to_money(total * WITHHOLDING_RATE)
        gross = total + vat

    if remaining_budget is None:
        return BenefitFinancials(
            total=total,
            gross_amount=gross,
            vat=vat,
            withholding_tax=withholding,
            net_amount=total + vat - withholding,
        )

    remaining = to_money(remaining_budget)
    if gross > remaining:
        excess = gross - remaining
        company = to_money(excess / _TWO)
        return BenefitFinancials(
            total=total,
            gross_amount=gross,
            vat=vat,
            withholding_tax=withholding,
            net_amount=gross,
            excess_amount=excess,
            company_payment=company,
            employee_payment=excess - company + withholding,
        )

    return BenefitFinancials(
        total=total,
        gross_amount=gross,
        vat=vat,
        withholding_tax=withholding,
        net_amount=gross + withholding,
    )
