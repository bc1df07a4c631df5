"""Invoicing: pure derivations for plan pricing, tax, and invoice numbering.

Invariants:
    - Money is Decimal, quantized to 2 places with ROUND_HALF_UP
    - Tax and discount percentages lie in [0, 100]; amounts are never negative
    - Invoice numbers without {SEQ} get "-<sequence>" appended

Design Decisions:
    - Pure functions, no IO: services call them inside a transaction, tests call them directly
"""

from datetime import date
from decimal import Decimal, ROUND_HALF_UP

from billing.core.domain_types import PlanType
from billing.core.errors import ValidationError

_CENTS = Decimal("0.01")
_HUNDRED = Decimal("100")

PLAN_DURATION_DAYS: dict[PlanType, int] = {
    PlanType.FREE: 0,
    PlanType.WEEKLY: 7,
    PlanType.MONTHLY: 30,
    PlanType.QUARTERLY: 90,
    PlanType.YEARLY: 365,
}


def _money(value: Decimal | int | float | str) -> Decimal:
    return Decimal(str(value)).quantize(_CENTS, rounding=ROUND_HALF_UP)


def _check_percentage(value: Decimal, field: str) -> None:
    if value < 0 or value > _HUNDRED:
        raise ValidationError(f"{field} must be between 0 and 100", field)


def compute_tax(
    amount: Decimal | int | float | str,
    tax_percentage: Decimal | int | float | str,
) -> Decimal:
    """Tax owed on amount at tax_percentage."""
    amount = Decimal(str(amount))
    pct = Decimal(str(tax_percentage))
    if amount < 0:
        raise ValidationError("amount cannot be negative", "amount")
    _check_percentage(pct, "tax_percentage")
    return _money(amount * pct / _HUNDRED)


def compute_total(
    amount: Decimal | int | float | str,
    tax_percentage: Decimal | int | float | str,
    discount_percentage: Decimal | int | float | str = 0,
) -> Decimal:
    """Discounted amount plus tax on the discounted amount."""
    discount = Decimal(str(discount_percentage))
    _check_percentage(discount, "discount_percentage")
    discounted = _money(Decimal(str(amount)) * (_HUNDRED - discount) / _HUNDRED)
    return _money(discounted + compute_tax(discounted, tax_percentage))


def generate_invoice_number(
    prefix: str = "INV", sequence: int = 1, on: date | None = None,
) -> str:
    """Render prefix placeholders {YYYY} {YY} {MM} {DD} {SEQ}.

    >>> generate_invoice_number("INV-{YYYY}-{MM}", 1001, date(2026, 1, 5))
    'INV-2026-01-1001'
    >>> generate_invoice_number("INV{YY}{MM}-{SEQ}", 1001, date(2026, 1, 5))
    'INV2601-1001'
    """
    on = on or date.today()
    year = f"{on.year:04d}"
    rendered = (
        prefix.replace("{YYYY}", year)
        .replace("{YY}", year[-2:])
        .replace("{MM}", f"{on.month:02d}")
        .replace("{DD}", f"{on.day:02d}")
    )
    if "{SEQ}" in rendered:
        return rendered.replace("{SEQ}", str(sequence))
    return f"{rendered}-{sequence}"


def plan_duration_days(plan_type: PlanType | str) -> int:
    """Billing period length; 0 means open-ended (free plan)."""
    return PLAN_DURATION_DAYS[PlanType(plan_type)]
