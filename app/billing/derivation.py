"""
Financial derivation rules for treatments.

Pure functions with no database access. Every balance and payment status
stored on a Treatment is produced by derive_treatment_state, and every
patient-level payment is split by plan_distribution.

Usage:
    from billing.derivation import derive_treatment_state, to_money

    state = derive_treatment_state(to_money("1000"), to_money("400"))
    state.balance  # Decimal("600.00")
    state.status   # PaymentStatus.PARTIALLY_PAID
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import TYPE_CHECKING, NamedTuple

from django.db import models

from .exceptions import InvalidAmountError, OverpaymentError

if TYPE_CHECKING:
    from collections.abc import Iterable
    from typing import Any

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")
# Money columns hold 12 digits with 2 decimal places
MAX_AMOUNT = Decimal("9999999999.99")


class PaymentStatus(models.TextChoices):
    """
    Payment state of a treatment, derived from its amounts.

    Values:
        UNPAID: Nothing paid yet
        PARTIALLY_PAID: Some paid, balance remaining
        PAID: Balance settled
    """

    UNPAID = "unpaid", "Unpaid"
    PARTIALLY_PAID = "partially_paid", "Partially Paid"
    PAID = "paid", "Paid"


class TreatmentState(NamedTuple):
    """Balance and status derived from a treatment's amounts."""

    balance: Decimal
    status: str


def to_money(value: Any, field: str = "amount") -> Decimal:
    """
    Coerce a value to a two-place Decimal.

    Accepts Decimal, int and numeric strings. Floats go through str() so
    0.1 becomes Decimal("0.10") rather than its binary expansion.

    Raises:
        InvalidAmountError: If the value is not a finite number or does not
            fit a money column (MAX_AMOUNT)
    """
    if isinstance(value, bool):
        raise InvalidAmountError(f"{field} must be a number", details={field: repr(value)})
    if isinstance(value, float):
        value = str(value)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmountError(f"{field} must be a number", details={field: repr(value)})
    if not amount.is_finite():
        raise InvalidAmountError(f"{field} must be finite", details={field: str(value)})
    if amount.copy_abs() > MAX_AMOUNT:
        raise InvalidAmountError(
            f"{field} exceeds the largest storable amount",
            details={field: str(value), "max_amount": str(MAX_AMOUNT)},
        )
    return amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def validate_treatment_amounts(total_amount: Decimal, amount_paid: Decimal) -> None:
    """
    Check the amounts of a new treatment.

    Raises:
        InvalidAmountError: total_amount <= 0 or amount_paid < 0
        OverpaymentError: amount_paid > total_amount
    """
    if total_amount <= 0:
        raise InvalidAmountError(
            "Total amount must be positive",
            details={"total_amount": str(total_amount)},
        )
    if amount_paid < 0:
        raise InvalidAmountError(
            "Amount paid cannot be negative",
            details={"amount_paid": str(amount_paid)},
        )
    if amount_paid > total_amount:
        raise OverpaymentError(requested=amount_paid, available=total_amount)


def derive_treatment_state(total_amount: Decimal, amount_paid: Decimal) -> TreatmentState:
    """
    Derive balance and payment status from a treatment's amounts.

    Examples:
        (1000, 0)    -> (1000, UNPAID)
        (1000, 400)  -> (600, PARTIALLY_PAID)
        (1000, 1000) -> (0, PAID)
    """
    balance = total_amount - amount_paid
    if balance <= 0:
        status = PaymentStatus.PAID
    elif amount_paid > 0:
        status = PaymentStatus.PARTIALLY_PAID
    else:
        status = PaymentStatus.UNPAID
    return TreatmentState(balance=balance, status=status)


def plan_distribution(amount: Decimal, balances: Iterable[Decimal]) -> list[Decimal]:
    """
    Split a payment across balances, oldest first.

    Each balance receives min(balance, remaining) until the payment runs
    out. Non-positive balances receive nothing. The returned list has one
    allocation per input balance, in the same order. If the balances
    cannot absorb the whole payment the allocations sum to less than
    amount; callers must check.

    Example:
        plan_distribution(Decimal("600"), [300, 500, 200])
        # [300, 300, 0]
    """
    remaining = amount
    allocations: list[Decimal] = []
    for balance in balances:
        applied = min(balance, remaining) if balance > 0 and remaining > 0 else ZERO
        allocations.append(applied)
        remaining -= applied
    return allocations
