"""
Billing-specific exceptions.

Each one extends a core error kind, so the API layer maps it to the
right HTTP status without knowing about billing.

Exception Hierarchy:
    ValidationError
    ├── InvalidAmountError - Amount is not a number or out of range
    └── OverpaymentError - Payment exceeds what is owed
    NotFoundError
    ├── PatientNotFound
    └── TreatmentNotFound

Usage:
    from billing.exceptions import OverpaymentError

    if amount > treatment.balance:
        raise OverpaymentError(requested=amount, available=treatment.balance)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import NotFoundError, ValidationError

if TYPE_CHECKING:
    from decimal import Decimal
    from typing import Any


class InvalidAmountError(ValidationError):
    """
    Raised when a monetary amount is malformed or out of range.

    Example:
        raise InvalidAmountError(
            "Payment amount must be positive",
            details={"amount": "-5.00"}
        )
    """

    default_error_code: str = "INVALID_AMOUNT"


class OverpaymentError(ValidationError):
    """
    Raised when a payment is larger than the balance it settles.

    Attributes:
        requested: The amount the caller tried to pay
        available: The balance that could absorb it

    Example:
        raise OverpaymentError(requested=Decimal("700"), available=Decimal("600"))
    """

    default_error_code: str = "OVERPAYMENT"

    def __init__(
        self,
        requested: Decimal,
        available: Decimal,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.requested = requested
        self.available = available

        full_details = {
            "requested": str(requested),
            "available": str(available),
        }
        if details:
            full_details.update(details)

        super().__init__(
            message=f"Payment of {requested} exceeds outstanding balance of {available}",
            error_code=error_code,
            details=full_details,
        )


class PatientNotFound(NotFoundError):
    """Raised when a patient lookup fails."""

    default_error_code: str = "PATIENT_NOT_FOUND"


class TreatmentNotFound(NotFoundError):
    """Raised when a treatment lookup fails."""

    default_error_code: str = "TREATMENT_NOT_FOUND"
