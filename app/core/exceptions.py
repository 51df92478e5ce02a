"""
Application error hierarchy.

Services raise these; the DRF exception handler in
core.exception_handler turns them into HTTP responses. Every error
carries a human-readable message, a machine-readable error_code and an
optional details dict.

Exception Hierarchy:
    BaseApplicationError
    ├── ValidationError - Bad input, rejected before any write (400)
    ├── NotFoundError - A specific id does not exist (404)
    ├── ConflictError - Concurrent modification (409)
    │   └── TransactionConflictError - Transaction lost a race, safe to retry
    │       └── StaleVersionError - Caller read an outdated version, not retried
    └── ExternalServiceError - Backing service failure (503)
        └── BackendError - Database unreachable or write rejected

Usage:
    from core.exceptions import NotFoundError, ValidationError

    raise ValidationError("Payment amount must be positive")
    raise ValidationError(
        "Invalid patient details",
        details={"name": ["This field is required."]},
    )

    try:
        BillingService.get_patient(patient_id)
    except NotFoundError as e:
        payload = e.to_dict()
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Root of all application errors.

    Attributes:
        message: Human-readable description
        error_code: Machine-readable code (class default unless overridden)
        details: Extra context such as field errors or offending values
        is_retryable: Whether re-running the same operation may succeed
    """

    default_error_code: str = "APPLICATION_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Serialize for an API response.

        details is omitted when empty:
            {"error": "Patient not found", "error_code": "PATIENT_NOT_FOUND",
             "details": {"patient_id": "..."}}
        """
        payload: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            payload["details"] = self.details
        return payload

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Input rejected: bad amount, missing field, payment above what is owed.

    Raised before anything is written.
    """

    default_error_code: str = "VALIDATION_ERROR"


class NotFoundError(BaseApplicationError):
    """
    A single record looked up by id does not exist.

    List queries return empty results instead.
    """

    default_error_code: str = "NOT_FOUND"


class ConflictError(BaseApplicationError):
    """The operation clashed with a concurrent change to the same records."""

    default_error_code: str = "CONFLICT"


class TransactionConflictError(ConflictError):
    """
    A transaction lost a race with another writer.

    Covers serialization failures, deadlocks, lock timeouts and rows
    changed under a lock. Nothing was committed, so the operation
    can be re-run against fresh data (see core.decorators.retry_on_conflict).

    Example:
        raise TransactionConflictError(
            f"Treatment {pk} has been modified",
            details={"pk": str(pk), "expected_version": 3, "current_version": 4},
        )
    """

    default_error_code: str = "TRANSACTION_CONFLICT"
    is_retryable: bool = True


class StaleVersionError(TransactionConflictError):
    """
    The caller's expected version no longer matches the stored row.

    retry_on_conflict re-raises it without another attempt. The client
    must re-read the row and resubmit.
    """

    is_retryable: bool = False


class ExternalServiceError(BaseApplicationError):
    """
    A backing service failed.

    details may hold driver messages; the exception handler keeps them
    out of responses.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"


class BackendError(ExternalServiceError):
    """
    The database is unreachable or rejected a write.

    Never retried automatically.

    Example:
        except DatabaseError as e:
            raise BackendError(
                "The ledger store rejected the operation",
                details={"original_error": str(e)},
            ) from e
    """

    default_error_code: str = "BACKEND_ERROR"
