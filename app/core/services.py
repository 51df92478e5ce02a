"""
Service layer base classes.

- BaseService: per-class logger and the atomic() transaction boundary,
  which turns database failures into application errors
- ServiceResult: success/failure wrapper for batch jobs that report
  an outcome instead of raising
- is_conflict: whether a DatabaseError means the transaction lost a race

Request/response operations (ledger mutations) raise core.exceptions
errors; batch jobs (reconciliation) return a ServiceResult.

Usage:
    from core.services import BaseService

    class BillingService(BaseService):
        @classmethod
        @retry_on_conflict()
        def delete_patient(cls, patient_id):
            with cls.atomic():
                ...
            cls.get_logger().info(f"Deleted patient {patient_id}")
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import DatabaseError, OperationalError, transaction

from core.exceptions import BackendError, TransactionConflictError

if TYPE_CHECKING:
    from collections.abc import Generator
    from typing import Any

# Generic type for ServiceResult data
T = TypeVar("T")

# PostgreSQL SQLSTATE codes that mean "lost a race, nothing committed"
# 40001 serialization_failure, 40P01 deadlock_detected, 55P03 lock_not_available
CONFLICT_SQLSTATES = frozenset(["40001", "40P01", "55P03"])


@dataclass
class ServiceResult(Generic[T]):
    """
    Outcome of an operation that reports failure instead of raising.

    Used by batch jobs such as reconciliation, where the caller (a Celery
    task) wants a summary either way.

    Usage:
        result = ReconciliationService.run(heal=True)
        if result.success:
            report = result.data
        else:
            logger.error(f"{result.error} ({result.error_code})")
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)

    @classmethod
    def ok(cls, data: T) -> ServiceResult[T]:
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
    ) -> ServiceResult[T]:
        """Failed result; errors holds field-level messages if any."""
        return cls(success=False, error=error, error_code=error_code, errors=errors)

    @classmethod
    def from_exception(cls, exc: Exception, error_code: str | None = None) -> ServiceResult[T]:
        """
        Failed result built from a caught exception.

        Application errors keep their own error_code; anything else is
        named after the exception class, e.g. DATABASEERROR.
        """
        code = error_code or getattr(exc, "error_code", None)
        message = getattr(exc, "message", None) or str(exc)
        return cls(
            success=False,
            error=message,
            error_code=code or exc.__class__.__name__.upper(),
        )

    def to_response(self) -> dict[str, Any]:
        """Dict with success plus data, or error/error_code/errors."""
        if self.success:
            return {"success": True, "data": self.data}

        response: dict[str, Any] = {"success": False, "error": self.error}
        if self.error_code:
            response["error_code"] = self.error_code
        if self.errors:
            response["errors"] = self.errors
        return response

    def __bool__(self) -> bool:
        return self.success


def is_conflict(exc: DatabaseError) -> bool:
    """
    Tell whether a database error means the transaction lost a race.

    PostgreSQL reports serialization failures, deadlocks and lock timeouts
    with dedicated SQLSTATE codes. SQLite reports a busy database as
    "database is locked".
    """
    cause = exc.__cause__
    sqlstate = getattr(cause, "sqlstate", None) or getattr(cause, "pgcode", None)
    if sqlstate in CONFLICT_SQLSTATES:
        return True
    return isinstance(exc, OperationalError) and "database is locked" in str(exc)


class BaseService:
    """
    Stateless base for service classes.

    Subclasses expose static or class methods only and raise
    core.exceptions errors for failures callers must handle.
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Logger named <module>.<ServiceClass>."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Run the block in one database transaction, rolled back on any error.

        Database failures leave the block as application errors:
        - Serialization failures, deadlocks, lock timeouts and a busy
          SQLite file become TransactionConflictError (retryable)
        - Any other DatabaseError becomes BackendError

        Application errors raised inside the block (ValidationError,
        NotFoundError, ...) roll back and propagate unchanged.

        Yields:
            None

        Example:
            with cls.atomic():
                treatment = Treatment.objects.create(...)
                Patient.objects.filter(pk=pid).update(total_billed=F("total_billed") + x)
                # If the update fails, the treatment is also rolled back
        """
        try:
            with transaction.atomic():
                yield
        except DatabaseError as exc:
            if is_conflict(exc):
                cls.get_logger().warning(
                    f"Transaction conflict: {exc}",
                    extra={"service": cls.__name__},
                )
                raise TransactionConflictError(
                    "The records were modified by another transaction",
                    details={"original_error": str(exc)},
                ) from exc

            cls.get_logger().error(
                f"Database error: {exc}",
                exc_info=True,
                extra={"service": cls.__name__},
            )
            raise BackendError(
                "The ledger store rejected the operation",
                details={"original_error": str(exc)},
            ) from exc
