"""
Row locking with optimistic version checks.

Combines optimistic locking (a version counter bumped on every write) with
pessimistic locking (SELECT ... FOR UPDATE) so a read-then-write operation
either works on the row it read or fails with a conflict.

Functions:
    lock_for_update: Lock one row, optionally verifying its version

Usage:
    from core.locking import lock_for_update

    with BillingService.atomic():
        treatment = lock_for_update(
            Treatment, treatment_id,
            expected_version=3,
            not_found=TreatmentNotFound,
        )
        treatment.apply_payment(amount, note)
        treatment.save()  # version becomes 4

Note:
    Must be called inside a transaction. The lock is held until the
    transaction commits or rolls back.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar

from core.exceptions import NotFoundError, StaleVersionError

if TYPE_CHECKING:
    from typing import Any

    from django.db import models

T = TypeVar("T", bound="models.Model")


def lock_for_update(
    model_class: type[T],
    pk: Any,
    expected_version: int | None = None,
    not_found: type[NotFoundError] = NotFoundError,
) -> T:
    """
    Lock a record for update and optionally check its version.

    Args:
        model_class: Django model class (must have 'version' field when
            expected_version is given)
        pk: Primary key of the record
        expected_version: Version the caller read earlier, or None to skip
            the optimistic check
        not_found: NotFoundError subclass to raise when the row is missing

    Returns:
        The locked model instance

    Raises:
        NotFoundError: If the record doesn't exist (as `not_found`)
        StaleVersionError: If the version doesn't match
    """
    instance = model_class.objects.select_for_update().filter(pk=pk).first()
    model_name = model_class.__name__

    if instance is None:
        raise not_found(
            f"{model_name} {pk} not found",
            details={"pk": str(pk)},
        )

    if expected_version is not None and instance.version != expected_version:
        raise StaleVersionError(
            f"{model_name} {pk} has been modified "
            f"(expected version {expected_version}, current {instance.version})",
            details={
                "pk": str(pk),
                "expected_version": expected_version,
                "current_version": instance.version,
            },
        )

    return instance
