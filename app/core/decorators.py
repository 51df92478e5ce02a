"""
Custom decorators for service functions.

This module provides generic infrastructure decorators for:
- Bounded retry of transactions that lost a race with another writer

These are domain-agnostic decorators that can be used in any Django project.

Usage:
    from core.decorators import retry_on_conflict

    class BillingService(BaseService):
        @classmethod
        @retry_on_conflict()
        def apply_patient_payment(cls, patient_id, amount, note=None):
            with cls.atomic():
                ...
"""

from __future__ import annotations

import functools
import logging
import time
from typing import TYPE_CHECKING, Callable

from django.conf import settings

from core.exceptions import TransactionConflictError

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)


def _billing_setting(name: str, default: Any) -> Any:
    return getattr(settings, "BILLING", {}).get(name, default)


def retry_on_conflict(
    max_attempts: int | None = None,
    backoff_seconds: float | None = None,
):
    """
    Re-run a transactional function when it raises TransactionConflictError.

    The wrapped function must open its own transaction so every attempt
    starts from fresh data. Other exceptions, and conflicts marked
    is_retryable=False, propagate immediately.
    After the last attempt the final TransactionConflictError is re-raised
    with the attempt count added to its details.

    Args:
        max_attempts: Total attempts including the first
            (default: settings.BILLING["CONFLICT_MAX_ATTEMPTS"])
        backoff_seconds: Sleep before retry N is backoff_seconds * N
            (default: settings.BILLING["CONFLICT_BACKOFF_SECONDS"])

    Returns:
        Decorator function

    Example:
        @retry_on_conflict(max_attempts=5)
        def record_payment(treatment_id, amount):
            ...

    Note:
        Must wrap the outermost transaction. Retrying inside an enclosing
        atomic block would re-run on the same, already-broken transaction.
    """

    def decorator(func: Callable):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            attempts = max_attempts or _billing_setting("CONFLICT_MAX_ATTEMPTS", 3)
            backoff = (
                backoff_seconds
                if backoff_seconds is not None
                else _billing_setting("CONFLICT_BACKOFF_SECONDS", 0.05)
            )

            for attempt in range(1, attempts + 1):
                try:
                    return func(*args, **kwargs)
                except TransactionConflictError as exc:
                    if not exc.is_retryable:
                        raise
                    if attempt >= attempts:
                        exc.details["attempts"] = attempt
                        logger.error(
                            f"{func.__qualname__} gave up after {attempt} conflicting attempts",
                            extra={"function": func.__qualname__, "attempts": attempt},
                        )
                        raise
                    logger.warning(
                        f"{func.__qualname__} conflicted, retrying "
                        f"(attempt {attempt + 1} of {attempts})",
                        extra={"function": func.__qualname__, "attempt": attempt},
                    )
                    if backoff:
                        time.sleep(backoff * attempt)

        return wrapper

    return decorator
