"""
Shared infrastructure for the ledger apps.

Nothing here knows about patients or treatments:

- core.models / core.model_mixins: BaseModel, UUIDPrimaryKeyMixin, VersionedMixin
- core.services: BaseService (logger, atomic()), ServiceResult
- core.locking: lock_for_update
- core.exceptions: BaseApplicationError and its subclasses
- core.decorators: retry_on_conflict
- core.exception_handler: DRF handler rendering application errors

Models are not re-exported here so importing core never touches the
app registry.
"""

from .decorators import retry_on_conflict
from .exceptions import (
    BackendError,
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    StaleVersionError,
    TransactionConflictError,
    ValidationError,
)
from .services import BaseService, ServiceResult

__all__ = [
    "BaseService",
    "ServiceResult",
    "BaseApplicationError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "TransactionConflictError",
    "StaleVersionError",
    "ExternalServiceError",
    "BackendError",
    "retry_on_conflict",
]
