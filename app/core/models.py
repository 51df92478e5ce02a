"""
Abstract base model shared by the ledger models.

Base Classes:
    BaseModel: Abstract model with created_at/updated_at timestamps

Identity and optimistic-locking mixins live in core.model_mixins.

Usage:
    from core.models import BaseModel
    from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin

    class Patient(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
        name = models.CharField(max_length=255)

Note:
    List mixins before BaseModel in the bases.
"""

from __future__ import annotations

from django.db import models


class BaseModel(models.Model):
    """
    Abstract model with creation and modification timestamps.

    created_at also breaks ties between treatments entered at the same
    moment when a patient payment is distributed.
    """

    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="When this record was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When this record was last written",
    )

    class Meta:
        abstract = True
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(id={self.pk})"
