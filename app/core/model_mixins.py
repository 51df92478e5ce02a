"""
Model mixins providing reusable functionality for Django models.

This module contains abstract mixin classes that can be combined with
BaseModel to add specific functionality. These are generic infrastructure
classes with no domain-specific logic.

Available Mixins:
    UUIDPrimaryKeyMixin: Use UUID as primary key
    VersionedMixin: Optimistic locking counter bumped on every save

Usage:
    from core.models import BaseModel
    from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin

    class Treatment(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
        diagnosis = models.CharField(max_length=255)

Note:
    - Always list mixins before BaseModel in inheritance
    - Mixins are abstract and don't create database tables
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from django.db import models
from django.db.models import F

if TYPE_CHECKING:
    from typing import Any


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use UUID as primary key instead of auto-increment integer.

    Benefits:
        - Non-guessable IDs
        - Safe for distributed systems (no ID collisions)
        - Can be generated client-side before database insert

    Fields:
        id: UUIDField as primary key (auto-generated)
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True


class VersionedMixin(models.Model):
    """
    Optimistic locking support.

    The version counter starts at 1 and is incremented atomically on every
    update through save(). Queryset updates that touch a versioned row
    must bump it themselves with F("version") + 1.

    Fields:
        version: Positive integer incremented on each write

    Usage:
        from core.locking import lock_for_update

        treatment = lock_for_update(Treatment, pk, expected_version=2)
        treatment.save()
        assert treatment.version == 3
    """

    version = models.PositiveIntegerField(
        default=1,
        help_text="Version for optimistic locking - incremented on each save",
    )

    class Meta:
        abstract = True

    def save(self, *args: Any, **kwargs: Any) -> None:
        """
        Save with version auto-increment for optimistic locking.

        On update (not force_insert), atomically increments the version
        field to detect concurrent modifications.
        """
        is_update = (
            not self._state.adding and not kwargs.get("force_insert", False)
        )
        if is_update:
            self.version = F("version") + 1
            update_fields = kwargs.get("update_fields")
            if update_fields is not None:
                kwargs["update_fields"] = {*update_fields, "version"}
        super().save(*args, **kwargs)
        if is_update:
            self.refresh_from_db(fields=["version"])
