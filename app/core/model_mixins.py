"""
Reusable model mixins.

Mixins:
    UUIDPrimaryKeyMixin: UUID primary key instead of auto-increment integer

Usage:
    from core.model_mixins import UUIDPrimaryKeyMixin
    from core.models import BaseModel

    class Connection(UUIDPrimaryKeyMixin, BaseModel):
        ...
"""

from __future__ import annotations

import uuid

from django.db import models


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use UUID as primary key instead of auto-increment integer.

    Ids appear in URLs (connection retry, provider health) and in
    webhook audit rows; UUIDs keep them non-guessable and don't reveal
    how many shops or connections exist.

    Fields:
        id: UUIDField as primary key (auto-generated)

    Note:
        The id is assigned on instantiation, so ``pk`` is never None.
        Use ``_state.adding`` to tell new instances from stored ones.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True
