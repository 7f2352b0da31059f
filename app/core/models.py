"""
Timestamped abstract base for domain models.

Usage:
    from core.models import BaseModel

    class Notification(BaseModel):
        title = models.CharField(max_length=200)
"""

from __future__ import annotations

from django.db import models


class BaseModel(models.Model):
    """
    Adds ``created_at`` (indexed, set on insert) and ``updated_at``
    (refreshed by save()) and orders newest first.

    QuerySet.update() skips auto_now; bulk updates that must move
    ``updated_at`` set it themselves.
    """

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{type(self).__name__} #{self.pk}"
