from __future__ import annotations

from django.db import models


class PersistedValue(models.Model):
    """A single stringified value stored under a well-known key."""

    objects = models.Manager["PersistedValue"]()

    key = models.CharField(max_length=100, unique=True)
    value = models.CharField(max_length=100)

    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("key",)

    def __str__(self) -> str:
        return f"{self.key}={self.value}"
