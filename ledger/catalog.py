# ledger/catalog.py
from __future__ import annotations

from typing import Optional

from .models import TaskDefinition


def active_tasks(category: Optional[str] = None):
    """Active task definitions, optionally narrowed to one category."""
    qs = TaskDefinition.objects.active()
    if category:
        qs = qs.filter(category=category)
    return qs

