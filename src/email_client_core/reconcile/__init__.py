"""Optimistic-send reconciliation.

Matches locally synthesized sent placeholders against fetched folder listings
and retires them once their authoritative copy shows up.
"""

from .matcher import matches
from .registry import PendingRegistry, create_placeholders, reconcile

__all__ = ["PendingRegistry", "create_placeholders", "matches", "reconcile"]
