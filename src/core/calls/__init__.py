"""
Group call bookkeeping.

Contains the call record model shared by every storage backend.
"""

from .models import CallRecord, generate_call_id

__all__ = [
    "CallRecord",
    "generate_call_id",
]
