"""
Insert queue module: decouples the collect request from store writes.
Implements Strategy Pattern for flexible queue backends.
"""

from .strategies import QueueStrategy, InMemoryQueue
from .models import RowBatch

__all__ = [
    "QueueStrategy",
    "InMemoryQueue",
    "RowBatch",
]
