"""
Live stream module for real-time dashboard updates.
"""

from .live import LiveStream, Subscription

__all__ = ["LiveStream", "Subscription"]
