"""
Rate limiting for the collect endpoint.
"""

from .limiter import FixedWindowRateLimiter

__all__ = ["FixedWindowRateLimiter"]
