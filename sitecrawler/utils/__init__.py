"""
Utility functions
"""
from .logger import setup_logging
from .rate_limiter import rate_limit, get_rate_limiter

__all__ = [
    "setup_logging",
    "rate_limit",
    "get_rate_limiter",
]
