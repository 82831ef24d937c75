"""Execution layer - the single boundary where OS commands are run"""

from .executor import CommandExecutor, PowerShellExecutor
from .rate_limiter import RateLimiter

__all__ = ["CommandExecutor", "PowerShellExecutor", "RateLimiter"]
