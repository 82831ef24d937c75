"""Session context - state that lives for one engine session

Holds what used to be process-wide singletons (status cache, rate limiter)
plus a short toggle history. Created by the engine, torn down by close().
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..execution.rate_limiter import RateLimiter
from .status_cache import StatusCache


@dataclass
class SessionContext:
    """Per-session state owned by a TweakEngine"""
    cache: StatusCache = field(default_factory=StatusCache)
    limiter: RateLimiter = field(default_factory=RateLimiter)

    session_start_time: datetime = field(default_factory=datetime.now)
    toggle_count: int = 0
    failure_count: int = 0
    last_tweak: str = ""
    last_error: str = ""
    recent_toggles: List[Dict[str, Any]] = field(default_factory=list)
    closed: bool = False

    def record_toggle(self, tweak_id: str, desired: bool, success: bool, error: Optional[str] = None):
        """Record one toggle attempt"""
        self.last_tweak = tweak_id
        self.last_error = "" if success else (error or "")

        self.toggle_count += 1
        if not success:
            self.failure_count += 1

        # Keep last 20 toggles only
        self.recent_toggles.append({
            "id": tweak_id,
            "enabled": desired,
            "success": success,
            "time": datetime.now().isoformat(),
        })
        if len(self.recent_toggles) > 20:
            self.recent_toggles.pop(0)

    def get_session_summary(self) -> Dict[str, Any]:
        return {
            "toggles": self.toggle_count,
            "failures": self.failure_count,
            "last_tweak": self.last_tweak or None,
            "cached_statuses": len(self.cache),
            "session_mins": int((datetime.now() - self.session_start_time).total_seconds() / 60),
        }

    def close(self):
        """Drop cached statuses and limiter windows"""
        self.cache.clear()
        self.limiter.reset()
        self.recent_toggles = []
        self.closed = True
