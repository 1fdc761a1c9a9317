"""
Session eviction policy.

Age and inactivity are both measured from the same last-activity instant:
- older than ``max_session_age``  -> EXPIRE_OLD
- older than ``max_inactive_age`` -> EXPIRE_IDLE
- otherwise                       -> KEEP
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Optional

from sessionkeeper.activity import ActivityTracker, ensure_utc
from sessionkeeper.config import MaintenanceConfig


class Verdict(str, Enum):
    KEEP = "keep"
    EXPIRE_OLD = "expire_old"
    EXPIRE_IDLE = "expire_idle"


@dataclass(frozen=True)
class EvictionDecision:
    """Outcome of classifying one session."""

    verdict: Verdict
    last_activity: datetime
    age: timedelta
    reason: str = ""

    @property
    def expired(self) -> bool:
        return self.verdict is not Verdict.KEEP


def _format_age(age: timedelta) -> str:
    hours = int(age.total_seconds() // 3600)
    if hours >= 48:
        return f"{hours // 24}d"
    return f"{hours}h"


class EvictionPolicy:
    """Classifies sessions as keep, expired by age or expired by inactivity."""

    def __init__(
        self,
        config: Optional[MaintenanceConfig] = None,
        tracker: Optional[ActivityTracker] = None,
    ):
        self.config = config or MaintenanceConfig()
        self.tracker = tracker or ActivityTracker(self.config)

    def classify(self, data: Dict[str, Any], now: datetime) -> EvictionDecision:
        now = ensure_utc(now)
        last_activity = self.tracker.last_activity(data, now)
        age = now - last_activity

        if age > self.config.max_session_age:
            return EvictionDecision(
                Verdict.EXPIRE_OLD,
                last_activity,
                age,
                f"age {_format_age(age)} (limit: {_format_age(self.config.max_session_age)})",
            )

        if age > self.config.max_inactive_age:
            return EvictionDecision(
                Verdict.EXPIRE_IDLE,
                last_activity,
                age,
                f"inactive {_format_age(age)} (limit: {_format_age(self.config.max_inactive_age)})",
            )

        return EvictionDecision(Verdict.KEEP, last_activity, age)
