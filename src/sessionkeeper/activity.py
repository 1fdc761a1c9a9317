"""
Last-activity derivation.

A session carries several timestamp-bearing fields written by different parts
of the bot. The latest of them is the session's last activity; a session with
none is treated as already ``max_session_age`` old.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sessionkeeper.config import MaintenanceConfig
from sessionkeeper.logger import get_logger

logger = get_logger(__name__)

# (path into the record, human label)
TIMESTAMP_FIELDS = (
    (("cart", "updatedAt"), "cart.updatedAt"),
    (("lastOtpSent",), "lastOtpSent"),
    (("updatedAt",), "updatedAt"),
)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an epoch-millis number or an ISO-8601 string into an aware datetime.

    Returns None for anything else.
    """
    if isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            try:
                return parse_timestamp(float(text))
            except ValueError:
                return None
        return ensure_utc(parsed)

    return None


def ensure_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


class ActivityTracker:
    """Computes a single last-activity instant per session."""

    def __init__(self, config: Optional[MaintenanceConfig] = None):
        self.config = config or MaintenanceConfig()

    def candidates(self, data: Dict[str, Any]) -> List[datetime]:
        """Collect every parseable timestamp present on the record."""
        found = []
        for path, label in TIMESTAMP_FIELDS:
            value: Any = data
            for key in path:
                value = value.get(key) if isinstance(value, dict) else None
            if value is None:
                continue

            parsed = parse_timestamp(value)
            if parsed is None:
                logger.debug(f"Ignoring unparseable {label}: {value!r}")
                continue
            found.append(parsed)
        return found

    def last_activity(self, data: Dict[str, Any], now: datetime) -> datetime:
        """Latest timestamp on the record, or ``now - max_session_age``."""
        now = ensure_utc(now)
        found = self.candidates(data)
        if found:
            return max(found)
        return now - self.config.max_session_age

    def inactivity(self, data: Dict[str, Any], now: datetime) -> timedelta:
        return ensure_utc(now) - self.last_activity(data, now)
