"""
Schema migration of legacy session records.

Every recognized field is coerced on its own; a field that cannot be coerced
is dropped rather than failing the record. The result is validated against
``SessionData`` so a migrated record is always canonical. Anything that still
goes wrong surfaces as ``RecordTransformError`` for that record only.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sessionkeeper.activity import parse_timestamp
from sessionkeeper.config import MaintenanceConfig
from sessionkeeper.errors import RecordTransformError
from sessionkeeper.logger import get_logger
from sessionkeeper.models import (
    SessionData,
    SessionRecord,
    as_number,
    compute_cart_total,
)

logger = get_logger(__name__)

VALID_LANGUAGES = ("en", "ru", "uz")
VALID_DELIVERY_TYPES = ("pickup", "delivery")
RECOGNIZED_FIELDS = frozenset(SessionData.model_fields)


def positive_int(value: Any) -> Optional[int]:
    """
    Positive integral id from a number or numeric string.

    Legacy objects such as ``{"id": 3, "name": ...}`` collapse to their id.
    """
    if isinstance(value, dict):
        value = value.get("id")
        if isinstance(value, dict):
            return None

    number = as_number(value)
    if number is None or number <= 0 or number != int(number):
        return None
    return int(number)


def non_negative_int(value: Any, default: int = 0) -> int:
    number = as_number(value)
    if number is None or number < 0 or number != int(number):
        return default
    return int(number)


def epoch_millis(value: Any) -> Optional[int]:
    number = as_number(value)
    if number is not None:
        # 0 is the legacy "never sent" marker
        return int(number) or None
    parsed = parse_timestamp(value)
    if parsed is None:
        return None
    return int(parsed.timestamp() * 1000)


def _strict_number(value: Any) -> Optional[float]:
    if isinstance(value, (bool, str)):
        return None
    return as_number(value)


def valid_cart_item(item: Any) -> Optional[Dict[str, Any]]:
    """Canonical cart line, or None when any required field is invalid."""
    if not isinstance(item, dict):
        return None

    item_id = _strict_number(item.get("id"))
    price = _strict_number(item.get("price"))
    quantity = _strict_number(item.get("quantity"))
    name = item.get("name")

    if item_id is None or item_id <= 0 or item_id != int(item_id):
        return None
    if quantity is None or quantity <= 0 or quantity != int(quantity):
        return None
    if price is None or price < 0 or not isinstance(name, str):
        return None

    return {"id": int(item_id), "name": name, "price": price, "quantity": int(quantity)}


def migrate_coordinates(value: Any) -> Optional[Dict[str, float]]:
    """Both coordinates in range, or nothing."""
    if not isinstance(value, dict):
        return None

    latitude = as_number(value.get("latitude"))
    longitude = as_number(value.get("longitude"))
    if latitude is None or longitude is None:
        return None
    if not (-90 <= latitude <= 90 and -180 <= longitude <= 180):
        return None
    return {"latitude": float(latitude), "longitude": float(longitude)}


class SchemaMigrator:
    """Rewrites session data into the canonical schema."""

    def __init__(
        self,
        config: Optional[MaintenanceConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config or MaintenanceConfig()
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def migrate(self, record: SessionRecord) -> SessionRecord:
        """
        Migrate one record.

        Raises:
            RecordTransformError: If the record cannot be coerced at all.
        """
        data = record.data
        if not isinstance(data, dict):
            raise RecordTransformError(
                record.id, f"data must be an object, got {type(data).__name__}"
            )

        try:
            canonical = SessionData.model_validate(self.coerce(data)).to_record_data()
        except Exception as e:
            raise RecordTransformError(record.id, str(e), cause=e) from e

        if not self.config.migration_drop_unknown_fields:
            for key, value in data.items():
                if key not in RECOGNIZED_FIELDS and value is not None:
                    canonical[key] = value

        return SessionRecord(id=record.id, data=canonical)

    def coerce(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Map raw fields onto canonical ones; None means "omit"."""
        language = data.get("language")
        phone = data.get("phone")
        if isinstance(phone, int) and not isinstance(phone, bool):
            phone = str(phone)

        fields: Dict[str, Any] = {
            "language": language if language in VALID_LANGUAGES else "en",
            "registered": bool(data.get("registered")),
            "isAuthenticated": bool(data.get("isAuthenticated")),
            "otpRetries": non_negative_int(data.get("otpRetries")),
            "phone": phone if isinstance(phone, str) and phone else None,
            "currentCity": positive_int(data.get("currentCity")),
            "selectedCity": positive_int(data.get("selectedCity")),
            "selectedBranch": positive_int(data.get("selectedBranch")),
            "lastOtpSent": epoch_millis(data.get("lastOtpSent")),
            "cart": self.migrate_cart(data.get("cart")),
            "deliveryType": (
                data.get("deliveryType")
                if data.get("deliveryType") in VALID_DELIVERY_TYPES
                else None
            ),
            "address": data.get("address") or None,
            "coordinates": migrate_coordinates(data.get("coordinates")),
            "additionalPhone": data.get("additionalPhone") or None,
            "includeCutlery": (
                bool(data["includeCutlery"])
                if data.get("includeCutlery") is not None
                else None
            ),
            "lastViewedOrder": data.get("lastViewedOrder") or None,
        }
        return {key: value for key, value in fields.items() if value is not None}

    def migrate_cart(self, cart: Any) -> Optional[Dict[str, Any]]:
        if not isinstance(cart, dict):
            return None

        raw_items = cart.get("items")
        items: List[Dict[str, Any]] = []
        if isinstance(raw_items, list):
            for raw in raw_items:
                item = valid_cart_item(raw)
                if item is not None:
                    items.append(item)
        if not items:
            return None

        updated_at = cart.get("updatedAt")
        if not (isinstance(updated_at, str) and updated_at):
            parsed = parse_timestamp(updated_at)
            updated_at = (parsed or self.clock()).isoformat()

        return {
            "items": items,
            "total": compute_cart_total(items),
            "updatedAt": updated_at,
        }
