"""
Pydantic models for the session store.

Covers:
- Store envelope (SessionRecord, StoreDocument)
- Canonical session data produced by migration
"""

import math
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, StrictBool, StrictInt, StrictStr

FiniteFloat = Annotated[float, Field(allow_inf_nan=False)]
StrictFiniteFloat = Annotated[float, Field(strict=True, allow_inf_nan=False)]


# ─── Store Envelope ──────────────────────────────────────────────────


class SessionRecord(BaseModel):
    """One stored session: an opaque id plus its open-ended data mapping."""

    id: Union[StrictStr, StrictInt, StrictFiniteFloat]
    data: Dict[str, Any] = Field(default_factory=dict)


class StoreDocument(BaseModel):
    """The whole store: root metadata plus the ordered session list."""

    metadata: Dict[str, Any] = Field(default_factory=dict)
    sessions: List[SessionRecord] = Field(default_factory=list)

    def ids(self) -> list:
        return [record.id for record in self.sessions]


# ─── Canonical Session Data ──────────────────────────────────────────


class CartItem(BaseModel):
    """A validated cart line."""

    id: StrictInt = Field(gt=0)
    name: StrictStr
    price: Union[StrictInt, FiniteFloat] = Field(ge=0)
    quantity: StrictInt = Field(gt=0)


class Cart(BaseModel):
    items: List[CartItem] = Field(min_length=1)
    total: Union[StrictInt, FiniteFloat]
    updatedAt: str


class Coordinates(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class SessionData(BaseModel):
    """
    Canonical shape of a session's data.

    Every recognized field except ``language``, ``registered``,
    ``isAuthenticated`` and ``otpRetries`` is optional, and absence is the
    only way to express "no value". Unrecognized fields are handled by the
    migrator and never reach this model.
    """

    language: Literal["en", "ru", "uz"] = "en"
    registered: StrictBool = False
    isAuthenticated: StrictBool = False
    otpRetries: StrictInt = Field(default=0, ge=0)

    phone: Optional[StrictStr] = None
    currentCity: Optional[StrictInt] = Field(default=None, gt=0)
    selectedCity: Optional[StrictInt] = Field(default=None, gt=0)
    selectedBranch: Optional[StrictInt] = Field(default=None, gt=0)
    lastOtpSent: Optional[StrictInt] = None
    cart: Optional[Cart] = None
    deliveryType: Optional[Literal["pickup", "delivery"]] = None
    address: Optional[Any] = None
    coordinates: Optional[Coordinates] = None
    additionalPhone: Optional[Any] = None
    includeCutlery: Optional[StrictBool] = None
    lastViewedOrder: Optional[Any] = None

    def to_record_data(self) -> Dict[str, Any]:
        """Dump to a plain mapping, omitting every absent field."""
        return self.model_dump(exclude_none=True)


def as_number(value: Any) -> Optional[float]:
    """Finite number from a number or numeric string; None otherwise."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return value if math.isfinite(value) else None
        except OverflowError:
            # int beyond float range
            return None
    if isinstance(value, str):
        try:
            parsed = float(value)
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    return None


def compute_cart_total(items: List[Any]) -> Union[int, float]:
    """Sum of price x quantity over cart items, skipping lines without numbers."""
    total: Union[int, float] = 0
    for item in items:
        if not isinstance(item, dict):
            continue
        price = as_number(item.get("price"))
        quantity = as_number(item.get("quantity"))
        if price is None or quantity is None:
            continue
        total += price * quantity
    return total
