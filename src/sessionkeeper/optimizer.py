"""
Field-level session compaction.

Compaction is a pipeline of named steps. Each step is pure: it receives a
session's data mapping and returns a new mapping plus the names of what it
dropped, never mutating its input. Steps are selected and ordered through
``MaintenanceConfig.optimizer_steps``.

The result is lossy. Callers decide whether the saving justifies it, see
``FieldOptimizer.is_worthwhile``.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from sessionkeeper.codec import record_size
from sessionkeeper.config import MaintenanceConfig
from sessionkeeper.models import compute_cart_total

StepOutput = Tuple[Dict[str, Any], List[str]]
StepFunc = Callable[[Dict[str, Any], MaintenanceConfig], StepOutput]

CATALOG_CACHE_FIELDS = ("products", "categories", "cities", "terminals")
TRANSIENT_FIELDS = ("step", "previousScene", "__scenes")
TRANSIENT_FLAG_PATTERN = re.compile(r"^expecting[A-Z0-9_]")
CART_ITEM_FIELDS = ("id", "name", "price", "quantity")


@dataclass
class OptimizationResult:
    """A compacted record together with its size accounting."""

    data: Dict[str, Any]
    original_size: int
    optimized_size: int
    compression_ratio: float
    dropped_fields: List[str] = field(default_factory=list)

    @property
    def saved_bytes(self) -> int:
        return self.original_size - self.optimized_size


# ─── Helpers ─────────────────────────────────────────────────────────


def _compact(mapping: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in mapping.items() if value is not None}


def _tail(items: Sequence, count: int) -> list:
    """Last ``count`` elements, keeping their order."""
    items = list(items)
    return items[len(items) - count:] if count > 0 else []


def catalog_name(snapshot: Dict[str, Any], language: Any, brand: str) -> Optional[Any]:
    """
    Localized name from a catalog snapshot's ``attribute_data``.

    Looks under ``attribute_data.name.<brand>`` (or ``attribute_data.name``
    when there is no brand layer) for the session language, then ``ru``, then
    any non-empty translation.
    """
    attributes = snapshot.get("attribute_data")
    if not isinstance(attributes, dict):
        return None
    names = attributes.get("name")
    if not isinstance(names, dict):
        return None

    localized = names.get(brand, names)
    if isinstance(localized, str):
        return localized or None
    if not isinstance(localized, dict):
        return None

    for lang in (language, "ru"):
        value = localized.get(lang) if isinstance(lang, str) else None
        if isinstance(value, str) and value.strip():
            return value
    for value in localized.values():
        if isinstance(value, str) and value.strip():
            return value
    return None


# ─── Steps ───────────────────────────────────────────────────────────


def drop_catalog_cache(data: Dict[str, Any], config: MaintenanceConfig) -> StepOutput:
    """Drop catalog lists cached on the session while browsing."""
    dropped = [name for name in CATALOG_CACHE_FIELDS if name in data]
    if not dropped:
        return data, []
    return {k: v for k, v in data.items() if k not in dropped}, dropped


def slim_selected_product(data: Dict[str, Any], config: MaintenanceConfig) -> StepOutput:
    """Reduce the selected product snapshot to id, name and price."""
    product = data.get("selectedProduct")
    if not isinstance(product, dict):
        return data, []

    name = (
        product.get("custom_name")
        or catalog_name(product, data.get("language"), config.catalog_brand)
        or product.get("name")
    )
    slim = _compact({"id": product.get("id"), "name": name, "price": product.get("price")})
    if slim == product:
        return data, []
    return {**data, "selectedProduct": slim}, ["selectedProduct.details"]


def slim_selected_category(data: Dict[str, Any], config: MaintenanceConfig) -> StepOutput:
    """Reduce the selected category snapshot to id, name and icon."""
    category = data.get("selectedCategory")
    if not isinstance(category, dict):
        return data, []

    name = catalog_name(category, data.get("language"), config.catalog_brand) or category.get("name")
    slim = _compact({"id": category.get("id"), "name": name, "icon": category.get("icon")})
    if slim == category:
        return data, []
    return {**data, "selectedCategory": slim}, ["selectedCategory.details"]


def trim_product_quantities(data: Dict[str, Any], config: MaintenanceConfig) -> StepOutput:
    """Keep only the most recently inserted quantity entries once over the cap."""
    quantities = data.get("productQuantities")
    if not isinstance(quantities, dict) or len(quantities) <= config.max_product_quantities:
        return data, []

    recent = dict(_tail(quantities.items(), config.product_quantities_retain_count))
    return {**data, "productQuantities": recent}, ["productQuantities.old"]


def drop_transient_flags(data: Dict[str, Any], config: MaintenanceConfig) -> StepOutput:
    """Drop in-progress UI flow markers."""
    dropped = [
        key
        for key in data
        if key in TRANSIENT_FIELDS or TRANSIENT_FLAG_PATTERN.match(key)
    ]
    if not dropped:
        return data, []
    return {k: v for k, v in data.items() if k not in dropped}, dropped


def trim_cart(data: Dict[str, Any], config: MaintenanceConfig) -> StepOutput:
    """Cap the cart to its most recent items and strip item metadata."""
    cart = data.get("cart")
    if not isinstance(cart, dict) or not isinstance(cart.get("items"), list):
        return data, []

    items = cart["items"]
    dropped = []
    trimmed = len(items) > config.max_cart_items
    if trimmed:
        items = _tail(items, config.cart_items_retain_count)
        dropped.append("cart.oldItems")

    stripped = [
        {key: item[key] for key in CART_ITEM_FIELDS if key in item}
        if isinstance(item, dict)
        else item
        for item in items
    ]
    if stripped != items:
        dropped.append("cart.items.details")

    new_cart = {**cart, "items": stripped}
    if trimmed:
        new_cart["total"] = compute_cart_total(stripped)

    if new_cart == cart:
        return data, []
    return {**data, "cart": new_cart}, dropped


STEPS: Dict[str, StepFunc] = {
    "catalog_cache": drop_catalog_cache,
    "selected_product": slim_selected_product,
    "selected_category": slim_selected_category,
    "product_quantities": trim_product_quantities,
    "transient_flags": drop_transient_flags,
    "cart": trim_cart,
}


class FieldOptimizer:
    """Runs the configured compaction steps over a session's data."""

    def __init__(
        self,
        config: Optional[MaintenanceConfig] = None,
        steps: Optional[Sequence[str]] = None,
    ):
        self.config = config or MaintenanceConfig()
        names = tuple(steps) if steps is not None else self.config.optimizer_steps
        unknown = [name for name in names if name not in STEPS]
        if unknown:
            raise ValueError(f"Unknown optimizer steps: {', '.join(unknown)}")
        self.step_names = names

    def optimize(self, data: Dict[str, Any]) -> OptimizationResult:
        original_size = record_size(data)

        current = data
        dropped: List[str] = []
        for name in self.step_names:
            current, step_dropped = STEPS[name](current, self.config)
            dropped.extend(step_dropped)

        optimized_size = record_size(current)
        ratio = (
            (original_size - optimized_size) / original_size * 100
            if original_size
            else 0.0
        )
        return OptimizationResult(
            data=current,
            original_size=original_size,
            optimized_size=optimized_size,
            compression_ratio=ratio,
            dropped_fields=dropped,
        )

    def is_worthwhile(self, result: OptimizationResult) -> bool:
        """Whether the saving clears the acceptance threshold."""
        return result.compression_ratio > self.config.compression_acceptance_threshold_percent
