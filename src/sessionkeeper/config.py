"""
Maintenance configuration.

All thresholds live on one immutable ``MaintenanceConfig`` value that is
passed into every component. Defaults are defined here only; they can be
overridden from ``SESSIONKEEPER_*`` environment variables (a ``.env`` file is
honoured) or per invocation with ``with_overrides``.
"""

import json
import os
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

ENV_PREFIX = "SESSIONKEEPER_"

DEFAULT_STORE_PATH = Path("sessions.json")

OPTIMIZER_STEPS: Tuple[str, ...] = (
    "catalog_cache",
    "selected_product",
    "selected_category",
    "product_quantities",
    "transient_flags",
    "cart",
)


class ConfigError(ValueError):
    """Raised when configuration values are invalid."""

    pass


class MaintenanceConfig(BaseModel):
    """Thresholds for eviction, compaction and migration."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_session_age: timedelta = timedelta(days=7)
    max_inactive_age: timedelta = timedelta(hours=24)
    session_size_threshold_bytes: int = Field(default=100 * 1024, ge=0)
    max_product_quantities: int = Field(default=50, ge=0)
    product_quantities_retain_count: int = Field(default=20, ge=0)
    max_cart_items: int = Field(default=20, ge=0)
    cart_items_retain_count: int = Field(default=20, ge=0)
    compression_acceptance_threshold_percent: float = Field(default=10.0, ge=0, le=100)

    # Brand key under attribute_data.name in catalog snapshots
    catalog_brand: str = "chopar"
    optimizer_steps: Tuple[str, ...] = OPTIMIZER_STEPS
    migration_drop_unknown_fields: bool = False

    @field_validator("max_session_age", "max_inactive_age")
    @classmethod
    def _positive_duration(cls, value: timedelta) -> timedelta:
        if value <= timedelta(0):
            raise ValueError("duration must be positive")
        return value

    @field_validator("optimizer_steps")
    @classmethod
    def _known_steps(cls, value: Tuple[str, ...]) -> Tuple[str, ...]:
        unknown = [step for step in value if step not in OPTIMIZER_STEPS]
        if unknown:
            raise ValueError(
                f"Unknown optimizer steps: {', '.join(unknown)}. "
                f"Must be among: {', '.join(OPTIMIZER_STEPS)}"
            )
        return value

    @model_validator(mode="after")
    def _retain_within_cap(self) -> "MaintenanceConfig":
        if self.product_quantities_retain_count > self.max_product_quantities:
            raise ValueError(
                "product_quantities_retain_count cannot exceed max_product_quantities"
            )
        if self.cart_items_retain_count > self.max_cart_items:
            raise ValueError("cart_items_retain_count cannot exceed max_cart_items")
        return self

    def with_overrides(self, overrides: Mapping[str, Any]) -> "MaintenanceConfig":
        """Return a new validated config with the given fields replaced."""
        if not overrides:
            return self
        data = self.model_dump()
        data.update(overrides)
        return _build(data)

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        env_file: Optional[Path] = None,
    ) -> "MaintenanceConfig":
        """
        Build a config from ``SESSIONKEEPER_<FIELD>`` environment variables.

        Values are parsed as JSON when possible (``3600``, ``["cart"]``) and
        used as plain strings otherwise (``P7D``).
        """
        if environ is None:
            load_dotenv(env_file)
            environ = os.environ

        overrides: Dict[str, Any] = {}
        for name in cls.model_fields:
            raw = environ.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None:
                overrides[name] = parse_value(raw)
        return _build(overrides)


def parse_value(raw: str) -> Any:
    """Parse a textual config value: JSON first, plain string otherwise."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def parse_assignments(assignments) -> Dict[str, Any]:
    """Parse ``KEY=VALUE`` strings into a field mapping."""
    overrides: Dict[str, Any] = {}
    for item in assignments or ():
        key, sep, value = item.partition("=")
        key = key.strip().lower().replace("-", "_")
        if not sep or not key:
            raise ConfigError(f"Expected KEY=VALUE, got: {item!r}")
        if key not in MaintenanceConfig.model_fields:
            raise ConfigError(f"Unknown configuration key: {key}")
        overrides[key] = parse_value(value.strip())
    return overrides


def _build(data: Mapping[str, Any]) -> MaintenanceConfig:
    try:
        return MaintenanceConfig(**data)
    except ValidationError as e:
        raise ConfigError(str(e)) from e
