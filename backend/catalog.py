from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from constants import DEFAULT_CUTOFF_DAY, DEFAULT_CUTOFF_TIME


def _parse_float(value: Any) -> Optional[float]:
    try:
        if value is None or value == "":
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


def _parse_int(value: Any, default: int = 0) -> int:
    try:
        if value is None or value == "":
            return default
        return int(value)
    except (TypeError, ValueError):
        return default


def _parse_day_list(value: Any) -> List[str]:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            value = [part.strip() for part in value.split(",")]
    if not isinstance(value, list):
        return []
    return [str(day).strip().capitalize() for day in value if str(day).strip()]


@dataclass
class Vendor:
    id: str
    name: str
    is_active: bool = True
    delivery_days: List[str] = field(default_factory=list)
    service_types: List[str] = field(default_factory=list)
    cutoff_hours: int = 0
    minimum_meals: int = 0

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Vendor":
        raw_types = row.get("service_type") or ""
        return cls(
            id=str(row["id"]),
            name=row.get("name") or "",
            is_active=bool(row.get("is_active", True)),
            delivery_days=_parse_day_list(row.get("delivery_days")),
            service_types=[s.strip() for s in str(raw_types).split(",") if s.strip()],
            cutoff_hours=_parse_int(row.get("cutoff_hours")),
            minimum_meals=_parse_int(row.get("minimum_meals")),
        )


@dataclass
class MenuItem:
    id: str
    vendor_id: Optional[str]
    name: str
    value: float = 0.0
    price_each: Optional[float] = None
    is_active: bool = True
    minimum_order: int = 0

    @property
    def unit_price(self) -> float:
        return self.price_each if self.price_each is not None else self.value

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "MenuItem":
        return cls(
            id=str(row["id"]),
            vendor_id=row.get("vendor_id"),
            name=row.get("name") or "",
            value=_parse_float(row.get("value")) or 0.0,
            price_each=_parse_float(row.get("price_each")),
            is_active=bool(row.get("is_active", True)),
            minimum_order=_parse_int(row.get("minimum_order")),
        )


@dataclass
class BoxType:
    id: str
    name: str
    vendor_id: Optional[str] = None
    is_active: bool = True
    price_each: Optional[float] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "BoxType":
        return cls(
            id=str(row["id"]),
            name=row.get("name") or "",
            vendor_id=row.get("vendor_id") or None,
            is_active=bool(row.get("is_active", True)),
            price_each=_parse_float(row.get("price_each")),
        )


@dataclass
class AppSettings:
    weekly_cutoff_day: str = DEFAULT_CUTOFF_DAY
    weekly_cutoff_time: str = DEFAULT_CUTOFF_TIME

    @classmethod
    def from_row(cls, row: Optional[Dict[str, Any]]) -> "AppSettings":
        if not row:
            return cls()
        return cls(
            weekly_cutoff_day=row.get("weekly_cutoff_day") or DEFAULT_CUTOFF_DAY,
            weekly_cutoff_time=row.get("weekly_cutoff_time") or DEFAULT_CUTOFF_TIME,
        )


@dataclass
class ReferenceData:
    """Read-only snapshot of the catalog used by one sync or promotion run."""

    vendors: List[Vendor] = field(default_factory=list)
    menu_items: List[MenuItem] = field(default_factory=list)
    box_types: List[BoxType] = field(default_factory=list)
    settings: AppSettings = field(default_factory=AppSettings)

    def __post_init__(self) -> None:
        self._vendors = {vendor.id: vendor for vendor in self.vendors}
        self._menu_items = {item.id: item for item in self.menu_items}
        self._box_types = {box_type.id: box_type for box_type in self.box_types}

    def vendor(self, vendor_id: Optional[str]) -> Optional[Vendor]:
        if not vendor_id:
            return None
        return self._vendors.get(str(vendor_id))

    def menu_item(self, item_id: Optional[str]) -> Optional[MenuItem]:
        if not item_id:
            return None
        return self._menu_items.get(str(item_id))

    def box_type(self, box_type_id: Optional[str]) -> Optional[BoxType]:
        if not box_type_id:
            return None
        return self._box_types.get(str(box_type_id))

    def resolve_box_vendor_id(
        self,
        vendor_id: Optional[str],
        box_type_id: Optional[str],
    ) -> Optional[str]:
        if vendor_id and str(vendor_id).strip():
            return str(vendor_id).strip()
        box_type = self.box_type(box_type_id)
        return box_type.vendor_id if box_type else None

    def item_price(self, item_id: Optional[str]) -> Optional[float]:
        item = self.menu_item(item_id)
        return item.unit_price if item else None
