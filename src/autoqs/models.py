from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, Optional, Tuple

from .errors import LedgerIntegrityError


class AssumptionCategory(str, Enum):
    QUANTITY = "Quantity"
    SPECIFICATION = "Specification"
    SITE_CONDITION = "Site Condition"
    GENERAL = "General"
    PRICING = "Pricing"

    @classmethod
    def coerce(cls, value: object) -> "AssumptionCategory":
        """Map free text onto a category, falling back to ``General``."""

        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        for member in cls:
            if member.value.lower() == text or member.name.lower() == text:
                return member
        return cls.GENERAL


@dataclass(frozen=True)
class RateAnalysis:
    """Build-up of an item's unit rate.

    ``base_material``/``base_labor`` mirror the item's own rates and are only
    resynchronised on the overhead update path. ``overhead_and_profit`` is
    ``None`` when the generator did not state it; the computation layer then
    derives it.
    """

    base_material: float = 0.0
    base_labor: float = 0.0
    plant_and_equipment: float = 0.0
    overhead_and_profit: Optional[float] = None
    narrative: str = ""


@dataclass(frozen=True)
class BOQItem:
    """A priced line of the bill. ``id`` is the only valid lookup key."""

    id: str
    item_no: str
    description: str
    unit: str
    quantity: float
    quantity_formula: str
    rate_material: float
    rate_labor: float
    rate_analysis: Optional[RateAnalysis] = None
    remarks: Optional[str] = None
    user_notes: Optional[str] = None


@dataclass(frozen=True)
class TradeGroup:
    name: str
    items: Tuple[BOQItem, ...] = ()
    # Cached by the generator; never authoritative.
    trade_total: float = 0.0


@dataclass(frozen=True)
class ProjectSummary:
    project_type: str
    structure: str
    floors: str
    measurement_standard: str
    currency: str
    currency_symbol: str
    total_estimated_cost: float = 0.0
    notes: Optional[str] = None


@dataclass(frozen=True)
class Assumption:
    category: AssumptionCategory
    text: str
    id: str = ""


@dataclass(frozen=True)
class Supplier:
    trade: str
    name: str
    phone_number: str = ""
    email: str = ""
    website: Optional[str] = None
    location: Optional[str] = None
    service_level: Optional[str] = None
    rating: Optional[float] = None
    specialization: Optional[str] = None
    typical_project_size: Optional[str] = None
    testimonial: Optional[str] = None
    estimated_quote: Optional[str] = None


@dataclass(frozen=True)
class Source:
    title: str
    uri: str


@dataclass(frozen=True)
class Ledger:
    """Root snapshot of an estimate. Every edit produces a new instance."""

    project_summary: ProjectSummary
    trades: Tuple[TradeGroup, ...] = ()
    assumptions: Tuple[Assumption, ...] = ()
    suppliers: Tuple[Supplier, ...] = ()
    sources: Tuple[Source, ...] = ()
    is_insufficient_info: bool = False
    missing_info_reason: Optional[str] = None


def iter_items(ledger: Ledger) -> Iterator[Tuple[int, int, BOQItem]]:
    """Yield ``(trade_index, item_index, item)`` in display order."""

    for t_idx, trade in enumerate(ledger.trades):
        for i_idx, item in enumerate(trade.items):
            yield t_idx, i_idx, item


def item_ids(ledger: Ledger) -> set[str]:
    return {item.id for _, _, item in iter_items(ledger)}


def find_item(ledger: Ledger, item_id: str) -> Optional[Tuple[int, int, BOQItem]]:
    """Locate an item by its synthetic id. ``item_no`` is never used for lookup."""

    for t_idx, i_idx, item in iter_items(ledger):
        if item.id == item_id:
            return t_idx, i_idx, item
    return None


def duplicate_item_ids(ledger: Ledger) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for _, _, item in iter_items(ledger):
        counts[item.id] = counts.get(item.id, 0) + 1
    return {item_id: count for item_id, count in counts.items() if count > 1}


def validate_ledger(ledger: Ledger) -> Ledger:
    """Raise :class:`LedgerIntegrityError` unless every item id is unique and non-empty."""

    if any(not item.id for _, _, item in iter_items(ledger)):
        raise LedgerIntegrityError("Ledger contains an item without an id")
    duplicates = duplicate_item_ids(ledger)
    if duplicates:
        listed = ", ".join(sorted(duplicates))
        raise LedgerIntegrityError(f"Duplicate item ids in ledger: {listed}")
    return ledger


__all__ = [
    "AssumptionCategory",
    "RateAnalysis",
    "BOQItem",
    "TradeGroup",
    "ProjectSummary",
    "Assumption",
    "Supplier",
    "Source",
    "Ledger",
    "iter_items",
    "item_ids",
    "find_item",
    "duplicate_item_ids",
    "validate_ledger",
]
