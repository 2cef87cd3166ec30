"""Derived-value rules for the ledger.

Every consumer (on-screen summaries, text reports, PDF/Excel exports, cached
totals) calls these functions; nothing else in the package multiplies rates
by quantities. All arithmetic is plain binary ``float`` so the two totalling
paths (``grand_total`` and ``prime_cost + overhead_total``) agree to machine
epsilon.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from .models import BOQItem, Ledger, TradeGroup

# Overhead & profit applied when an item carries no explicit O&P figure.
DEFAULT_OVERHEAD_RATE = 0.15


def resolve_overhead_and_profit(
    stored: Optional[float], rate_material: float, rate_labor: float
) -> float:
    """Return the authoritative unit O&P for an item.

    An explicit ``stored`` value wins verbatim, including zero or negative
    values (no clamping). ``None`` falls back to ``DEFAULT_OVERHEAD_RATE`` of
    material plus labour.
    """

    if stored is not None:
        return float(stored)
    return (rate_material + rate_labor) * DEFAULT_OVERHEAD_RATE


def unit_overhead_and_profit(item: BOQItem) -> float:
    stored = item.rate_analysis.overhead_and_profit if item.rate_analysis is not None else None
    return resolve_overhead_and_profit(stored, item.rate_material, item.rate_labor)


def has_explicit_overhead(item: BOQItem) -> bool:
    return item.rate_analysis is not None and item.rate_analysis.overhead_and_profit is not None


def base_unit_rate(item: BOQItem) -> float:
    return item.rate_material + item.rate_labor


def full_unit_rate(item: BOQItem) -> float:
    return base_unit_rate(item) + unit_overhead_and_profit(item)


def item_total(item: BOQItem) -> float:
    return item.quantity * full_unit_rate(item)


def trade_total(items: Iterable[BOQItem]) -> float:
    return sum((item_total(item) for item in items), 0.0)


def grand_total(trades: Iterable[TradeGroup]) -> float:
    return sum((trade_total(trade.items) for trade in trades), 0.0)


def _all_items(trades: Iterable[TradeGroup]) -> Iterable[BOQItem]:
    for trade in trades:
        yield from trade.items


def material_total(trades: Iterable[TradeGroup]) -> float:
    return sum((item.quantity * item.rate_material for item in _all_items(trades)), 0.0)


def labor_total(trades: Iterable[TradeGroup]) -> float:
    return sum((item.quantity * item.rate_labor for item in _all_items(trades)), 0.0)


def prime_cost(trades: Iterable[TradeGroup]) -> float:
    """Material plus labour over every item, excluding O&P."""

    return sum(
        (item.quantity * base_unit_rate(item) for item in _all_items(trades)),
        0.0,
    )


def overhead_total(trades: Iterable[TradeGroup]) -> float:
    return sum(
        (item.quantity * unit_overhead_and_profit(item) for item in _all_items(trades)),
        0.0,
    )


def _share(part: float, whole: float) -> float:
    if whole == 0:
        return 0.0
    return part / whole * 100.0


@dataclass(frozen=True)
class CostBreakdown:
    """Ledger-level totals used by dashboards and the executive summary."""

    material: float
    labor: float
    overhead_and_profit: float
    prime_cost: float
    grand_total: float

    @property
    def material_pct(self) -> float:
        return _share(self.material, self.grand_total)

    @property
    def labor_pct(self) -> float:
        return _share(self.labor, self.grand_total)

    @property
    def overhead_pct(self) -> float:
        return _share(self.overhead_and_profit, self.grand_total)

    @property
    def prime_cost_pct(self) -> float:
        return _share(self.prime_cost, self.grand_total)


def cost_breakdown(ledger: Ledger) -> CostBreakdown:
    trades = ledger.trades
    return CostBreakdown(
        material=material_total(trades),
        labor=labor_total(trades),
        overhead_and_profit=overhead_total(trades),
        prime_cost=prime_cost(trades),
        grand_total=grand_total(trades),
    )


__all__ = [
    "DEFAULT_OVERHEAD_RATE",
    "resolve_overhead_and_profit",
    "unit_overhead_and_profit",
    "has_explicit_overhead",
    "base_unit_rate",
    "full_unit_rate",
    "item_total",
    "trade_total",
    "grand_total",
    "material_total",
    "labor_total",
    "prime_cost",
    "overhead_total",
    "CostBreakdown",
    "cost_breakdown",
]
