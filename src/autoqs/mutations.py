"""Edit operations over ledger snapshots.

Each operation takes a :class:`~autoqs.models.Ledger` and returns a new one;
inputs are never mutated. Untouched trades, items and assumptions are shared
between the old and new snapshot.

Numeric input is coerced, not rejected: text that does not start with a
number becomes ``0.0`` (see :func:`coerce_number`). Positions that do not
exist raise :class:`~autoqs.errors.LedgerIndexError`.
"""

from __future__ import annotations

import logging
import math
import re
import uuid
from dataclasses import replace
from enum import Enum
from typing import Callable, Optional, Sequence, Tuple, TypeVar, Union

from .computation import grand_total, trade_total
from .errors import LedgerIndexError
from .models import Assumption, AssumptionCategory, BOQItem, Ledger, RateAnalysis, TradeGroup, item_ids
from .numbering import next_item_number

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

NEW_ITEM_DESCRIPTION = "New Item Description"
NEW_ITEM_UNIT = "ea"
NEW_ITEM_NARRATIVE = "Manual Entry"
NEW_TRADE_NAME = "New Trade Section"

_NUMBER_PREFIX = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


class ItemField(str, Enum):
    """Closed set of item fields editable through :func:`update_item_field`."""

    ITEM_NO = "item_no"
    DESCRIPTION = "description"
    UNIT = "unit"
    QUANTITY = "quantity"
    QUANTITY_FORMULA = "quantity_formula"
    RATE_MATERIAL = "rate_material"
    RATE_LABOR = "rate_labor"
    REMARKS = "remarks"
    USER_NOTES = "user_notes"

    @property
    def is_numeric(self) -> bool:
        return self in _NUMERIC_FIELDS

    @classmethod
    def parse(cls, value: Union[str, "ItemField"]) -> "ItemField":
        """Accept enum members, snake_case names or the camelCase wire names."""

        if isinstance(value, cls):
            return value
        key = str(value).strip()
        alias = _WIRE_ALIASES.get(key)
        if alias is not None:
            return alias
        try:
            return cls(key.lower())
        except ValueError:
            raise ValueError(f"Unknown item field: {value!r}") from None


_NUMERIC_FIELDS = frozenset({ItemField.QUANTITY, ItemField.RATE_MATERIAL, ItemField.RATE_LABOR})
_WIRE_ALIASES = {
    "itemNo": ItemField.ITEM_NO,
    "quantityFormula": ItemField.QUANTITY_FORMULA,
    "rateMaterial": ItemField.RATE_MATERIAL,
    "rateLabor": ItemField.RATE_LABOR,
    "userNotes": ItemField.USER_NOTES,
}


def coerce_number(value: object) -> float:
    """
    Parse user input into a float without ever raising.

    Numbers pass through. Text is read like a lenient form field: the leading
    numeric portion is used (``"12.5 m2"`` -> ``12.5``) and anything without a
    leading number, ``None``, NaN or infinity becomes ``0.0``.
    """

    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        match = _NUMBER_PREFIX.match(str(value) if value is not None else "")
        if not match:
            return 0.0
        try:
            number = float(match.group(1))
        except ValueError:
            return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def _replace_at(values: Tuple[T, ...], index: int, value: T) -> Tuple[T, ...]:
    return values[:index] + (value,) + values[index + 1 :]


def _remove_at(values: Tuple[T, ...], index: int) -> Tuple[T, ...]:
    return values[:index] + values[index + 1 :]


def _check_index(values: Sequence[object], index: int, label: str) -> None:
    if not isinstance(index, int) or index < 0 or index >= len(values):
        raise LedgerIndexError(f"{label} index {index!r} out of range (0..{len(values) - 1})")


def _trade(ledger: Ledger, trade_index: int) -> TradeGroup:
    _check_index(ledger.trades, trade_index, "Trade")
    return ledger.trades[trade_index]


def _with_trade(ledger: Ledger, trade_index: int, trade: TradeGroup) -> Ledger:
    return replace(ledger, trades=_replace_at(ledger.trades, trade_index, trade))


def _map_item(
    ledger: Ledger, trade_index: int, item_index: int, change: Callable[[BOQItem], BOQItem]
) -> Ledger:
    trade = _trade(ledger, trade_index)
    _check_index(trade.items, item_index, "Item")
    updated = change(trade.items[item_index])
    return _with_trade(ledger, trade_index, replace(trade, items=_replace_at(trade.items, item_index, updated)))


def new_identifier(prefix: str, existing: Optional[set[str]] = None) -> str:
    """Return ``{prefix}-{random hex}`` not present in ``existing``."""

    taken = existing or set()
    while True:
        candidate = f"{prefix}-{uuid.uuid4().hex[:12]}"
        if candidate not in taken:
            return candidate


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------


def update_item_field(
    ledger: Ledger,
    trade_index: int,
    item_index: int,
    field: Union[ItemField, str],
    value: object,
) -> Ledger:
    """Set one scalar item field.

    ``quantity``, ``rate_material`` and ``rate_labor`` are coerced with
    :func:`coerce_number`. Changing a rate does not touch
    ``rate_analysis.base_material``/``base_labor``; only
    :func:`update_item_overhead` resynchronises them.
    """

    target = ItemField.parse(field)
    if target.is_numeric:
        new_value: object = coerce_number(value)
    elif target in (ItemField.REMARKS, ItemField.USER_NOTES):
        new_value = None if value is None else str(value)
    else:
        new_value = "" if value is None else str(value)
    return _map_item(ledger, trade_index, item_index, lambda item: replace(item, **{target.value: new_value}))


def update_item_overhead(ledger: Ledger, trade_index: int, item_index: int, value: object) -> Ledger:
    """Make the item's unit O&P explicit.

    Also copies the item's current material and labour rates into the rate
    analysis, keeping any existing plant/equipment figure and narrative.
    """

    overhead = coerce_number(value)

    def change(item: BOQItem) -> BOQItem:
        current = item.rate_analysis or RateAnalysis()
        analysis = RateAnalysis(
            base_material=item.rate_material,
            base_labor=item.rate_labor,
            plant_and_equipment=current.plant_and_equipment or 0.0,
            overhead_and_profit=overhead,
            narrative=current.narrative or "",
        )
        return replace(item, rate_analysis=analysis)

    return _map_item(ledger, trade_index, item_index, change)


def add_item(ledger: Ledger, trade_index: int) -> Ledger:
    """Append a blank manually-entered item to a trade."""

    trade = _trade(ledger, trade_index)
    item = BOQItem(
        id=new_identifier("new", item_ids(ledger)),
        item_no=next_item_number(trade_index, [existing.item_no for existing in trade.items]),
        description=NEW_ITEM_DESCRIPTION,
        unit=NEW_ITEM_UNIT,
        quantity=1.0,
        quantity_formula="",
        rate_material=0.0,
        rate_labor=0.0,
        rate_analysis=RateAnalysis(
            base_material=0.0,
            base_labor=0.0,
            plant_and_equipment=0.0,
            overhead_and_profit=0.0,
            narrative=NEW_ITEM_NARRATIVE,
        ),
    )
    LOGGER.debug("Adding item %s (%s) to trade %d", item.id, item.item_no, trade_index)
    return _with_trade(ledger, trade_index, replace(trade, items=trade.items + (item,)))


def delete_item(ledger: Ledger, trade_index: int, item_index: int) -> Ledger:
    """Remove one item. Siblings keep their numbers; an emptied trade stays."""

    trade = _trade(ledger, trade_index)
    _check_index(trade.items, item_index, "Item")
    return _with_trade(ledger, trade_index, replace(trade, items=_remove_at(trade.items, item_index)))


# ---------------------------------------------------------------------------
# Trades
# ---------------------------------------------------------------------------


def rename_trade(ledger: Ledger, trade_index: int, name: str) -> Ledger:
    trade = _trade(ledger, trade_index)
    return _with_trade(ledger, trade_index, replace(trade, name=str(name)))


def add_trade(ledger: Ledger, name: str = NEW_TRADE_NAME) -> Ledger:
    return replace(ledger, trades=ledger.trades + (TradeGroup(name=name, items=(), trade_total=0.0),))


def delete_trade(ledger: Ledger, trade_index: int) -> Ledger:
    """Remove a trade and, with it, every item it contains.

    Asking the user for confirmation is the caller's job; see
    :meth:`autoqs.session.EditSession.delete_trade`.
    """

    trade = _trade(ledger, trade_index)
    LOGGER.debug("Deleting trade %r with %d item(s)", trade.name, len(trade.items))
    return replace(ledger, trades=_remove_at(ledger.trades, trade_index))


# ---------------------------------------------------------------------------
# Assumptions
# ---------------------------------------------------------------------------


def add_assumption(ledger: Ledger, category: Union[AssumptionCategory, str], text: str) -> Ledger:
    """Append an assumption. Empty or whitespace-only text leaves the ledger unchanged."""

    body = (text or "").strip()
    if not body:
        return ledger
    existing = {assumption.id for assumption in ledger.assumptions}
    assumption = Assumption(
        category=AssumptionCategory.coerce(category),
        text=body,
        id=new_identifier("asm", existing),
    )
    return replace(ledger, assumptions=ledger.assumptions + (assumption,))


def update_assumption(
    ledger: Ledger, index: int, category: Union[AssumptionCategory, str], text: str
) -> Ledger:
    """Replace the assumption at ``index`` in place, keeping its id."""

    _check_index(ledger.assumptions, index, "Assumption")
    current = ledger.assumptions[index]
    updated = replace(current, category=AssumptionCategory.coerce(category), text=str(text or ""))
    return replace(ledger, assumptions=_replace_at(ledger.assumptions, index, updated))


def delete_assumption(ledger: Ledger, index: int) -> Ledger:
    _check_index(ledger.assumptions, index, "Assumption")
    return replace(ledger, assumptions=_remove_at(ledger.assumptions, index))


def assumption_index(ledger: Ledger, assumption_id: str) -> Optional[int]:
    """Current position of the assumption with ``assumption_id``, if any."""

    for idx, assumption in enumerate(ledger.assumptions):
        if assumption.id == assumption_id:
            return idx
    return None


# ---------------------------------------------------------------------------
# Cached totals
# ---------------------------------------------------------------------------


def sync_cached_totals(ledger: Ledger) -> Ledger:
    """Refresh the cached trade and project totals from the computation rules."""

    trades = tuple(replace(trade, trade_total=trade_total(trade.items)) for trade in ledger.trades)
    summary = replace(ledger.project_summary, total_estimated_cost=grand_total(trades))
    return replace(ledger, trades=trades, project_summary=summary)


__all__ = [
    "ItemField",
    "coerce_number",
    "new_identifier",
    "update_item_field",
    "update_item_overhead",
    "add_item",
    "delete_item",
    "rename_trade",
    "add_trade",
    "delete_trade",
    "add_assumption",
    "update_assumption",
    "delete_assumption",
    "assumption_index",
    "sync_cached_totals",
    "NEW_ITEM_DESCRIPTION",
    "NEW_ITEM_UNIT",
    "NEW_ITEM_NARRATIVE",
    "NEW_TRADE_NAME",
]
