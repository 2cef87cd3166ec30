"""Single-writer holder of the ledger currently being edited."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Callable, Optional, Union

from . import mutations
from .ingest import ledger_from_payload
from .models import AssumptionCategory, Ledger, TradeGroup
from .mutations import ItemField
from .payload import ledger_to_dict

LOGGER = logging.getLogger(__name__)

Confirm = Union[bool, Callable[[TradeGroup], bool]]


class EditSession:
    """Applies one mutation at a time and always exposes a consistent snapshot.

    Snapshots are immutable, so a value returned by :meth:`snapshot` stays
    valid for export while later edits replace the session's current ledger.
    """

    def __init__(self, ledger: Ledger) -> None:
        self._ledger = ledger

    @classmethod
    def load(cls, path: Path) -> "EditSession":
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls(ledger_from_payload(data))

    def save(self, path: Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(ledger_to_dict(self.snapshot()), indent=2), encoding="utf-8")
        return path

    def snapshot(self) -> Ledger:
        return self._ledger

    def _apply(self, updated: Ledger) -> Ledger:
        self._ledger = updated
        return updated

    def sync_totals(self) -> Ledger:
        return self._apply(mutations.sync_cached_totals(self._ledger))

    def update_item_field(self, trade_index: int, item_index: int, field: Union[ItemField, str], value: object) -> Ledger:
        return self._apply(mutations.update_item_field(self._ledger, trade_index, item_index, field, value))

    def update_item_overhead(self, trade_index: int, item_index: int, value: object) -> Ledger:
        return self._apply(mutations.update_item_overhead(self._ledger, trade_index, item_index, value))

    def add_item(self, trade_index: int) -> Ledger:
        return self._apply(mutations.add_item(self._ledger, trade_index))

    def delete_item(self, trade_index: int, item_index: int) -> Ledger:
        return self._apply(mutations.delete_item(self._ledger, trade_index, item_index))

    def add_trade(self, name: str = mutations.NEW_TRADE_NAME) -> Ledger:
        return self._apply(mutations.add_trade(self._ledger, name))

    def rename_trade(self, trade_index: int, name: str) -> Ledger:
        return self._apply(mutations.rename_trade(self._ledger, trade_index, name))

    def delete_trade(self, trade_index: int, confirm: Confirm = False) -> bool:
        """Delete a trade and all of its items once ``confirm`` agrees.

        ``confirm`` is either a boolean or a callable receiving the trade about
        to be removed. Returns ``True`` when the trade was deleted.
        """

        trades = self._ledger.trades
        if not 0 <= trade_index < len(trades):
            # Let the mutation raise the index error.
            mutations.delete_trade(self._ledger, trade_index)
        trade = trades[trade_index]
        approved = confirm(trade) if callable(confirm) else bool(confirm)
        if not approved:
            LOGGER.info("Deletion of trade %r cancelled", trade.name)
            return False
        self._apply(mutations.delete_trade(self._ledger, trade_index))
        return True

    def add_assumption(self, category: Union[AssumptionCategory, str], text: str) -> Ledger:
        return self._apply(mutations.add_assumption(self._ledger, category, text))

    def update_assumption(self, index: int, category: Union[AssumptionCategory, str], text: str) -> Ledger:
        return self._apply(mutations.update_assumption(self._ledger, index, category, text))

    def delete_assumption(self, index: int) -> Ledger:
        return self._apply(mutations.delete_assumption(self._ledger, index))

    def delete_assumption_by_id(self, assumption_id: str) -> Optional[Ledger]:
        index = mutations.assumption_index(self._ledger, assumption_id)
        if index is None:
            return None
        return self.delete_assumption(index)


__all__ = ["EditSession", "Confirm"]
