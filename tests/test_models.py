from __future__ import annotations

from dataclasses import replace

import pytest

from autoqs.errors import LedgerIntegrityError
from autoqs.models import AssumptionCategory, duplicate_item_ids, find_item, validate_ledger


def test_find_item_uses_id_not_number(ledger):
    assert find_item(ledger, "c")[:2] == (1, 0)
    assert find_item(ledger, "2.1") is None


def test_validate_ledger_rejects_duplicate_ids(ledger):
    trade = ledger.trades[1]
    clash = replace(trade.items[0], id="a")
    broken = replace(ledger, trades=(ledger.trades[0], replace(trade, items=(clash, trade.items[1]))))
    assert duplicate_item_ids(broken) == {"a": 2}
    with pytest.raises(LedgerIntegrityError):
        validate_ledger(broken)
    assert validate_ledger(ledger) is ledger


def test_assumption_category_coercion():
    assert AssumptionCategory.coerce("site condition") is AssumptionCategory.SITE_CONDITION
    assert AssumptionCategory.coerce("PRICING") is AssumptionCategory.PRICING
    assert AssumptionCategory.coerce(None) is AssumptionCategory.GENERAL
