from __future__ import annotations

import math

import pytest

from autoqs import computation
from autoqs.computation import (
    DEFAULT_OVERHEAD_RATE,
    cost_breakdown,
    full_unit_rate,
    grand_total,
    item_total,
    overhead_total,
    prime_cost,
    trade_total,
    unit_overhead_and_profit,
)
from autoqs.models import Ledger, TradeGroup

from factories import make_item


def test_derived_overhead_uses_default_rate():
    item = make_item("x", "1.1", 10, 10, 5)
    assert DEFAULT_OVERHEAD_RATE == 0.15
    assert unit_overhead_and_profit(item) == pytest.approx(2.25)
    assert full_unit_rate(item) == pytest.approx(17.25)
    assert item_total(item) == pytest.approx(172.5)


def test_explicit_overhead_is_used_verbatim():
    item = make_item("x", "1.1", 3, 10, 5, overhead=4.0)
    assert unit_overhead_and_profit(item) == 4.0
    assert item_total(item) == pytest.approx(57.0)


def test_explicit_zero_overhead_is_not_replaced_by_default():
    item = make_item("x", "1.1", 2, 10, 5, overhead=0.0)
    assert computation.has_explicit_overhead(item)
    assert unit_overhead_and_profit(item) == 0.0
    assert full_unit_rate(item) == 15.0


def test_negative_overhead_is_not_clamped():
    item = make_item("x", "1.1", 1, 10, 5, overhead=-1.5)
    assert unit_overhead_and_profit(item) == -1.5
    assert full_unit_rate(item) == 13.5


def test_cached_trade_total_is_ignored(ledger):
    substructure = ledger.trades[0]
    assert substructure.trade_total == 999.0
    assert trade_total(substructure.items) == pytest.approx(300.5)


def test_grand_total_matches_sum_of_trade_totals(ledger):
    assert grand_total(ledger.trades) == pytest.approx(953.0)
    assert grand_total(ledger.trades) == sum(trade_total(t.items) for t in ledger.trades)


def test_prime_cost_plus_overhead_equals_grand_total(ledger):
    total = grand_total(ledger.trades)
    assert math.isclose(prime_cost(ledger.trades) + overhead_total(ledger.trades), total, rel_tol=1e-12)
    assert prime_cost(ledger.trades) == pytest.approx(870.0)
    assert overhead_total(ledger.trades) == pytest.approx(83.0)


def test_empty_ledger_totals_are_zero(summary):
    empty = Ledger(project_summary=summary)
    breakdown = cost_breakdown(empty)
    assert breakdown.grand_total == 0.0
    assert breakdown.material_pct == 0.0
    assert breakdown.overhead_pct == 0.0


def test_empty_trade_contributes_nothing(ledger):
    trades = ledger.trades + (TradeGroup(name="Empty"),)
    assert trade_total(()) == 0.0
    assert grand_total(trades) == pytest.approx(grand_total(ledger.trades))


def test_cost_breakdown_percentages(ledger):
    breakdown = cost_breakdown(ledger)
    assert breakdown.material == pytest.approx(580.0)
    assert breakdown.labor == pytest.approx(290.0)
    total_pct = breakdown.material_pct + breakdown.labor_pct + breakdown.overhead_pct
    assert total_pct == pytest.approx(100.0)


def test_base_unit_rate_excludes_overhead():
    item = make_item("x", "1.1", 3, 10, 5)
    assert computation.base_unit_rate(item) == 15.0
    assert full_unit_rate(item) == pytest.approx(computation.base_unit_rate(item) + unit_overhead_and_profit(item))


def test_prime_cost_is_quantity_times_base_rate(ledger):
    expected = sum(
        item.quantity * computation.base_unit_rate(item) for trade in ledger.trades for item in trade.items
    )
    assert prime_cost(ledger.trades) == pytest.approx(expected)
