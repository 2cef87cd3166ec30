from __future__ import annotations

import json
import random
import re
from dataclasses import replace

import pytest

from autoqs.computation import full_unit_rate, grand_total
from autoqs.errors import INGESTION_MESSAGE, IngestionParseError
from autoqs.ingest import assign_missing_ids, extract_json_text, parse_generation_output, schema_errors
from autoqs.models import AssumptionCategory, Source, item_ids, iter_items
from autoqs.project_meta import COUNTRY_BY_CODE


def test_fenced_block_is_preferred():
    text = 'Here you go {not json}\n```json\n{"a": 1}\n```\nThanks {}'
    assert json.loads(extract_json_text(text)) == {"a": 1}


def test_outermost_braces_are_used_without_fence():
    text = 'Sure! {"a": {"b": 2}} hope that helps'
    assert json.loads(extract_json_text(text)) == {"a": {"b": 2}}


def test_parse_builds_ledger_and_overwrites_currency(payload_text):
    ledger = parse_generation_output(payload_text(), COUNTRY_BY_CODE["UK"], rng=random.Random(1))
    summary = ledger.project_summary
    assert summary.currency == "GBP"
    assert summary.currency_symbol == "£"
    assert summary.floors == "1"
    assert summary.project_type == "Single Storey Clinic"
    assert len(ledger.trades) == 1
    first, second = ledger.trades[0].items
    assert first.id == "sub-1"
    assert full_unit_rate(first) == pytest.approx(9.2)
    assert second.quantity == 4.5
    assert ledger.assumptions[0].category is AssumptionCategory.QUANTITY
    assert ledger.suppliers[0].rating == 4.5


def test_cached_totals_from_generator_are_not_trusted(payload_text):
    ledger = parse_generation_output(payload_text())
    assert grand_total(ledger.trades) == pytest.approx(12 * 9.2 + 4.5 * 138)


def test_items_without_id_get_synthetic_ids(payload_text):
    ledger = parse_generation_output(payload_text(), rng=random.Random(7))
    synthetic = ledger.trades[0].items[1].id
    assert re.fullmatch(r"item-0-1-[a-z0-9]{7}", synthetic)
    assert all(assumption.id for assumption in ledger.assumptions)


def test_duplicate_ids_are_rekeyed(ledger):
    trade = ledger.trades[0]
    clash = replace(trade.items[1], id="a")
    broken = replace(ledger, trades=(replace(trade, items=(trade.items[0], clash)),) + ledger.trades[1:])
    fixed = assign_missing_ids(broken, random.Random(3))
    ids = [item.id for _, _, item in iter_items(fixed)]
    assert len(ids) == len(set(ids))
    assert ids[0] == "a"


def test_sources_are_attached(payload_text):
    sources = (Source(title="Rates index", uri="https://example.com/rates"),)
    ledger = parse_generation_output(payload_text(), sources=sources)
    assert ledger.sources == sources


@pytest.mark.parametrize(
    "text",
    [
        "",
        "   ",
        "I cannot help with that.",
        '```json\n{"projectSummary": {}, "boqItems": [\n```',
        json.dumps({"projectSummary": {}, "boqItems": []}),
        json.dumps({"projectSummary": {}, "boqItems": [{"tradeName": "X"}], "assumptions": []}),
        json.dumps({"projectSummary": {}, "boqItems": [{"items": None}], "assumptions": []}),
    ],
)
def test_unusable_output_raises_parse_error(text):
    with pytest.raises(IngestionParseError):
        parse_generation_output(text)


def test_parse_error_keeps_raw_text():
    with pytest.raises(IngestionParseError) as excinfo:
        parse_generation_output("not json at all")
    assert excinfo.value.raw_text == "not json at all"
    assert str(excinfo.value) == INGESTION_MESSAGE


def test_schema_errors_name_the_location():
    problems = schema_errors({"projectSummary": {}, "boqItems": [{"items": "x"}], "assumptions": []})
    assert problems
    assert problems[0].startswith("boqItems/0/items")


def test_insufficient_info_is_a_valid_ledger(payload_text):
    text = payload_text(
        boqItems=[],
        assumptions=[],
        isInsufficientInfo=True,
        missingInfoReason="No floor area given",
    )
    ledger = parse_generation_output(text, COUNTRY_BY_CODE["LK"])
    assert ledger.is_insufficient_info
    assert ledger.missing_info_reason == "No floor area given"
    assert ledger.trades == ()
    assert item_ids(ledger) == set()


def test_non_list_suppliers_alias_is_a_parse_error(payload_text):
    with pytest.raises(IngestionParseError):
        parse_generation_output(payload_text(recommendedSuppliers=None, suppliers="none"))


def test_suppliers_alias_is_read(payload_text):
    ledger = parse_generation_output(
        payload_text(recommendedSuppliers=None, suppliers=[{"trade": "Roofing", "name": "TopRoof"}])
    )
    assert [s.name for s in ledger.suppliers] == ["TopRoof"]
