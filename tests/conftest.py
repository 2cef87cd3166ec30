from __future__ import annotations

import json
from typing import Callable

import pytest

from factories import make_item

from autoqs.models import (
    Assumption,
    AssumptionCategory,
    Ledger,
    ProjectSummary,
    Supplier,
    TradeGroup,
)


@pytest.fixture
def summary() -> ProjectSummary:
    return ProjectSummary(
        project_type="Two Storey House",
        structure="RCC frame",
        floors="2",
        measurement_standard="NRM2 (RICS New Rules of Measurement)",
        currency="GBP",
        currency_symbol="£",
    )


@pytest.fixture
def ledger(summary: ProjectSummary) -> Ledger:
    """Two trades, four items, mixing derived and explicit O&P."""

    substructure = TradeGroup(
        name="Substructure",
        items=(
            make_item("a", "1.1", 10, 10, 5),
            make_item("b", "1.2", 4, 20, 10, overhead=2.0),
        ),
        trade_total=999.0,
    )
    finishes = TradeGroup(
        name="Internal Finishes",
        items=(
            make_item("c", "2.1", 50, 3, 2, overhead=0.0, remarks="Two coats"),
            make_item("d", "2.2", 2.5, 100, 40),
        ),
    )
    return Ledger(
        project_summary=summary,
        trades=(substructure, finishes),
        assumptions=(
            Assumption(AssumptionCategory.QUANTITY, "Wall height 3.0m", id="asm-1"),
            Assumption(AssumptionCategory.PRICING, "Rates as of this quarter", id="asm-2"),
        ),
        suppliers=(
            Supplier(trade="Concrete", name="Acme Ready Mix", phone_number="+44 1234", location="Leeds"),
        ),
    )


@pytest.fixture
def payload_text() -> Callable[..., str]:
    def _build(**overrides) -> str:
        payload = {
            "projectSummary": {
                "projectType": "Single Storey Clinic",
                "structure": "Load bearing masonry",
                "floors": 1,
                "measurementStandard": "NRM2 (RICS New Rules of Measurement)",
                "currency": "USD",
                "currencySymbol": "$",
                "totalEstimatedCost": 12345,
            },
            "boqItems": [
                {
                    "tradeName": "Substructure",
                    "tradeTotal": 1,
                    "items": [
                        {
                            "id": "sub-1",
                            "itemNo": "1.1",
                            "description": "Excavate trenches",
                            "unit": "m3",
                            "quantity": 12,
                            "quantityFormula": "L: 20m x W: 0.6m x D: 1.0m = 12m3",
                            "rateMaterial": 0,
                            "rateLabor": 8,
                            "rateAnalysis": {"baseMaterial": 0, "baseLabor": 8, "overheadAndProfit": 1.2},
                            "totalRate": 999,
                            "totalAmount": 999,
                        },
                        {
                            "itemNo": "1.2",
                            "description": "Concrete footing",
                            "unit": "m3",
                            "quantity": "4.5",
                            "rateMaterial": 90,
                            "rateLabor": 30,
                        },
                    ],
                }
            ],
            "assumptions": [{"category": "Quantity", "text": "Foundations 1.2m deep"}],
            "recommendedSuppliers": [{"trade": "Concrete", "name": "Lanka Mix", "ratings": 4.5}],
        }
        payload.update(overrides)
        return json.dumps(payload)

    return _build
