from __future__ import annotations

from autoqs.models import BOQItem, RateAnalysis


def make_item(
    item_id: str,
    item_no: str,
    quantity: float,
    rate_material: float,
    rate_labor: float,
    overhead: object = "derived",
    **kwargs,
) -> BOQItem:
    analysis = None
    if overhead != "derived":
        analysis = RateAnalysis(
            base_material=rate_material,
            base_labor=rate_labor,
            overhead_and_profit=overhead,
            narrative="Supplier quote",
        )
    return BOQItem(
        id=item_id,
        item_no=item_no,
        description=kwargs.pop("description", f"Item {item_no}"),
        unit=kwargs.pop("unit", "m2"),
        quantity=quantity,
        quantity_formula=kwargs.pop("quantity_formula", ""),
        rate_material=rate_material,
        rate_labor=rate_labor,
        rate_analysis=analysis,
        **kwargs,
    )
