"""Conversion between the camelCase wire payload and :class:`~autoqs.models.Ledger`.

Input is read leniently: generator revisions disagree on several key names,
so aliases are accepted on the way in and a single canonical name is written
on the way out. Derived totals (``totalRate``, ``totalAmount``/``totalCost``)
are never read back; they are recomputed on output.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, Mapping, Optional

from . import computation
from .models import (
    Assumption,
    AssumptionCategory,
    BOQItem,
    Ledger,
    ProjectSummary,
    RateAnalysis,
    Source,
    Supplier,
    TradeGroup,
)


def _first(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def parse_float(value: object, default: Any = 0.0) -> Any:
    """Read a number leniently: commas are stripped and anything not finite gives ``default``."""

    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).replace(",", "").strip()
        if not text:
            return default
        try:
            number = float(text)
        except ValueError:
            return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def _opt_float(value: object) -> Optional[float]:
    if value is None:
        return None
    number = parse_float(value, default=math.nan)
    return None if math.isnan(number) else number


def _text(value: object, default: str = "") -> str:
    if value is None:
        return default
    return str(value)


def _opt_text(value: object) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text if text.strip() else None


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------


def rate_analysis_from_dict(data: Optional[Mapping[str, Any]]) -> Optional[RateAnalysis]:
    if not isinstance(data, Mapping):
        return None
    return RateAnalysis(
        base_material=parse_float(data.get("baseMaterial")),
        base_labor=parse_float(data.get("baseLabor")),
        plant_and_equipment=parse_float(data.get("plantAndEquipment")),
        overhead_and_profit=_opt_float(data.get("overheadAndProfit")),
        narrative=_text(data.get("narrative")),
    )


def item_from_dict(data: Mapping[str, Any]) -> BOQItem:
    return BOQItem(
        id=_text(data.get("id")),
        item_no=_text(data.get("itemNo")),
        description=_text(data.get("description")),
        unit=_text(data.get("unit")),
        quantity=parse_float(data.get("quantity")),
        quantity_formula=_text(_first(data, "quantityFormula", "quanitityFormula")),
        rate_material=parse_float(data.get("rateMaterial")),
        rate_labor=parse_float(data.get("rateLabor")),
        rate_analysis=rate_analysis_from_dict(data.get("rateAnalysis")),
        remarks=_opt_text(data.get("remarks")),
        user_notes=_opt_text(data.get("userNotes")),
    )


def trade_from_dict(data: Mapping[str, Any]) -> TradeGroup:
    return TradeGroup(
        name=_text(_first(data, "tradeName", "name")),
        items=tuple(item_from_dict(item) for item in data.get("items") or []),
        trade_total=parse_float(data.get("tradeTotal")),
    )


def summary_from_dict(data: Mapping[str, Any]) -> ProjectSummary:
    return ProjectSummary(
        project_type=_text(data.get("projectType")),
        structure=_text(data.get("structure")),
        floors=_text(_first(data, "floors", "floor")),
        measurement_standard=_text(data.get("measurementStandard")),
        currency=_text(data.get("currency")),
        currency_symbol=_text(data.get("currencySymbol")),
        total_estimated_cost=parse_float(data.get("totalEstimatedCost")),
        notes=_opt_text(data.get("notes")),
    )


def assumption_from_dict(data: Mapping[str, Any]) -> Assumption:
    return Assumption(
        category=AssumptionCategory.coerce(data.get("category")),
        text=_text(data.get("text")),
        id=_text(data.get("id")),
    )


def supplier_from_dict(data: Mapping[str, Any]) -> Supplier:
    return Supplier(
        trade=_text(data.get("trade")),
        name=_text(data.get("name")),
        phone_number=_text(data.get("phoneNumber")),
        email=_text(data.get("email")),
        website=_opt_text(data.get("website")),
        location=_opt_text(data.get("location")),
        service_level=_opt_text(data.get("serviceLevel")),
        rating=_opt_float(_first(data, "rating", "ratings")),
        specialization=_opt_text(data.get("specialization")),
        typical_project_size=_opt_text(data.get("typicalProjectSize")),
        testimonial=_opt_text(_first(data, "testimonial", "testimonials")),
        estimated_quote=_opt_text(data.get("estimatedQuote")),
    )


def _suppliers(data: Mapping[str, Any]) -> List[Supplier]:
    raw = _first(data, "recommendedSuppliers", "suppliers", default=[])
    if not isinstance(raw, list):
        return []
    return [supplier_from_dict(entry) for entry in raw if isinstance(entry, Mapping)]


def _sources(data: Mapping[str, Any]) -> List[Source]:
    raw = _first(data, "sources", "source", default=[])
    if isinstance(raw, Mapping):
        raw = [raw]
    sources: List[Source] = []
    for entry in raw if isinstance(raw, list) else []:
        if isinstance(entry, Mapping) and entry.get("uri"):
            sources.append(Source(title=_text(entry.get("title"), entry["uri"]), uri=_text(entry["uri"])))
    return sources


def ledger_from_dict(data: Mapping[str, Any]) -> Ledger:
    """Build a ledger from a decoded payload. Ids are taken as-is; see :mod:`autoqs.ingest`."""

    return Ledger(
        project_summary=summary_from_dict(data.get("projectSummary") or {}),
        trades=tuple(trade_from_dict(trade) for trade in data.get("boqItems") or []),
        assumptions=tuple(assumption_from_dict(a) for a in data.get("assumptions") or []),
        suppliers=tuple(_suppliers(data)),
        sources=tuple(_sources(data)),
        is_insufficient_info=bool(data.get("isInsufficientInfo", False)),
        missing_info_reason=_opt_text(data.get("missingInfoReason")),
    )


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in data.items() if value is not None}


def rate_analysis_to_dict(analysis: RateAnalysis) -> Dict[str, Any]:
    return _drop_none(
        {
            "baseMaterial": analysis.base_material,
            "baseLabor": analysis.base_labor,
            "plantAndEquipment": analysis.plant_and_equipment,
            "overheadAndProfit": analysis.overhead_and_profit,
            "narrative": analysis.narrative,
        }
    )


def item_to_dict(item: BOQItem) -> Dict[str, Any]:
    return _drop_none(
        {
            "id": item.id,
            "itemNo": item.item_no,
            "description": item.description,
            "unit": item.unit,
            "quantity": item.quantity,
            "quantityFormula": item.quantity_formula,
            "rateMaterial": item.rate_material,
            "rateLabor": item.rate_labor,
            "rateAnalysis": rate_analysis_to_dict(item.rate_analysis) if item.rate_analysis else None,
            "totalRate": computation.full_unit_rate(item),
            "totalAmount": computation.item_total(item),
            "remarks": item.remarks,
            "userNotes": item.user_notes,
        }
    )


def _items_to_list(items: Iterable[BOQItem]) -> List[Dict[str, Any]]:
    return [item_to_dict(item) for item in items]


def ledger_to_dict(ledger: Ledger) -> Dict[str, Any]:
    """Serialise a ledger; cached totals are written from the computation rules."""

    summary = ledger.project_summary
    payload: Dict[str, Any] = {
        "projectSummary": _drop_none(
            {
                "projectType": summary.project_type,
                "structure": summary.structure,
                "floors": summary.floors,
                "measurementStandard": summary.measurement_standard,
                "currency": summary.currency,
                "currencySymbol": summary.currency_symbol,
                "totalEstimatedCost": computation.grand_total(ledger.trades),
                "notes": summary.notes,
            }
        ),
        "boqItems": [
            {
                "tradeName": trade.name,
                "tradeTotal": computation.trade_total(trade.items),
                "items": _items_to_list(trade.items),
            }
            for trade in ledger.trades
        ],
        "assumptions": [
            _drop_none({"id": a.id or None, "category": a.category.value, "text": a.text})
            for a in ledger.assumptions
        ],
        "recommendedSuppliers": [
            _drop_none(
                {
                    "trade": s.trade,
                    "name": s.name,
                    "phoneNumber": s.phone_number,
                    "email": s.email,
                    "website": s.website,
                    "location": s.location,
                    "serviceLevel": s.service_level,
                    "rating": s.rating,
                    "specialization": s.specialization,
                    "typicalProjectSize": s.typical_project_size,
                    "testimonial": s.testimonial,
                    "estimatedQuote": s.estimated_quote,
                }
            )
            for s in ledger.suppliers
        ],
        "sources": [{"title": src.title, "uri": src.uri} for src in ledger.sources],
    }
    if ledger.is_insufficient_info:
        payload["isInsufficientInfo"] = True
        payload["missingInfoReason"] = ledger.missing_info_reason or ""
    return payload


__all__ = [
    "parse_float",
    "ledger_from_dict",
    "ledger_to_dict",
    "item_from_dict",
    "item_to_dict",
    "trade_from_dict",
    "summary_from_dict",
    "assumption_from_dict",
    "supplier_from_dict",
    "rate_analysis_from_dict",
    "rate_analysis_to_dict",
]
