"""Turn generator output into a validated :class:`~autoqs.models.Ledger`.

Steps, in order:

1. pull the JSON document out of free text (a fenced ````json`` block, else
   the outermost ``{...}`` span);
2. decode it and validate its shape with ``jsonschema``;
3. build the ledger, giving every item without an id a synthetic one of the
   form ``item-{trade}-{item}-{suffix}``;
4. overwrite the currency fields from the selected country.

Any failure in steps 1-2 raises :class:`~autoqs.errors.IngestionParseError`.
A payload flagged ``isInsufficientInfo`` is a valid ledger, not an error.
"""

from __future__ import annotations

import json
import logging
import random
import re
import string
from dataclasses import replace
from typing import Any, Dict, List, Mapping, Optional, Sequence

from jsonschema import Draft7Validator

from .errors import IngestionParseError
from .models import Ledger, Source, TradeGroup, validate_ledger
from .payload import ledger_from_dict
from .project_meta import CountryOption

LOGGER = logging.getLogger(__name__)

_FENCED_JSON = re.compile(r"```json\s*([\s\S]*?)\s*```")
_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits

_NUMBER = {"type": ["number", "string", "null"]}
_STRING = {"type": ["string", "null"]}
_SCALAR = {"type": ["string", "number", "null"]}

BOQ_RESPONSE_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "BOQResponse",
    "type": "object",
    "required": ["projectSummary", "boqItems", "assumptions"],
    "properties": {
        "projectSummary": {
            "type": "object",
            "properties": {
                "projectType": _STRING,
                "structure": _STRING,
                "floors": _SCALAR,
                "floor": _SCALAR,
                "measurementStandard": _STRING,
                "currency": _STRING,
                "currencySymbol": _STRING,
                "totalEstimatedCost": _NUMBER,
                "notes": _STRING,
            },
        },
        "boqItems": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["items"],
                "properties": {
                    "tradeName": _STRING,
                    "tradeTotal": _NUMBER,
                    "items": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "id": _SCALAR,
                                "itemNo": _SCALAR,
                                "description": _STRING,
                                "unit": _STRING,
                                "quantity": _NUMBER,
                                "quantityFormula": _STRING,
                                "rateMaterial": _NUMBER,
                                "rateLabor": _NUMBER,
                                "rateAnalysis": {
                                    "type": ["object", "null"],
                                    "properties": {
                                        "baseMaterial": _NUMBER,
                                        "baseLabor": _NUMBER,
                                        "plantAndEquipment": _NUMBER,
                                        "overheadAndProfit": _NUMBER,
                                        "narrative": _STRING,
                                    },
                                },
                                "remarks": _STRING,
                                "userNotes": _STRING,
                            },
                        },
                    },
                },
            },
        },
        "assumptions": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {"category": _STRING, "text": _STRING},
            },
        },
        "recommendedSuppliers": {"type": ["array", "null"], "items": {"type": "object"}},
        "suppliers": {"type": ["array", "null"], "items": {"type": "object"}},
        "sources": {"type": ["array", "null"], "items": {"type": "object"}},
        "isInsufficientInfo": {"type": ["boolean", "null"]},
        "missingInfoReason": _STRING,
    },
}

_VALIDATOR = Draft7Validator(BOQ_RESPONSE_SCHEMA)


def extract_json_text(text: str) -> str:
    """Return the JSON document embedded in ``text`` (best effort)."""

    fenced = _FENCED_JSON.search(text)
    if fenced:
        return fenced.group(1)
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end != -1 and end > start:
        return text[start : end + 1]
    return text


def schema_errors(payload: object) -> List[str]:
    """Human-readable schema violations, sorted by location."""

    errors = sorted(_VALIDATOR.iter_errors(payload), key=lambda err: list(err.absolute_path))
    messages = []
    for err in errors:
        location = "/".join(str(part) for part in err.absolute_path) or "<root>"
        messages.append(f"{location}: {err.message}")
    return messages


def decode_payload(text: str) -> Dict[str, Any]:
    """Extract, decode and validate the generator payload."""

    if not text or not text.strip():
        raise IngestionParseError("Empty response from AI model.", raw_text=text or "")
    candidate = extract_json_text(text)
    try:
        payload = json.loads(candidate)
    except json.JSONDecodeError as exc:
        LOGGER.error("Failed to parse generator JSON: %s", exc)
        raise IngestionParseError(raw_text=text) from exc
    problems = schema_errors(payload)
    if problems:
        LOGGER.error("Generator payload failed schema validation: %s", "; ".join(problems[:5]))
        raise IngestionParseError(raw_text=text)
    return payload


def _random_suffix(rng: random.Random, length: int = 7) -> str:
    return "".join(rng.choice(_SUFFIX_ALPHABET) for _ in range(length))


def assign_missing_ids(ledger: Ledger, rng: Optional[random.Random] = None) -> Ledger:
    """Give items without an id (or with a repeated one) a synthetic unique id."""

    rng = rng or random.Random()
    seen: set[str] = set()
    trades: List[TradeGroup] = []
    for t_idx, trade in enumerate(ledger.trades):
        items = []
        for i_idx, item in enumerate(trade.items):
            item_id = item.id.strip()
            if not item_id or item_id in seen:
                candidate = f"item-{t_idx}-{i_idx}-{_random_suffix(rng)}"
                while candidate in seen:
                    candidate = f"item-{t_idx}-{i_idx}-{_random_suffix(rng)}"
                LOGGER.debug("Assigned synthetic id %s (was %r)", candidate, item.id)
                item = replace(item, id=candidate)
                item_id = candidate
            seen.add(item_id)
            items.append(item)
        trades.append(replace(trade, items=tuple(items)))

    assumptions = []
    for a_idx, assumption in enumerate(ledger.assumptions):
        if not assumption.id:
            assumption = replace(assumption, id=f"asm-{a_idx}-{_random_suffix(rng)}")
        assumptions.append(assumption)
    return replace(ledger, trades=tuple(trades), assumptions=tuple(assumptions))


def apply_country(ledger: Ledger, country: CountryOption) -> Ledger:
    """Overwrite the summary currency fields from the selected country."""

    summary = replace(
        ledger.project_summary,
        currency=country.currency,
        currency_symbol=country.currency_symbol,
    )
    return replace(ledger, project_summary=summary)


def ledger_from_payload(
    payload: Mapping[str, Any],
    country: Optional[CountryOption] = None,
    *,
    sources: Sequence[Source] = (),
    rng: Optional[random.Random] = None,
) -> Ledger:
    """Build a validated ledger from an already-decoded payload."""

    ledger = assign_missing_ids(ledger_from_dict(payload), rng)
    if country is not None:
        ledger = apply_country(ledger, country)
    if sources:
        ledger = replace(ledger, sources=tuple(sources))
    if ledger.is_insufficient_info:
        LOGGER.info("Generator reported insufficient information: %s", ledger.missing_info_reason)
    return validate_ledger(ledger)


def parse_generation_output(
    text: str,
    country: Optional[CountryOption] = None,
    *,
    sources: Sequence[Source] = (),
    rng: Optional[random.Random] = None,
) -> Ledger:
    """Parse raw generator text into a ledger, or raise :class:`IngestionParseError`."""

    return ledger_from_payload(decode_payload(text), country, sources=sources, rng=rng)


__all__ = [
    "BOQ_RESPONSE_SCHEMA",
    "extract_json_text",
    "schema_errors",
    "decode_payload",
    "assign_missing_ids",
    "apply_country",
    "ledger_from_payload",
    "parse_generation_output",
]
