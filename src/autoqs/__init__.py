"""Editable, consistently costed Bills of Quantities."""

from .computation import cost_breakdown, full_unit_rate, grand_total, item_total, trade_total
from .errors import BOQError, GenerationError, IngestionParseError, LedgerIndexError
from .ingest import parse_generation_output
from .models import Assumption, AssumptionCategory, BOQItem, Ledger, ProjectSummary, RateAnalysis, TradeGroup
from .session import EditSession

__all__ = [
    "Assumption",
    "AssumptionCategory",
    "BOQItem",
    "Ledger",
    "ProjectSummary",
    "RateAnalysis",
    "TradeGroup",
    "EditSession",
    "parse_generation_output",
    "cost_breakdown",
    "full_unit_rate",
    "grand_total",
    "item_total",
    "trade_total",
    "BOQError",
    "GenerationError",
    "IngestionParseError",
    "LedgerIndexError",
]
