"""Hierarchical item numbering for appended BOQ lines."""

from __future__ import annotations

import re
from typing import Optional, Sequence

SEPARATOR = "."
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def _leading_int(segment: str) -> Optional[int]:
    match = _LEADING_INT.match(segment)
    return int(match.group(1)) if match else None


def next_item_number(trade_index: int, existing_numbers: Sequence[str]) -> str:
    """
    Return the number for an item appended to a trade.

    Parameters
    ----------
    trade_index:
        Zero-based position of the trade in the ledger.
    existing_numbers:
        ``item_no`` values of the trade's current items, in order.

    Notes
    -----
    - An empty trade starts at ``"{trade_index + 1}.1"``.
    - Otherwise the last segment of the *last* item number is incremented
      (``"1.3.1"`` -> ``"1.3.2"``). Leading zeros are not preserved and
      only the leading digits of the segment are read (``"2b"`` -> ``"3"``).
    - A non-numeric last segment (``"3.a"``) falls back to
      ``"{trade_index + 1}.{len(existing_numbers) + 1}"``.
    - Existing numbers are never rewritten and uniqueness is not guaranteed.
    """

    fallback = f"{trade_index + 1}{SEPARATOR}{len(existing_numbers) + 1}"
    if not existing_numbers:
        return fallback

    parts = str(existing_numbers[-1]).split(SEPARATOR)
    last = _leading_int(parts[-1])
    if last is None:
        return fallback
    parts[-1] = str(last + 1)
    return SEPARATOR.join(parts)


__all__ = ["next_item_number", "SEPARATOR"]
