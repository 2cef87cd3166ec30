from __future__ import annotations

import pandas as pd

from . import computation
from .export import ROW_ITEM, format_money, project_rows, rows_to_frame
from .models import Ledger


def make_summary_text(ledger: Ledger, top_n: int = 5) -> str:
    summary = ledger.project_summary
    currency = summary.currency or "USD"

    def money(value: float) -> str:
        return format_money(value, currency, summary.currency_symbol)

    if ledger.is_insufficient_info:
        return (
            "Insufficient information to produce an estimate.\n"
            f"Reason: {ledger.missing_info_reason or 'not given'}\n"
        )

    breakdown = computation.cost_breakdown(ledger)
    items_df = rows_to_frame(project_rows(ledger))
    items_df = items_df[items_df["kind"] == ROW_ITEM]
    if items_df.empty:
        drivers = "(no priced items)"
    else:
        top = items_df.sort_values("total", ascending=False).head(top_n)[
            ["ref", "description", "quantity", "unit", "full_rate", "total"]
        ]
        top = top.assign(
            full_rate=top["full_rate"].map(money),
            total=top["total"].map(money),
        ).rename(columns=str.upper)
        drivers = top.to_string(index=False)

    trades = pd.DataFrame(
        [{"TRADE": trade.name, "ITEMS": len(trade.items), "TOTAL": money(computation.trade_total(trade.items))}
         for trade in ledger.trades],
        columns=["TRADE", "ITEMS", "TOTAL"],
    )
    return (
        f"{summary.project_type or 'Project'} ({summary.structure or 'structure not stated'}), "
        f"{summary.measurement_standard or 'standard not stated'}.\n"
        f"Grand total: {money(breakdown.grand_total)}.\n"
        f"Material {money(breakdown.material)} ({breakdown.material_pct:.1f}%), "
        f"labour {money(breakdown.labor)} ({breakdown.labor_pct:.1f}%), "
        f"O&P {money(breakdown.overhead_and_profit)} ({breakdown.overhead_pct:.1f}%).\n"
        f"Trades:\n{trades.to_string(index=False) if not trades.empty else '(none)'}\n"
        f"Top cost drivers:\n{drivers}\n"
    )
