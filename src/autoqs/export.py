"""Flattened, print-ready projections of a ledger and the report writers built on them.

Every figure here comes from :mod:`autoqs.computation`; this module only
arranges and formats numbers, it never derives them.
"""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass
from datetime import date
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence
from xml.sax.saxutils import escape

import pandas as pd
from reportlab.lib import colors
from reportlab.lib.enums import TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from . import computation
from .models import Ledger

LOGGER = logging.getLogger(__name__)

COMPANY_NAME = "AutoQS AI Estimates"
COMPANY_TAGLINE = "Enterprise Quantity Surveying"
DISCLAIMER = (
    "Disclaimer: This estimate is AI-generated for preliminary budgeting purposes only. "
    "It does not constitute a binding contract or final offer."
)

ROW_TRADE_HEADER = "trade_header"
ROW_ITEM = "item"
ROW_TRADE_SUBTOTAL = "trade_subtotal"
ROW_GRAND_TOTAL = "grand_total"

THEME_COLOR = colors.Color(79 / 255, 70 / 255, 229 / 255)
TEXT_COLOR = colors.Color(51 / 255, 65 / 255, 85 / 255)
HEADER_FILL = colors.Color(241 / 255, 245 / 255, 249 / 255)
OANDP_COLOR = colors.Color(217 / 255, 119 / 255, 6 / 255)

DETAIL_HEADERS = ["Ref", "Description", "Qty", "Mat Rate", "Lab Rate", "O&P", "All-in Rate", "Total"]


@dataclass(frozen=True)
class ReportRow:
    """One line of the exported bill."""

    kind: str
    trade_index: int
    ref: str = ""
    description: str = ""
    quantity: Optional[float] = None
    unit: str = ""
    rate_material: Optional[float] = None
    rate_labor: Optional[float] = None
    overhead_and_profit: Optional[float] = None
    full_rate: Optional[float] = None
    total: Optional[float] = None
    remarks: Optional[str] = None
    explicit_overhead: bool = False


@dataclass(frozen=True)
class SummaryLine:
    component: str
    amount: float
    percent: float


def project_rows(ledger: Ledger) -> List[ReportRow]:
    """Header, item and subtotal rows per trade, then a single grand-total row."""

    rows: List[ReportRow] = []
    for t_idx, trade in enumerate(ledger.trades):
        rows.append(ReportRow(kind=ROW_TRADE_HEADER, trade_index=t_idx, description=trade.name.upper()))
        for item in trade.items:
            rows.append(
                ReportRow(
                    kind=ROW_ITEM,
                    trade_index=t_idx,
                    ref=item.item_no,
                    description=item.description,
                    quantity=item.quantity,
                    unit=item.unit,
                    rate_material=item.rate_material,
                    rate_labor=item.rate_labor,
                    overhead_and_profit=computation.unit_overhead_and_profit(item),
                    full_rate=computation.full_unit_rate(item),
                    total=computation.item_total(item),
                    remarks=item.remarks,
                    explicit_overhead=computation.has_explicit_overhead(item),
                )
            )
        rows.append(
            ReportRow(
                kind=ROW_TRADE_SUBTOTAL,
                trade_index=t_idx,
                description=f"Subtotal {trade.name}:",
                total=computation.trade_total(trade.items),
            )
        )
    rows.append(
        ReportRow(
            kind=ROW_GRAND_TOTAL,
            trade_index=-1,
            description="PROJECT TOTAL:",
            total=computation.grand_total(ledger.trades),
        )
    )
    return rows


def rows_total(rows: Iterable[ReportRow], kind: str = ROW_ITEM) -> float:
    """Sum the ``total`` column over rows of one kind."""

    return sum((row.total or 0.0 for row in rows if row.kind == kind), 0.0)


def cost_summary(ledger: Ledger) -> List[SummaryLine]:
    """Executive summary: material, labour, O&P and grand total with % of total."""

    breakdown = computation.cost_breakdown(ledger)
    return [
        SummaryLine("Material Cost", breakdown.material, breakdown.material_pct),
        SummaryLine("Labor Cost", breakdown.labor, breakdown.labor_pct),
        SummaryLine("Overhead & Profit", breakdown.overhead_and_profit, breakdown.overhead_pct),
        SummaryLine("GRAND TOTAL", breakdown.grand_total, 100.0 if breakdown.grand_total else 0.0),
    ]


def rows_to_frame(rows: Sequence[ReportRow]) -> pd.DataFrame:
    columns = list(ReportRow.__dataclass_fields__)
    return pd.DataFrame([asdict(row) for row in rows], columns=columns)


def format_money(value: float, currency: str = "USD", symbol: Optional[str] = None) -> str:
    """``$1,234.50`` when a distinct symbol is known, otherwise ``LKR 1,234.50``."""

    sign = "-" if value < 0 else ""
    amount = f"{abs(value):,.2f}"
    code = currency or "USD"
    if symbol and symbol != code:
        return f"{sign}{symbol}{amount}"
    return f"{sign}{code} {amount}"


def format_quantity(quantity: float) -> str:
    return f"{quantity:g}"


def export_filename(project_type: str, today: Optional[date] = None) -> str:
    """``BOQ_<project type, non-alphanumerics as _, lowercase>_<YYYY-MM-DD>`` (no extension)."""

    stamp = (today or date.today()).isoformat()
    safe_name = re.sub(r"[^a-z0-9]", "_", project_type or "", flags=re.IGNORECASE).lower()
    return f"BOQ_{safe_name}_{stamp}"


# ---------------------------------------------------------------------------
# Writers
# ---------------------------------------------------------------------------


def write_csv(ledger: Ledger, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    rows_to_frame(project_rows(ledger)).to_csv(path, index=False)
    return path


def write_workbook(ledger: Ledger, path: Path) -> Path:
    """Excel workbook with BOQ, SUMMARY, ASSUMPTIONS and SUPPLIERS sheets."""

    path.parent.mkdir(parents=True, exist_ok=True)
    boq = rows_to_frame(project_rows(ledger)).drop(columns=["trade_index"])
    summary = pd.DataFrame(
        [{"COMPONENT": line.component, "AMOUNT": line.amount, "PERCENT": round(line.percent, 1)} for line in cost_summary(ledger)]
    )
    assumptions = pd.DataFrame(
        [{"CATEGORY": a.category.value, "TEXT": a.text} for a in ledger.assumptions],
        columns=["CATEGORY", "TEXT"],
    )
    suppliers = pd.DataFrame(
        [
            {
                "TRADE": s.trade,
                "NAME": s.name,
                "CONTACT": s.phone_number or s.email or "-",
                "LOCATION": s.location or "-",
                "ESTIMATED_QUOTE": s.estimated_quote or "-",
            }
            for s in ledger.suppliers
        ],
        columns=["TRADE", "NAME", "CONTACT", "LOCATION", "ESTIMATED_QUOTE"],
    )
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        boq.to_excel(writer, sheet_name="BOQ", index=False)
        summary.to_excel(writer, sheet_name="SUMMARY", index=False)
        assumptions.to_excel(writer, sheet_name="ASSUMPTIONS", index=False)
        suppliers.to_excel(writer, sheet_name="SUPPLIERS", index=False)
    return path


def _detail_table(ledger: Ledger, money) -> Table:
    body: List[list] = [list(DETAIL_HEADERS)]
    styles: List[tuple] = [
        ("FONT", (0, 0), (-1, -1), "Helvetica", 7),
        ("FONT", (0, 0), (-1, 0), "Helvetica-Bold", 7),
        ("TEXTCOLOR", (0, 0), (-1, -1), TEXT_COLOR),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.lightgrey),
        ("ALIGN", (2, 1), (2, -1), "CENTER"),
        ("ALIGN", (3, 1), (-1, -1), "RIGHT"),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
    ]
    for row in project_rows(ledger):
        r = len(body)
        if row.kind == ROW_TRADE_HEADER:
            body.append([Paragraph(escape(row.description), _TRADE)] + [""] * 7)
            styles += [("SPAN", (0, r), (-1, r)), ("BACKGROUND", (0, r), (-1, r), HEADER_FILL),
                       ("FONT", (0, r), (-1, r), "Helvetica-Bold", 7), ("ALIGN", (0, r), (-1, r), "LEFT")]
        elif row.kind == ROW_ITEM:
            desc = escape(row.description) + (f"<br/>[{escape(row.remarks)}]" if row.remarks else "")
            body.append(
                [
                    row.ref,
                    Paragraph(desc, _SMALL),
                    f"{format_quantity(row.quantity or 0.0)} {row.unit}",
                    money(row.rate_material or 0.0),
                    money(row.rate_labor or 0.0),
                    money(row.overhead_and_profit or 0.0),
                    money(row.full_rate or 0.0),
                    money(row.total or 0.0),
                ]
            )
            styles += [("TEXTCOLOR", (5, r), (5, r), OANDP_COLOR), ("FONT", (6, r), (7, r), "Helvetica-Bold", 7),
                       ("TEXTCOLOR", (7, r), (7, r), THEME_COLOR)]
        elif row.kind == ROW_TRADE_SUBTOTAL:
            body.append([row.description] + [""] * 6 + [money(row.total or 0.0)])
            styles += [("SPAN", (0, r), (6, r)), ("ALIGN", (0, r), (-1, r), "RIGHT"),
                       ("FONT", (0, r), (-1, r), "Helvetica-Bold", 7)]
        else:
            body.append([row.description] + [""] * 6 + [money(row.total or 0.0)])
            styles += [("SPAN", (0, r), (6, r)), ("ALIGN", (0, r), (-1, r), "RIGHT"),
                       ("FONT", (0, r), (-1, r), "Helvetica-Bold", 9),
                       ("BACKGROUND", (7, r), (7, r), THEME_COLOR), ("TEXTCOLOR", (7, r), (7, r), colors.white)]
    widths = [14 * mm, None, 18 * mm, 20 * mm, 20 * mm, 18 * mm, 22 * mm, 24 * mm]
    available = A4[0] - 28 * mm
    widths[1] = available - sum(w for w in widths if w)
    table = Table(body, colWidths=widths, repeatRows=1)
    table.setStyle(TableStyle(styles))
    return table


_STYLES = getSampleStyleSheet()
_SMALL = ParagraphStyle("small", parent=_STYLES["BodyText"], fontSize=7, leading=8.5, textColor=TEXT_COLOR)
_TRADE = ParagraphStyle("trade", parent=_SMALL, fontName="Helvetica-Bold")
_RIGHT = ParagraphStyle("right", parent=_STYLES["BodyText"], alignment=TA_RIGHT, textColor=colors.white, fontSize=9)


def write_pdf(ledger: Ledger, path: Path, *, generated: Optional[date] = None) -> Path:
    """Render the bill to a self-contained A4 PDF."""

    path.parent.mkdir(parents=True, exist_ok=True)
    summary = ledger.project_summary
    currency = summary.currency or "USD"

    def money(value: float) -> str:
        return format_money(value, currency, summary.currency_symbol)

    title = ParagraphStyle("title", parent=_STYLES["Title"], textColor=colors.white, alignment=0, fontSize=20)
    subtitle = ParagraphStyle("subtitle", parent=_STYLES["BodyText"], textColor=colors.white, fontSize=9)
    band = Table(
        [
            [Paragraph("BILL OF QUANTITIES", title), Paragraph(f"<b>{COMPANY_NAME}</b><br/>{COMPANY_TAGLINE}", _RIGHT)],
            [
                Paragraph(
                    f"Project: {escape(summary.project_type)} | {escape(summary.structure)}<br/>"
                    f"Generated: {(generated or date.today()).isoformat()}",
                    subtitle,
                ),
                "",
            ],
        ],
        colWidths=[120 * mm, None],
    )
    band.setStyle(TableStyle([("BACKGROUND", (0, 0), (-1, -1), THEME_COLOR), ("VALIGN", (0, 0), (-1, -1), "MIDDLE")]))

    summary_rows = [["Cost Component", "Amount", "% of Total"]]
    summary_rows += [[line.component, money(line.amount), f"{line.percent:.1f}%"] for line in cost_summary(ledger)]
    exec_table = Table(summary_rows, colWidths=[80 * mm, 50 * mm, 30 * mm])
    exec_table.setStyle(
        TableStyle(
            [
                ("FONT", (0, 0), (-1, -1), "Helvetica", 10),
                ("FONT", (0, 0), (-1, 0), "Helvetica-Bold", 10),
                ("FONT", (0, 1), (0, -1), "Helvetica-Bold", 10),
                ("LINEBELOW", (0, 0), (-1, 0), 0.5, colors.lightgrey),
                ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
                ("FONT", (0, -1), (-1, -1), "Helvetica-Bold", 12),
                ("TEXTCOLOR", (0, -1), (-1, -1), THEME_COLOR),
            ]
        )
    )

    heading = ParagraphStyle("heading", parent=_STYLES["Heading2"], textColor=TEXT_COLOR)
    story: list = [band, Spacer(1, 6 * mm), exec_table, Spacer(1, 6 * mm),
                   Paragraph("Detailed Cost Breakdown", heading), _detail_table(ledger, money)]

    if ledger.assumptions:
        rows = [["Category", "Assumption / Note"]] + [
            [a.category.value, Paragraph(escape(a.text), _SMALL)] for a in ledger.assumptions
        ]
        table = Table(rows, colWidths=[40 * mm, None], repeatRows=1)
        table.setStyle(_striped_style())
        story += [Spacer(1, 6 * mm), Paragraph("Assumptions & Notes", heading), table]

    if ledger.suppliers:
        rows = [["Trade", "Company", "Contact", "Location", "Est. Quote"]] + [
            [
                Paragraph(escape(text), _SMALL)
                for text in (s.trade, s.name, s.phone_number or s.email or "-", s.location or "-", s.estimated_quote or "-")
            ]
            for s in ledger.suppliers
        ]
        table = Table(rows, colWidths=[32 * mm, 42 * mm, 40 * mm, 34 * mm, 34 * mm], repeatRows=1)
        table.setStyle(_striped_style())
        story += [Spacer(1, 6 * mm), Paragraph("Recommended Vendors", heading), table]

    doc = SimpleDocTemplate(
        str(path),
        pagesize=A4,
        leftMargin=14 * mm,
        rightMargin=14 * mm,
        topMargin=12 * mm,
        bottomMargin=20 * mm,
        title=f"Bill of Quantities - {summary.project_type}",
    )
    doc.build(story, canvasmaker=_NumberedCanvas)
    LOGGER.info("Wrote PDF report to %s", path)
    return path


def _striped_style() -> TableStyle:
    return TableStyle(
        [
            ("FONT", (0, 0), (-1, -1), "Helvetica", 8),
            ("FONT", (0, 0), (-1, 0), "Helvetica-Bold", 8),
            ("BACKGROUND", (0, 0), (-1, 0), colors.Color(100 / 255, 116 / 255, 139 / 255)),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
            ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, HEADER_FILL]),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ]
    )


class _NumberedCanvas(canvas.Canvas):
    """Defers page output so every footer can show ``Page i of n``."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._saved_pages: List[dict] = []

    def showPage(self) -> None:  # noqa: N802 - reportlab API
        self._saved_pages.append(dict(self.__dict__))
        self._startPage()

    def save(self) -> None:
        total = len(self._saved_pages)
        for state in self._saved_pages:
            self.__dict__.update(state)
            self._draw_footer(total)
            super().showPage()
        super().save()

    def _draw_footer(self, total: int) -> None:
        width, _height = A4
        self.saveState()
        self.setStrokeColor(colors.lightgrey)
        self.line(14 * mm, 15 * mm, width - 14 * mm, 15 * mm)
        self.setFont("Helvetica", 7)
        self.setFillColor(colors.grey)
        self.drawString(14 * mm, 10 * mm, DISCLAIMER)
        self.drawRightString(width - 14 * mm, 10 * mm, f"Page {self._pageNumber} of {total}")
        self.restoreState()


WRITERS = {
    "pdf": (write_pdf, ".pdf"),
    "xlsx": (write_workbook, ".xlsx"),
    "csv": (write_csv, ".csv"),
}


def export_ledger(
    ledger: Ledger,
    output_dir: Path,
    formats: Iterable[str] = ("pdf",),
    *,
    today: Optional[date] = None,
) -> Dict[str, Path]:
    """Write the requested formats into ``output_dir`` and return their paths by format."""

    stem = export_filename(ledger.project_summary.project_type, today)
    written: Dict[str, Path] = {}
    for fmt in formats:
        key = fmt.lower().strip()
        if key not in WRITERS:
            raise ValueError(f"Unsupported export format: {fmt!r}")
        writer, suffix = WRITERS[key]
        written[key] = writer(ledger, Path(output_dir) / f"{stem}{suffix}")
    return written


__all__ = [
    "ReportRow",
    "SummaryLine",
    "project_rows",
    "rows_total",
    "cost_summary",
    "rows_to_frame",
    "format_money",
    "format_quantity",
    "export_filename",
    "write_csv",
    "write_workbook",
    "write_pdf",
    "export_ledger",
    "ROW_TRADE_HEADER",
    "ROW_ITEM",
    "ROW_TRADE_SUBTOTAL",
    "ROW_GRAND_TOTAL",
]
