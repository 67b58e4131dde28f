"""CSV and PDF exports of saved tax calculations."""

from __future__ import annotations

import csv
from io import StringIO
from typing import Any, Iterable, List, Mapping

from fpdf import FPDF
from fpdf.enums import XPos, YPos

from bdtax.backend.app.localization import Translator, get_translator
from bdtax.backend.services.calculators import TaxBreakdownLine, format_percentage

from .calculation_service import breakdown_label
from .review_store import CalculationRecord

_SUMMARY_FIELDS = (
    "total_income",
    "total_expense",
    "taxable_income",
    "calculated_tax",
)


def _format_currency(value: Any) -> str:
    number = float(value or 0)
    return f"BDT {number:,.2f}"


def _summary_rows(record: CalculationRecord, translator: Translator) -> Iterable[tuple[str, str]]:
    yield translator("summary.fiscal_year"), record.fiscal_year
    for field in _SUMMARY_FIELDS:
        yield translator(f"summary.{field}"), _format_currency(getattr(record, field))


def _breakdown_lines(record: CalculationRecord) -> List[TaxBreakdownLine]:
    lines: List[TaxBreakdownLine] = []
    entries = record.calculation_data.get("breakdown")
    if not isinstance(entries, list):
        return lines
    for entry in entries:
        if not isinstance(entry, Mapping):
            continue
        upper = entry.get("to")
        lines.append(
            TaxBreakdownLine(
                lower_bound=float(entry.get("from", 0)),
                upper_bound=None if upper is None else float(upper),
                rate=float(entry.get("rate", 0)),
                amount_in_slab=float(entry.get("amount_in_slab", 0)),
                tax_for_slab=float(entry.get("tax_for_slab", 0)),
            )
        )
    return lines


def _pdf_text(value: str) -> str:
    return value.encode("latin-1", "replace").decode("latin-1")


def render_csv(record: CalculationRecord, locale: str | None = None) -> str:
    """Render ``record`` as CSV: summary rows, a blank line, then the slabs."""

    translator = get_translator(locale)
    buffer = StringIO()
    writer = csv.writer(buffer)

    writer.writerow([translator("export.summary_heading"), ""])
    for label, value in _summary_rows(record, translator):
        writer.writerow([label, value])

    writer.writerow([])
    writer.writerow(
        [
            translator("breakdown.heading"),
            translator("breakdown.rate"),
            translator("breakdown.amount_in_slab"),
            translator("breakdown.tax_for_slab"),
        ]
    )
    for line in _breakdown_lines(record):
        writer.writerow(
            [
                breakdown_label(line, translator),
                format_percentage(line.rate),
                f"{line.amount_in_slab:.2f}",
                f"{line.tax_for_slab:.2f}",
            ]
        )

    return buffer.getvalue()


def render_pdf(record: CalculationRecord) -> bytes:
    """Render ``record`` as a single-page PDF.

    The PDF uses the built-in Helvetica face, which only covers Latin-1, so
    labels are always English and characters outside Latin-1 print as ``?``.
    """

    translator = get_translator("en")

    pdf = FPDF()
    pdf.set_auto_page_break(auto=True, margin=15)
    pdf.add_page()
    pdf.set_title(translator("export.title"))
    pdf.set_text_color(33, 37, 41)
    pdf.set_draw_color(222, 226, 230)

    pdf.set_font("Helvetica", style="B", size=16)
    pdf.cell(0, 10, translator("export.title"), new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    pdf.ln(2)
    pdf.set_font("Helvetica", style="B", size=12)
    pdf.cell(0, 8, translator("export.summary_heading"), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_font("Helvetica", size=11)
    for label, value in _summary_rows(record, translator):
        pdf.cell(80, 6, _pdf_text(label))
        pdf.cell(0, 6, _pdf_text(value), new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    lines = _breakdown_lines(record)
    if lines:
        pdf.ln(4)
        pdf.set_font("Helvetica", style="B", size=12)
        pdf.cell(0, 8, translator("breakdown.heading"), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.set_font("Helvetica", size=11)
        for line in lines:
            pdf.cell(70, 6, breakdown_label(line, translator))
            pdf.cell(20, 6, format_percentage(line.rate))
            pdf.cell(50, 6, _format_currency(line.amount_in_slab))
            pdf.cell(0, 6, _format_currency(line.tax_for_slab), new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    pdf.ln(6)
    pdf.set_font("Helvetica", size=9)
    pdf.multi_cell(0, 5, translator("export.generated_with"))

    output = pdf.output()
    if isinstance(output, (bytes, bytearray)):
        return bytes(output)
    return output.encode("latin1")


__all__ = ["render_csv", "render_pdf"]
