"""Report renderers — CSV (stdlib csv), XLSX (openpyxl) and PDF (reportlab).

PDF layout works in millimetres measured from the top of the page and is
converted to reportlab's bottom-left point coordinates only when drawing.
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field
from typing import Sequence

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.units import mm
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from hrportal.common.constants import ReportFormat
from hrportal.common.timeutils import to_local
from hrportal.reports.schemas import ReportData

MEDIA_TYPES = {
    ReportFormat.csv: "text/csv; charset=utf-8",
    ReportFormat.xlsx: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ReportFormat.pdf: "application/pdf",
}

# ── PDF geometry (mm) ───────────────────────────────────────────────

MARGIN = 20.0
MIN_COLUMN_WIDTH = 15.0
HEADER_ROW_HEIGHT = 8.0
BODY_ROW_HEIGHT = 6.0
BOTTOM_LIMIT = 20.0
HEADER_FILL = 240
STRIPE_FILL = 250

XLSX_MIN_COLUMN_WIDTH = 12


def _generated(report: ReportData) -> str:
    return to_local(report.meta.generated_at).strftime("%Y-%m-%d %H:%M:%S")


def _period(report: ReportData) -> str:
    return f"{report.meta.start_date.isoformat()} to {report.meta.end_date.isoformat()}"


# ═════════════════════════════════════════════════════════════════════
# CSV
# ═════════════════════════════════════════════════════════════════════


def render_csv(report: ReportData) -> bytes:
    """Comment lines with title and metadata, a blank line, then the table."""
    buf = io.StringIO()
    buf.write(f"# {report.title}\r\n")
    buf.write(f"# Generated: {_generated(report)}\r\n")
    buf.write(f"# Department: {report.department_label}\r\n")
    buf.write(f"# Period: {_period(report)}\r\n")
    buf.write("\r\n")

    writer = csv.writer(buf, lineterminator="\r\n")
    writer.writerow(report.headers)
    for row in report.rows:
        writer.writerow(report.cells(row))
    return buf.getvalue().encode("utf-8")


# ═════════════════════════════════════════════════════════════════════
# XLSX
# ═════════════════════════════════════════════════════════════════════


def render_xlsx(report: ReportData) -> bytes:
    """"Report Data" sheet with a bold header row plus a "Report Info" sheet."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Report Data"

    ws.append(report.headers)
    header_fill = PatternFill(start_color="FFD3D3D3", end_color="FFD3D3D3", fill_type="solid")
    for cell in ws[1]:
        cell.font = Font(bold=True)
        cell.fill = header_fill

    widths = [len(h) for h in report.headers]
    for row in report.rows:
        values = report.cells(row)
        ws.append(values)
        for i, value in enumerate(values):
            widths[i] = max(widths[i], len(str(value)))
    for i, width in enumerate(widths, start=1):
        ws.column_dimensions[get_column_letter(i)].width = max(XLSX_MIN_COLUMN_WIDTH, width + 2)

    info = wb.create_sheet("Report Info")
    info.append(["Report Title", report.title])
    info.append(["Generated On", _generated(report)])
    info.append(["Department", report.department_label])
    info.append(["Start Date", report.meta.start_date.isoformat()])
    info.append(["End Date", report.meta.end_date.isoformat()])
    for cell in info["A"]:
        cell.font = Font(bold=True)
    info.column_dimensions["A"].width = 16
    info.column_dimensions["B"].width = max(24, len(report.title) + 2)

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


# ═════════════════════════════════════════════════════════════════════
# PDF
# ═════════════════════════════════════════════════════════════════════


def column_widths(
    headers: Sequence[str],
    table_width: float,
    min_width: float = MIN_COLUMN_WIDTH,
) -> list[float]:
    """Share *table_width* in proportion to header length, never below *min_width*."""
    total_chars = sum(len(h) for h in headers)
    if total_chars == 0:
        return [min_width for _ in headers]
    return [max(table_width * len(h) / total_chars, min_width) for h in headers]


@dataclass
class PageLayout:
    """Where the header and each body row start on one page (mm from top)."""

    header_y: float
    rows: list[tuple[int, float]] = field(default_factory=list)


def layout_pages(row_count: int, table_top: float, page_height: float) -> list[PageLayout]:
    """Place *row_count* body rows, breaking to a new page with a repeated header.

    A new page starts whenever the next row's top lies below
    ``page_height - BOTTOM_LIMIT``; continuation pages start at the top margin.
    """
    pages = [PageLayout(header_y=table_top)]
    y = table_top + HEADER_ROW_HEIGHT
    for index in range(row_count):
        if y > page_height - BOTTOM_LIMIT:
            pages.append(PageLayout(header_y=MARGIN))
            y = MARGIN + HEADER_ROW_HEIGHT
        pages[-1].rows.append((index, y))
        y += BODY_ROW_HEIGHT
    return pages


def _fit(text: str, width_pt: float, font: str, size: float) -> str:
    """Truncate *text* with an ellipsis so it fits in *width_pt*."""
    if stringWidth(text, font, size) <= width_pt:
        return text
    while text and stringWidth(text + "...", font, size) > width_pt:
        text = text[:-1]
    return text + "..."


class _PdfWriter:
    """Draws on a reportlab canvas using top-down millimetre coordinates."""

    def __init__(self, report: ReportData) -> None:
        self.report = report
        self.pagesize = landscape(A4) if report.landscape else A4
        self.page_width = self.pagesize[0] / mm
        self.page_height = self.pagesize[1] / mm
        self.table_width = self.page_width - 2 * MARGIN
        self.widths = column_widths(report.headers, self.table_width)
        self.buf = io.BytesIO()
        self.c = canvas.Canvas(self.buf, pagesize=self.pagesize)
        self.c.setTitle(report.title)

    def _y(self, top_mm: float) -> float:
        return (self.page_height - top_mm) * mm

    def _text(self, x: float, y: float, text: str, *, center: bool = False) -> None:
        if center:
            self.c.drawCentredString(x * mm, self._y(y), text)
        else:
            self.c.drawString(x * mm, self._y(y), text)

    def _band(self, y: float, height: float, grey: int) -> None:
        self.c.setFillGray(grey / 255)
        self.c.rect(MARGIN * mm, self._y(y + height), self.table_width * mm, height * mm,
                    stroke=0, fill=1)
        self.c.setFillGray(0)

    def _cells(self, y: float, values: Sequence, font: str) -> None:
        size = 10 if font.endswith("Bold") else 9
        self.c.setFont(font, size)
        x = MARGIN
        for width, value in zip(self.widths, values):
            self._text(x + 2, y, _fit(str(value), (width - 3) * mm, font, size))
            x += width

    def _title_block(self) -> float:
        center = self.page_width / 2
        self.c.setFont("Helvetica-Bold", 18)
        self._text(center, 20, self.report.title, center=True)
        self.c.setFont("Helvetica", 10)
        y = 40.0
        self._text(center, y, f"Generated: {_generated(self.report)}", center=True)
        y += 6
        self._text(center, y, f"Department: {self.report.department_label}", center=True)
        y += 6
        self._text(center, y, f"Period: {_period(self.report)}", center=True)
        return y + 15

    def render(self) -> bytes:
        pages = layout_pages(len(self.report.rows), self._title_block(), self.page_height)
        total = len(pages)
        for number, page in enumerate(pages, start=1):
            if number > 1:
                self.c.showPage()
            self._band(page.header_y, HEADER_ROW_HEIGHT, HEADER_FILL)
            self._cells(page.header_y + 5, self.report.headers, "Helvetica-Bold")
            for index, y in page.rows:
                if index % 2 == 1:
                    self._band(y, BODY_ROW_HEIGHT, STRIPE_FILL)
                self._cells(y + 4, self.report.cells(self.report.rows[index]), "Helvetica")
            self.c.setFont("Helvetica", 8)
            self._text(self.page_width - 25, self.page_height - 10, f"Page {number} of {total}")
        self.c.showPage()
        self.c.save()
        return self.buf.getvalue()


def render_pdf(report: ReportData) -> bytes:
    """A4 table report; attendance and leave reports are landscape."""
    return _PdfWriter(report).render()


RENDERERS = {
    ReportFormat.csv: render_csv,
    ReportFormat.xlsx: render_xlsx,
    ReportFormat.pdf: render_pdf,
}
