"""
Export of classified results as CSV, JSON or a PDF report.
"""

import io
import json
from datetime import datetime
from typing import List, Optional, Sequence
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from app.schemas.sentiment import ClassificationResult, SessionStats
from app.utils.logger import get_logger

logger = get_logger(__name__)

CSV_HEADERS = ["Text", "Sentiment", "Confidence", "Keywords", "Explanation"]
REPORT_TEXT_LIMIT = 60
REPORT_KEYWORDS = 3

# Report palette
PURPLE = colors.Color(139 / 255, 92 / 255, 246 / 255)
GREEN = colors.Color(34 / 255, 197 / 255, 94 / 255)
RED = colors.Color(239 / 255, 68 / 255, 68 / 255)
GRAY = colors.Color(107 / 255, 114 / 255, 128 / 255)
ROW_ALT = colors.Color(248 / 255, 250 / 255, 252 / 255)


def _quote(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def format_percent(value: float) -> str:
    return f"{value * 100:.1f}%"


def to_csv(results: Sequence[ClassificationResult]) -> str:
    """Render results as CSV with one row per text."""
    rows = [",".join(CSV_HEADERS)]
    for result in results:
        rows.append(",".join([
            _quote(result.text),
            result.sentiment,
            format_percent(result.confidence),
            _quote(", ".join(result.keywords)),
            _quote(result.explanation),
        ]))
    return "\n".join(rows)


def to_json(results: Sequence[ClassificationResult]) -> str:
    """Render results as a pretty-printed JSON list."""
    return json.dumps([result.model_dump() for result in results], indent=2, ensure_ascii=False)


def share(count: int, total: int) -> str:
    """Percentage of total, one decimal; 0.0% when there is nothing to count."""
    if total == 0:
        return "0.0%"
    return f"{count / total * 100:.1f}%"


def report_rows(results: Sequence[ClassificationResult]) -> List[List[str]]:
    """Table body for the PDF report."""
    rows = []
    for result in results:
        text = result.text
        if len(text) > REPORT_TEXT_LIMIT:
            text = text[:REPORT_TEXT_LIMIT] + "..."
        rows.append([
            text,
            result.sentiment.capitalize(),
            format_percent(result.confidence),
            ", ".join(result.keywords[:REPORT_KEYWORDS]),
        ])
    return rows


def to_pdf(results: Sequence[ClassificationResult], stats: SessionStats,
           title: str = "Sentiment Analysis Report",
           generated_at: Optional[datetime] = None) -> bytes:
    """
    Build a printable PDF report.

    Args:
        results: Classified results in display order
        stats: Aggregates for the same results
        title: Report heading
        generated_at: Timestamp printed under the title (defaults to now)

    Returns:
        PDF document bytes
    """
    logger.debug("Starting PDF report generation", results_count=len(results))
    generated_at = generated_at or datetime.now()

    pdf_output = io.BytesIO()
    doc = SimpleDocTemplate(pdf_output, pagesize=letter, title=title)
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle("ReportTitle", parent=styles["Title"], textColor=PURPLE, alignment=0)
    cell_style = ParagraphStyle("Cell", parent=styles["BodyText"], fontSize=9, leading=11)

    elements = [
        Paragraph(escape(title), title_style),
        Paragraph(f"Generated: {generated_at.strftime('%Y-%m-%d %H:%M:%S')}", styles["Normal"]),
        Spacer(1, 12),
        Paragraph("Summary", styles["Heading2"]),
        Paragraph(f"Total Texts: {stats.total}", styles["Normal"]),
    ]

    summary = Table([[
        f"Positive: {stats.positive} ({share(stats.positive, stats.total)})",
        f"Negative: {stats.negative} ({share(stats.negative, stats.total)})",
        f"Neutral: {stats.neutral} ({share(stats.neutral, stats.total)})",
    ]], hAlign="LEFT")
    summary.setStyle(TableStyle([
        ("TEXTCOLOR", (0, 0), (0, 0), GREEN),
        ("TEXTCOLOR", (1, 0), (1, 0), RED),
        ("TEXTCOLOR", (2, 0), (2, 0), GRAY),
    ]))
    elements.extend([summary, Spacer(1, 12)])

    body = [[Paragraph(escape(cell), cell_style) for cell in row] for row in report_rows(results)]
    table = Table([["Text", "Sentiment", "Confidence", "Keywords"]] + body,
                  colWidths=[200, 70, 70, 140], repeatRows=1, hAlign="LEFT")
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), PURPLE),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, ROW_ALT]),
    ]))
    elements.append(table)

    doc.build(elements)
    logger.debug("PDF report generation completed")
    return pdf_output.getvalue()
