"""PDF and HTML rendering of a frozen score snapshot.

Rendering only reads the persisted snapshot, never the questionnaire
structure, so a report always matches what the respondent was scored on.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from html import escape
from io import BytesIO
from typing import Any, Mapping, Optional

from reportlab.lib.colors import HexColor, white
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from app.assessments.maturity.types import TotalScore
from app.core.errors import PdfRenderError
from app.core.logging import get_logger
from app.core.metrics import timer
from app.i18n.messages import DeliveryMessages, ReportTexts

logger = get_logger("maturity.services.report", component="service")

PRIMARY = HexColor("#1F3A93")
LIGHT = HexColor("#EEF2FB")
GRID = HexColor("#C5CEE0")


@dataclass(frozen=True, slots=True)
class Respondent:
    assessment_id: str
    email: str
    name: Optional[str] = None
    submitted_at: Optional[datetime] = None


def _fmt(value: float) -> str:
    return f"{value:.1f}"


def _styles() -> dict[str, ParagraphStyle]:
    base = getSampleStyleSheet()
    return {
        "title": ParagraphStyle(
            "ReportTitle", parent=base["Heading1"], fontSize=22, textColor=PRIMARY, alignment=TA_CENTER, spaceAfter=6
        ),
        "subtitle": ParagraphStyle("ReportSubtitle", parent=base["Normal"], alignment=TA_CENTER, spaceAfter=18),
        "heading": ParagraphStyle("ReportHeading", parent=base["Heading2"], textColor=PRIMARY, spaceAfter=8),
        "body": base["BodyText"],
        "small": ParagraphStyle("ReportSmall", parent=base["BodyText"], fontSize=8, textColor=HexColor("#555555")),
    }


def _table_style(header_rows: int = 1) -> TableStyle:
    return TableStyle(
        [
            ("BACKGROUND", (0, 0), (-1, header_rows - 1), PRIMARY),
            ("TEXTCOLOR", (0, 0), (-1, header_rows - 1), white),
            ("FONTNAME", (0, 0), (-1, header_rows - 1), "Helvetica-Bold"),
            ("ROWBACKGROUNDS", (0, header_rows), (-1, -1), [white, LIGHT]),
            ("GRID", (0, 0), (-1, -1), 0.5, GRID),
            ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ]
    )


class ReportlabRenderer:
    """Render the respondent report as an A4 PDF with reportlab platypus."""

    def render(self, snapshot: Mapping[str, Any], respondent: Respondent) -> bytes:
        try:
            score = TotalScore.from_dict(snapshot)
        except (KeyError, TypeError, ValueError) as exc:
            raise PdfRenderError(
                DeliveryMessages.PDF_FAILED,
                detail={"assessment_id": respondent.assessment_id, "reason": "malformed snapshot"},
            ) from exc

        buffer = BytesIO()
        try:
            with timer("delivery.pdf.render"):
                doc = SimpleDocTemplate(
                    buffer,
                    pagesize=A4,
                    leftMargin=18 * mm,
                    rightMargin=18 * mm,
                    topMargin=18 * mm,
                    bottomMargin=18 * mm,
                    title=ReportTexts.TITLE,
                    author=ReportTexts.TITLE,
                )
                doc.build(self._story(score, respondent))
        except Exception as exc:
            logger.exception(
                "pdf_render_failed",
                extra={"structured_data": {"assessment_id": respondent.assessment_id}},
            )
            raise PdfRenderError(
                DeliveryMessages.PDF_FAILED,
                detail={"assessment_id": respondent.assessment_id},
            ) from exc
        return buffer.getvalue()

    def _story(self, score: TotalScore, respondent: Respondent) -> list:
        styles = _styles()
        story: list = [
            Paragraph(ReportTexts.TITLE, styles["title"]),
            Paragraph(ReportTexts.SUBTITLE, styles["subtitle"]),
        ]
        if respondent.name:
            story.append(Paragraph(escape(respondent.name), styles["body"]))
        story.append(Paragraph(escape(respondent.email), styles["body"]))
        if respondent.submitted_at:
            story.append(
                Paragraph(
                    f"{ReportTexts.SUBMITTED_AT}: {respondent.submitted_at:%d/%m/%Y}",
                    styles["body"],
                )
            )
        story.append(Spacer(1, 8 * mm))

        summary = Table(
            [
                [ReportTexts.TOTAL_SCORE, f"{_fmt(score.total_score)} / 100"],
                [ReportTexts.MATURITY_LEVEL, score.maturity_level],
            ],
            colWidths=[80 * mm, 60 * mm],
        )
        summary.setStyle(
            TableStyle(
                [
                    ("FONTNAME", (0, 0), (-1, -1), "Helvetica-Bold"),
                    ("FONTSIZE", (0, 0), (-1, -1), 13),
                    ("TEXTCOLOR", (1, 0), (1, -1), PRIMARY),
                    ("BOX", (0, 0), (-1, -1), 1, PRIMARY),
                    ("BACKGROUND", (0, 0), (-1, -1), LIGHT),
                ]
            )
        )
        story.extend([summary, Spacer(1, 8 * mm)])

        rows = [[ReportTexts.AREA_HEADER, ReportTexts.WEIGHT_HEADER, ReportTexts.PERCENT_HEADER, ReportTexts.CONTRIBUTION_HEADER]]
        for area in score.areas:
            rows.append(
                [
                    Paragraph(f"{escape(area.code)}. {escape(area.name)}", styles["body"]),
                    f"{area.weight * 100:.0f}%",
                    f"{_fmt(area.area_percentage)}%",
                    _fmt(area.contribution),
                ]
            )
        areas_table = Table(rows, colWidths=[84 * mm, 24 * mm, 30 * mm, 30 * mm], repeatRows=1)
        areas_table.setStyle(_table_style())
        story.extend([areas_table, Spacer(1, 8 * mm), Paragraph(ReportTexts.AREA_DETAIL, styles["heading"])])

        for area in score.areas:
            detail = [[f"{area.code}. {area.name}", ReportTexts.PERCENT_HEADER]]
            detail.extend(
                [f"{ReportTexts.ELEMENT_HEADER} {element.code}", f"{_fmt(element.percentage)}%"]
                for element in area.elements
            )
            table = Table(detail, colWidths=[128 * mm, 40 * mm])
            table.setStyle(_table_style())
            story.extend([table, Spacer(1, 4 * mm)])

        if score.skipped:
            story.append(
                Paragraph(ReportTexts.SKIPPED_NOTE.format(codes=", ".join(score.skipped)), styles["small"])
            )
        return story


def render_email_html(snapshot: Mapping[str, Any], respondent: Respondent) -> str:
    score = TotalScore.from_dict(snapshot)
    greeting = (
        ReportTexts.GREETING.format(name=escape(respondent.name))
        if respondent.name
        else ReportTexts.GREETING_ANONYMOUS
    )
    rows = "".join(
        f"<tr><td>{escape(area.name)}</td><td align=\"right\">{_fmt(area.area_percentage)}%</td></tr>"
        for area in score.areas
    )
    return (
        "<html><body>"
        f"<p>{greeting}</p>"
        f"<p>{ReportTexts.INTRO}</p>"
        f"<p><strong>{ReportTexts.TOTAL_SCORE}:</strong> {_fmt(score.total_score)} / 100<br/>"
        f"<strong>{ReportTexts.MATURITY_LEVEL}:</strong> {escape(score.maturity_level)}</p>"
        f"<table>{rows}</table>"
        f"<p>{ReportTexts.CLOSING}</p>"
        "</body></html>"
    )
