"""Render an interview kit to a paginated PDF."""

import io
import re

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas as pdf_canvas

from models.kit import Competency, Question, group_by_competency

LEFT = 20 * mm
INDENT = 25 * mm
TOP_MARGIN = 20 * mm
BOTTOM_MARGIN = 20 * mm
TEXT_WIDTH = 170 * mm

FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"


def export_filename(job_title: str) -> str:
    slug = re.sub(r"\s+", "_", job_title.strip()) or "Interview"
    slug = re.sub(r"[^\w\-]", "", slug)
    return f"{slug}_Interview_Kit.pdf"


class _Writer:
    """Top-down text cursor over a reportlab canvas with automatic page breaks."""

    def __init__(self, pdf: pdf_canvas.Canvas, page_height: float) -> None:
        self.pdf = pdf
        self.page_height = page_height
        self.y = page_height - TOP_MARGIN

    def ensure_space(self, height: float) -> None:
        if self.y - height < BOTTOM_MARGIN:
            self.pdf.showPage()
            self.y = self.page_height - TOP_MARGIN

    def paragraph(
        self,
        text: str,
        font: str = FONT,
        size: int = 12,
        color=colors.black,
        x: float = LEFT,
        after: float = 0,
    ) -> None:
        width = TEXT_WIDTH - (x - LEFT)
        leading = size * 1.35
        lines = simpleSplit(text, font, size, width) or [""]
        self.pdf.setFont(font, size)
        self.pdf.setFillColor(color)
        for line in lines:
            self.ensure_space(leading)
            self.pdf.drawString(x, self.y - size, line)
            self.y -= leading
        self.y -= after


def render_kit_pdf(job_title: str, competencies: list[Competency], questions: list[Question]) -> bytes:
    """Title, then one section per competency with numbered questions and rubrics."""
    buf = io.BytesIO()
    pdf = pdf_canvas.Canvas(buf, pagesize=A4)
    pdf.setTitle(f"Interview Kit: {job_title}")
    _, height = A4
    out = _Writer(pdf, height)

    out.paragraph(f"Interview Kit: {job_title}", font=FONT_BOLD, size=20, after=6 * mm)

    for competency, group in group_by_competency(competencies, questions):
        out.ensure_space(30 * mm)
        out.paragraph(competency.name, font=FONT_BOLD, size=16, after=2 * mm)
        if competency.description:
            out.paragraph(competency.description, size=10, color=colors.grey, after=3 * mm)
        if not group:
            out.paragraph("No questions.", size=10, color=colors.grey, after=4 * mm)
        for number, question in enumerate(group, start=1):
            out.paragraph(
                f"{number}. {question.text}",
                size=12,
                color=colors.Color(0.2, 0.2, 0.2),
                after=1 * mm,
            )
            out.paragraph(f"Category: {question.category.value}", size=9, color=colors.grey, x=INDENT)
            out.paragraph(
                f"Good: {question.rubric_good}", size=10, color=colors.Color(0, 0.4, 0), x=INDENT
            )
            out.paragraph(
                f"Bad: {question.rubric_bad}",
                size=10,
                color=colors.Color(0.6, 0, 0),
                x=INDENT,
                after=4 * mm,
            )
        out.y -= 2 * mm

    pdf.save()
    return buf.getvalue()
