import io

import pdfplumber
import pytest

from models.kit import Competency, Question, QuestionCategory
from services.kit_exporter import export_filename, render_kit_pdf


def _pages(pdf_bytes: bytes) -> list[str]:
    with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
        return [page.extract_text() or "" for page in pdf.pages]


def _kit(questions_per_competency=1):
    api = Competency(name="API Design", description="REST and versioning")
    sql = Competency(name="SQL")
    questions = [
        Question(
            competency_key=api.key,
            text=f"How would you version endpoint {i}?",
            category=QuestionCategory.SITUATIONAL,
            rubric_good="Mentions compatibility",
            rubric_bad="Breaks clients",
        )
        for i in range(questions_per_competency)
    ]
    return [api, sql], questions


def test_renders_sections_and_rubrics():
    competencies, questions = _kit()
    pdf = render_kit_pdf("Backend Engineer", competencies, questions)
    assert pdf.startswith(b"%PDF")

    text = "\n".join(_pages(pdf))
    assert "Interview Kit: Backend Engineer" in text
    assert "API Design" in text
    assert "REST and versioning" in text
    assert "1. How would you version endpoint 0?" in text
    assert "Category: Situational" in text
    assert "Good: Mentions compatibility" in text
    assert "Bad: Breaks clients" in text


def test_competency_without_questions():
    competencies, questions = _kit()
    text = "\n".join(_pages(render_kit_pdf("Dev", competencies, questions)))
    sql_section = text[text.index("SQL"):]
    assert "No questions." in sql_section


def test_long_kit_spans_pages():
    competencies, questions = _kit(questions_per_competency=40)
    pages = _pages(render_kit_pdf("Backend Engineer", competencies, questions))
    assert len(pages) > 1
    assert "How would you version endpoint 39?" in pages[-1] or "SQL" in pages[-1]


@pytest.mark.parametrize(
    "title, expected",
    [
        ("Backend Engineer", "Backend_Engineer_Interview_Kit.pdf"),
        ("  Senior  Dev / Ops ", "Senior_Dev__Ops_Interview_Kit.pdf"),
        ("", "Interview_Interview_Kit.pdf"),
    ],
)
def test_export_filename(title, expected):
    assert export_filename(title) == expected
