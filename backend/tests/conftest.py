"""Shared test configuration, fixtures and fakes."""

import asyncio
import io

import pytest
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas as pdf_canvas

from config import Settings
from models.kit import Competency, KitScore, Question, QuestionCategory
from services import session_store
from services.errors import GenerationError
from services.kit_repository import SqliteKitRepository
from services.wizard import WizardContext

USER_ID = "user-1"
OTHER_USER_ID = "user-2"


class FakeGenerator:
    """Stands in for KitGenerator: canned results, call log, optional failures.

    `fail` holds operation names that should raise GenerationError;
    `gate`, when set, blocks every call until the event is set.
    """

    def __init__(self, competency_names=("API Design",), score=None):
        self.competency_names = list(competency_names)
        self.score = score or KitScore(score=82, explanation="Relevant and varied.")
        self.fail: set[str] = set()
        self.gate: asyncio.Event | None = None
        self.calls: list[tuple] = []

    async def _enter(self, op: str, *args):
        self.calls.append((op, *args))
        if self.gate is not None:
            await self.gate.wait()
        if op in self.fail:
            raise GenerationError(f"{op} failed upstream", upstream_status=500)

    def count(self, op: str) -> int:
        return sum(1 for call in self.calls if call[0] == op)

    async def extract_competencies(self, job_title, job_description):
        await self._enter("extract", job_title, job_description)
        return [Competency(name=n, description=f"{n} skills") for n in self.competency_names]

    async def suggest_competencies(self, job_title, job_description, existing):
        await self._enter("suggest", job_title, job_description, existing)
        return [Competency(name="Mentoring", description="Grows other engineers")]

    async def generate_questions(self, job_title, competencies, count=2):
        await self._enter("questions", job_title, competencies, count)
        batch = self.count("questions")
        return [
            Question(
                competency_key=c.key,
                competency_name=c.name,
                text=f"{c.name} question {batch}.{i}",
                category=QuestionCategory.BEHAVIORAL,
                explanation="Probes depth",
                rubric_good="Concrete examples",
                rubric_bad="Vague answers",
            )
            for c in competencies
            for i in range(count)
        ]

    async def generate_kit_score(self, job_title, job_description, questions):
        await self._enter("score", job_title, job_description, questions)
        return self.score


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: talks to the real Gemini API (needs GEMINI_API_KEY)"
    )


@pytest.fixture(autouse=True)
def _reset_sessions():
    session_store.clear()
    yield
    session_store.clear()


@pytest.fixture
def repository(tmp_path):
    repo = SqliteKitRepository(str(tmp_path / "kits.db"))
    yield repo
    repo.close()


@pytest.fixture
def org(repository):
    """An organization with USER_ID as its admin."""
    return repository.create_organization("Acme", USER_ID)


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def test_settings():
    return Settings(progress_tick_seconds=0.01)


@pytest.fixture
def context(repository, org, generator, test_settings):
    return WizardContext(
        user_id=USER_ID,
        generator=generator,
        repository=repository,
        settings=test_settings,
    )


def make_pdf(*pages: str) -> bytes:
    """Build a small PDF with one line of text per page."""
    buf = io.BytesIO()
    pdf = pdf_canvas.Canvas(buf, pagesize=A4)
    for text in pages:
        pdf.setFont("Helvetica", 12)
        pdf.drawString(72, 750, text)
        pdf.showPage()
    pdf.save()
    return buf.getvalue()
