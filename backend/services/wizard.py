"""Interview kit wizard: a four-stage state machine.

Flow:
    job_input
      │  submit_job()            → extract competencies (PDF text first if needed)
      ▼
    competency_review  ⟲ edit / suggest_competencies()
      │  confirm_competencies()  → generate questions (simulated progress)
      ▼
    question_review    ⟲ edit / generate_more_questions()
      │  finalize()              → score (best-effort) + save in one transaction
      ▼
    kit_preview

back() steps from a review stage to the previous one; reset() returns to
job_input from anywhere. Only one network step runs at a time: while
`loading` is set every other operation raises WizardBusyError. A failed
step leaves stage and data as they were before it started.
"""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncIterator

from config import Settings, settings as default_settings
from models.kit import (
    Competency,
    JobDraft,
    KitScore,
    Question,
    QuestionCategory,
    group_by_competency,
    new_key,
)
from models.responses import CompetencyGroup, WizardSnapshot
from services import kit_exporter, pdf_parser
from services.errors import (
    GenerationError,
    InvalidInputError,
    InvalidTransitionError,
    PersistenceError,
    WizardBusyError,
)
from services.kit_generator import KitGenerator
from services.kit_repository import KitRepository

logger = logging.getLogger(__name__)

PROGRESS_CEILING = 90
PROGRESS_STEP = 10
PROGRESS_STATUSES = (
    "Analyzing competencies...",
    "Drafting questions...",
    "Writing answer rubrics...",
    "Almost there...",
)


class WizardStage(str, Enum):
    JOB_INPUT = "job_input"
    COMPETENCY_REVIEW = "competency_review"
    QUESTION_REVIEW = "question_review"
    KIT_PREVIEW = "kit_preview"


_PREVIOUS_STAGE = {
    WizardStage.COMPETENCY_REVIEW: WizardStage.JOB_INPUT,
    WizardStage.QUESTION_REVIEW: WizardStage.COMPETENCY_REVIEW,
}

_QUESTION_FIELDS = ("text", "category", "explanation", "rubric_good", "rubric_bad", "competency_key")


@dataclass
class WizardContext:
    """Everything a wizard session needs from the outside world."""
    user_id: str
    generator: KitGenerator
    repository: KitRepository
    settings: Settings = field(default_factory=lambda: default_settings)


class KitWizard:
    def __init__(self, context: WizardContext, session_id: str | None = None) -> None:
        self.context = context
        self.session_id = session_id or new_key()
        self.loading = False
        self.progress: int | None = None
        self.status = ""
        self._clear()

    def _clear(self) -> None:
        self.stage = WizardStage.JOB_INPUT
        self.job: JobDraft | None = None
        self.competencies: list[Competency] = []
        self.questions: list[Question] = []
        self.score: KitScore | None = None
        self.saved_job_id: str | None = None

    # --- guards ---

    def _require_idle(self) -> None:
        if self.loading:
            raise WizardBusyError(f"Please wait: {self.status or 'an operation is in progress'}")

    def _require_stage(self, *stages: WizardStage) -> None:
        if self.stage not in stages:
            allowed = ", ".join(s.value for s in stages)
            raise InvalidTransitionError(
                f"Not allowed in stage {self.stage.value} (expected {allowed})"
            )

    @asynccontextmanager
    async def _busy(self, status: str) -> AsyncIterator[None]:
        self._require_idle()
        self.loading = True
        self.status = status
        self.progress = None
        try:
            yield
        finally:
            self.loading = False
            self.status = ""

    async def _tick_progress(self) -> None:
        interval = self.context.settings.progress_tick_seconds
        while True:
            await asyncio.sleep(interval)
            self.progress = min(PROGRESS_CEILING, (self.progress or 0) + PROGRESS_STEP)
            index = min(len(PROGRESS_STATUSES) - 1, self.progress * len(PROGRESS_STATUSES) // 100)
            self.status = PROGRESS_STATUSES[index]

    @staticmethod
    def _at(items: list, index: int, what: str):
        if not 0 <= index < len(items):
            raise InvalidInputError(f"No {what} at position {index}")
        return items[index]

    # --- stage 1: job input ---

    async def submit_job(
        self,
        title: str,
        description: str = "",
        pdf_bytes: bytes | None = None,
    ) -> list[Competency]:
        self._require_idle()
        self._require_stage(WizardStage.JOB_INPUT)
        title = (title or "").strip()
        if not title:
            raise InvalidInputError("Please provide a job title.")
        description = (description or "").strip()
        if not description and not pdf_bytes:
            raise InvalidInputError("Please provide a job description.")

        async with self._busy("Analyzing..."):
            if not description:
                self.status = "Parsing PDF..."
                description = await asyncio.to_thread(pdf_parser.extract_text, pdf_bytes)
                if not description:
                    raise InvalidInputError("Please provide a job description.")
            self.status = "Extracting competencies..."
            competencies = await self.context.generator.extract_competencies(title, description)

        self.job = JobDraft(title=title, description=description)
        self.competencies = competencies
        self.questions = []
        self.stage = WizardStage.COMPETENCY_REVIEW
        logger.info("Session %s: %d competencies for %r", self.session_id, len(competencies), title)
        return competencies

    # --- stage 2: competency review ---

    def add_competency(self, name: str, description: str = "") -> Competency:
        self._require_idle()
        self._require_stage(WizardStage.COMPETENCY_REVIEW)
        name = (name or "").strip()
        if not name:
            raise InvalidInputError("Competency name is required.")
        competency = Competency(name=name, description=(description or "").strip())
        self.competencies = [*self.competencies, competency]
        return competency

    def update_competency(
        self,
        index: int,
        name: str | None = None,
        description: str | None = None,
    ) -> Competency:
        self._require_idle()
        self._require_stage(WizardStage.COMPETENCY_REVIEW)
        current = self._at(self.competencies, index, "competency")
        changes = {}
        if name is not None:
            if not name.strip():
                raise InvalidInputError("Competency name is required.")
            changes["name"] = name.strip()
        if description is not None:
            changes["description"] = description.strip()
        updated = current.model_copy(update=changes)
        self.competencies = [updated if i == index else c for i, c in enumerate(self.competencies)]
        return updated

    def remove_competency(self, index: int) -> Competency:
        self._require_idle()
        self._require_stage(WizardStage.COMPETENCY_REVIEW)
        removed = self._at(self.competencies, index, "competency")
        self.competencies = [c for i, c in enumerate(self.competencies) if i != index]
        return removed

    async def suggest_competencies(self) -> list[Competency]:
        self._require_idle()
        self._require_stage(WizardStage.COMPETENCY_REVIEW)
        async with self._busy("Suggesting more competencies..."):
            suggestions = await self.context.generator.suggest_competencies(
                self.job.title, self.job.description, list(self.competencies)
            )
        self.competencies = [*self.competencies, *suggestions]
        return suggestions

    async def confirm_competencies(self) -> list[Question]:
        self._require_idle()
        self._require_stage(WizardStage.COMPETENCY_REVIEW)
        if not self.competencies:
            raise InvalidInputError("Add at least one competency before generating questions.")

        async with self._busy(PROGRESS_STATUSES[0]):
            self.progress = 0
            ticker = asyncio.create_task(self._tick_progress())
            try:
                questions = await self.context.generator.generate_questions(
                    self.job.title,
                    list(self.competencies),
                    count=self.context.settings.questions_per_competency,
                )
            except BaseException:
                self.progress = None
                raise
            finally:
                ticker.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await ticker
            self.progress = 100

        self.questions = questions
        self.stage = WizardStage.QUESTION_REVIEW
        return questions

    # --- stage 3: question review ---

    def _competency_for(self, key: str | None) -> Competency:
        for c in self.competencies:
            if c.key == key:
                return c
        raise InvalidInputError("Questions must belong to one of the kit's competencies.")

    def add_question(
        self,
        competency_key: str,
        text: str,
        category: QuestionCategory | str = QuestionCategory.COMPETENCY,
        explanation: str = "",
        rubric_good: str = "",
        rubric_bad: str = "",
    ) -> Question:
        self._require_idle()
        self._require_stage(WizardStage.QUESTION_REVIEW)
        competency = self._competency_for(competency_key)
        if not (text or "").strip():
            raise InvalidInputError("Question text is required.")
        question = Question(
            competency_key=competency.key,
            competency_name=competency.name,
            text=text.strip(),
            category=QuestionCategory.parse(getattr(category, "value", category)),
            explanation=explanation,
            rubric_good=rubric_good,
            rubric_bad=rubric_bad,
        )
        self.questions = [*self.questions, question]
        return question

    def update_question(self, index: int, **fields) -> Question:
        self._require_idle()
        self._require_stage(WizardStage.QUESTION_REVIEW)
        current = self._at(self.questions, index, "question")
        unknown = set(fields) - set(_QUESTION_FIELDS)
        if unknown:
            raise InvalidInputError(f"Unknown question field(s): {', '.join(sorted(unknown))}")

        changes = {k: v for k, v in fields.items() if v is not None}
        if "text" in changes:
            if not changes["text"].strip():
                raise InvalidInputError("Question text is required.")
            changes["text"] = changes["text"].strip()
        if "category" in changes:
            changes["category"] = QuestionCategory.parse(getattr(changes["category"], "value", changes["category"]))
        if "competency_key" in changes:
            competency = self._competency_for(changes["competency_key"])
            changes["competency_name"] = competency.name

        updated = current.model_copy(update=changes)
        self.questions = [updated if i == index else q for i, q in enumerate(self.questions)]
        return updated

    def remove_question(self, index: int) -> Question:
        self._require_idle()
        self._require_stage(WizardStage.QUESTION_REVIEW)
        removed = self._at(self.questions, index, "question")
        self.questions = [q for i, q in enumerate(self.questions) if i != index]
        return removed

    async def generate_more_questions(self) -> list[Question]:
        self._require_idle()
        self._require_stage(WizardStage.QUESTION_REVIEW)
        async with self._busy("Generating more questions..."):
            extra = await self.context.generator.generate_questions(
                self.job.title,
                list(self.competencies),
                count=self.context.settings.more_questions_per_competency,
            )
        self.questions = [*self.questions, *extra]
        return extra

    async def finalize(self) -> str:
        """Score the kit, save it and move to the preview. Returns the job id."""
        self._require_idle()
        self._require_stage(WizardStage.QUESTION_REVIEW)
        if not self.questions:
            raise InvalidInputError("There are no questions to save.")

        repository = self.context.repository
        async with self._busy("Scoring kit..."):
            try:
                score = await self.context.generator.generate_kit_score(
                    self.job.title, self.job.description, list(self.questions)
                )
            except GenerationError as e:
                logger.warning("Kit scoring failed, saving without a score: %s", e)
                score = KitScore.fallback()

            self.status = "Saving kit..."
            org_id = await asyncio.to_thread(repository.get_organization_id, self.context.user_id)
            job_id = await asyncio.to_thread(
                repository.save_kit,
                org_id,
                self.context.user_id,
                self.job,
                list(self.competencies),
                list(self.questions),
                score,
            )
            # committed; a failed re-read keeps the local records
            try:
                saved = await asyncio.to_thread(repository.get_kit, job_id)
            except PersistenceError as e:
                logger.warning("Saved kit %s but could not read it back: %s", job_id, e)
                saved = None

        self.score = score
        self.saved_job_id = job_id
        if saved is not None:
            self.competencies = saved.competencies
            self.questions = saved.questions
        self.stage = WizardStage.KIT_PREVIEW
        logger.info("Session %s: saved kit %s (score %d)", self.session_id, job_id, score.score)
        return job_id

    # --- navigation ---

    def back(self) -> WizardStage:
        self._require_idle()
        previous = _PREVIOUS_STAGE.get(self.stage)
        if previous is None:
            raise InvalidTransitionError(f"Cannot go back from stage {self.stage.value}")
        self.stage = previous
        self.progress = None
        return previous

    def reset(self) -> None:
        self._require_idle()
        self._clear()
        self.progress = None
        self.status = ""

    # --- views ---

    def export_pdf(self) -> bytes:
        self._require_stage(WizardStage.KIT_PREVIEW)
        return kit_exporter.render_kit_pdf(self.job.title, self.competencies, self.questions)

    def snapshot(self) -> WizardSnapshot:
        return WizardSnapshot(
            session_id=self.session_id,
            stage=self.stage.value,
            loading=self.loading,
            progress=self.progress,
            status=self.status,
            job=self.job,
            competencies=self.competencies,
            questions=self.questions,
            questions_by_competency=[
                CompetencyGroup(
                    competency_key=c.key,
                    competency_name=c.name,
                    questions=group,
                )
                for c, group in group_by_competency(self.competencies, self.questions)
            ],
            score=self.score,
            saved_job_id=self.saved_job_id,
        )
