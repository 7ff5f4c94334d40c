"""Domain records for an interview kit: job, competencies, questions, score."""

from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field

SCORE_FALLBACK_EXPLANATION = "Failed to generate score."


def new_key() -> str:
    return uuid4().hex


class QuestionCategory(str, Enum):
    COMPETENCY = "Competency"
    BEHAVIORAL = "Behavioral"
    SITUATIONAL = "Situational"
    DECEIVING = "Deceiving"

    @classmethod
    def parse(cls, value: object) -> "QuestionCategory":
        """Case-insensitive lookup; anything unknown is a competency question."""
        if isinstance(value, str):
            wanted = value.strip().lower()
            for category in cls:
                if category.value.lower() == wanted:
                    return category
        return cls.COMPETENCY


class JobStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class JobDraft(BaseModel):
    title: str
    description: str


class Competency(BaseModel):
    """A skill or trait to evaluate.

    `key` is assigned when the competency is created (by the model or the
    user) and is the join key for its questions until the kit is saved;
    `id` is the database row id and only exists after saving.
    """
    key: str = Field(default_factory=new_key)
    id: str | None = None
    name: str
    description: str = ""


class Question(BaseModel):
    id: str | None = None
    competency_key: str | None = None
    competency_id: str | None = None
    competency_name: str = ""
    text: str
    category: QuestionCategory = QuestionCategory.COMPETENCY
    explanation: str = ""
    rubric_good: str = ""
    rubric_bad: str = ""


class KitScore(BaseModel):
    score: int = Field(0, ge=0, le=100)
    explanation: str = ""

    @classmethod
    def fallback(cls) -> "KitScore":
        return cls(score=0, explanation=SCORE_FALLBACK_EXPLANATION)


class PersistedKit(BaseModel):
    """A saved kit as read back from the database."""
    job_id: str
    org_id: str
    profile_id: str
    title: str
    description: str
    status: JobStatus = JobStatus.DRAFT
    kit_score: int | None = None
    kit_score_explanation: str | None = None
    rejection_reason: str | None = None
    created_at: str = ""
    submitted_at: str | None = None
    competencies: list[Competency] = []
    questions: list[Question] = []


class JobSummary(BaseModel):
    job_id: str
    title: str
    status: JobStatus
    profile_id: str
    kit_score: int | None = None
    rejection_reason: str | None = None
    created_at: str = ""
    submitted_at: str | None = None


class Profile(BaseModel):
    id: str
    organization_id: str | None = None
    role: str = "member"
    full_name: str = ""


class Organization(BaseModel):
    id: str
    name: str
    invite_code: str


def group_by_competency(
    competencies: list[Competency], questions: list[Question]
) -> list[tuple[Competency, list[Question]]]:
    """Group questions under their competency, in competency order.

    Competencies without questions are kept with an empty list.
    """
    buckets: dict[str, list[Question]] = {c.key: [] for c in competencies}
    for q in questions:
        if q.competency_key in buckets:
            buckets[q.competency_key].append(q)
    return [(c, buckets[c.key]) for c in competencies]
