from pydantic import BaseModel

from models.kit import Competency, JobDraft, JobSummary, KitScore, Question


class CompetencyGroup(BaseModel):
    competency_key: str
    competency_name: str
    questions: list[Question] = []


class WizardSnapshot(BaseModel):
    """Everything the UI needs to render the current wizard step."""
    session_id: str
    stage: str
    loading: bool = False
    progress: int | None = None  # 0-100, only while generating questions
    status: str = ""
    job: JobDraft | None = None
    competencies: list[Competency] = []
    questions: list[Question] = []
    questions_by_competency: list[CompetencyGroup] = []
    score: KitScore | None = None
    saved_job_id: str | None = None


class KitListResponse(BaseModel):
    jobs: list[JobSummary] = []
