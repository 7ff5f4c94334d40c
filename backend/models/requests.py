from pydantic import BaseModel, Field

from models.kit import QuestionCategory


class CompetencyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field("", max_length=2000)


class CompetencyUpdate(BaseModel):
    name: str | None = Field(None, max_length=200)
    description: str | None = Field(None, max_length=2000)


class QuestionCreate(BaseModel):
    competency_key: str
    text: str = Field(..., min_length=1, max_length=2000)
    category: QuestionCategory = QuestionCategory.COMPETENCY
    explanation: str = ""
    rubric_good: str = ""
    rubric_bad: str = ""


class QuestionUpdate(BaseModel):
    competency_key: str | None = None
    text: str | None = Field(None, max_length=2000)
    category: QuestionCategory | None = None
    explanation: str | None = None
    rubric_good: str | None = None
    rubric_bad: str | None = None


class ReviewDecision(BaseModel):
    approve: bool
    reason: str | None = Field(None, max_length=2000, description="Required when rejecting")


class OrganizationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)


class OrganizationJoin(BaseModel):
    invite_code: str = Field(..., min_length=1, max_length=64)
