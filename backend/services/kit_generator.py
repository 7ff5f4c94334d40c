"""Generative content client: competencies, questions and kit scoring.

Each operation is one Gemini call. Model output is loosely structured, so
every response goes through `first_array` and per-item normalisation:
unexpected shapes become empty results instead of errors. Only transport
and upstream failures raise (GenerationError).
"""

import logging
import math
from typing import Any, Iterable

from google import genai

from config import Settings, settings as default_settings
from models.kit import Competency, KitScore, Question, QuestionCategory
from services import gemini_client, prompt_builder

logger = logging.getLogger(__name__)


def first_array(payload: Any, preferred_keys: Iterable[str] = ()) -> list:
    """Find the list in a model response.

    Precedence: a top-level list; then the first of `preferred_keys` whose
    value is a list; then the first list-valued field in insertion order.
    Anything else yields an empty list.
    """
    if isinstance(payload, list):
        return payload
    if not isinstance(payload, dict):
        return []
    for key in preferred_keys:
        value = payload.get(key)
        if isinstance(value, list):
            return value
    for value in payload.values():
        if isinstance(value, list):
            return value
    return []


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _to_competencies(items: list) -> list[Competency]:
    competencies = []
    for item in items:
        if isinstance(item, str):
            item = {"name": item}
        if not isinstance(item, dict):
            continue
        name = _text(item.get("name"))
        if not name:
            continue
        competencies.append(Competency(name=name, description=_text(item.get("description"))))
    return competencies


def _resolve_competency(item: dict, competencies: list[Competency]) -> Competency | None:
    """Match a generated question to one of the requested competencies.

    Tries the echoed id, then the exact name, then a case-insensitive name.
    """
    by_key = {c.key: c for c in competencies}
    comp_id = _text(item.get("competencyId") or item.get("competency_id"))
    if comp_id in by_key:
        return by_key[comp_id]

    name = _text(item.get("competencyName") or item.get("competency_name") or item.get("competency"))
    if not name:
        return None
    for c in competencies:
        if c.name == name:
            return c
    lowered = name.lower()
    for c in competencies:
        if c.name.strip().lower() == lowered:
            return c
    return None


def _to_questions(items: list, competencies: list[Competency]) -> list[Question]:
    questions = []
    dropped = 0
    for item in items:
        if not isinstance(item, dict):
            continue
        text = _text(item.get("text") or item.get("question"))
        if not text:
            continue
        competency = _resolve_competency(item, competencies)
        if competency is None:
            dropped += 1
            continue
        questions.append(
            Question(
                competency_key=competency.key,
                competency_name=competency.name,
                text=text,
                category=QuestionCategory.parse(item.get("category")),
                explanation=_text(item.get("explanation")),
                rubric_good=_text(item.get("rubric_good")),
                rubric_bad=_text(item.get("rubric_bad")),
            )
        )
    if dropped:
        logger.warning("Dropped %d generated question(s) with no matching competency", dropped)
    return questions


def _to_kit_score(payload: Any) -> KitScore:
    if not isinstance(payload, dict):
        return KitScore.fallback()
    try:
        raw = float(payload.get("score"))
    except (TypeError, ValueError):
        return KitScore.fallback()
    # json.loads turns 1e999 and Infinity into inf
    if not math.isfinite(raw):
        return KitScore.fallback()
    score = int(round(raw))
    return KitScore(
        score=max(0, min(100, score)),
        explanation=_text(payload.get("explanation")),
    )


class KitGenerator:
    """Talks to the model on behalf of one wizard (or any other caller)."""

    def __init__(self, client: genai.Client | None = None, settings: Settings | None = None) -> None:
        self._client = client
        self._settings = settings or default_settings

    async def _ask(self, prompt: str) -> Any | None:
        return await gemini_client.generate_json(prompt, client=self._client, settings=self._settings)

    async def extract_competencies(self, job_title: str, job_description: str) -> list[Competency]:
        excerpt = job_description[: self._settings.competency_prompt_chars]
        data = await self._ask(prompt_builder.build_competency_prompt(job_title, excerpt))
        competencies = _to_competencies(first_array(data, ("competencies",)))
        logger.info("Extracted %d competencies for %r", len(competencies), job_title)
        return competencies

    async def suggest_competencies(
        self,
        job_title: str,
        job_description: str,
        existing: list[Competency],
    ) -> list[Competency]:
        excerpt = job_description[: self._settings.competency_prompt_chars]
        prompt = prompt_builder.build_competency_suggestion_prompt(job_title, excerpt, existing)
        data = await self._ask(prompt)
        taken = {c.name.strip().lower() for c in existing}
        suggestions = []
        for c in _to_competencies(first_array(data, ("competencies",))):
            if c.name.lower() in taken:
                continue
            taken.add(c.name.lower())
            suggestions.append(c)
        return suggestions

    async def generate_questions(
        self,
        job_title: str,
        competencies: list[Competency],
        count: int = 2,
    ) -> list[Question]:
        if not competencies:
            return []
        prompt = prompt_builder.build_questions_prompt(job_title, competencies, count)
        data = await self._ask(prompt)
        questions = _to_questions(first_array(data, ("questions",)), competencies)
        logger.info(
            "Generated %d questions for %d competencies", len(questions), len(competencies)
        )
        return questions

    async def generate_kit_score(
        self,
        job_title: str,
        job_description: str,
        questions: list[Question],
    ) -> KitScore:
        excerpt = job_description[: self._settings.score_prompt_chars]
        data = await self._ask(prompt_builder.build_kit_score_prompt(job_title, excerpt, questions))
        score = _to_kit_score(data)
        if data is not None and score == KitScore.fallback():
            logger.warning("Kit score response had an unexpected shape: %r", data)
        return score
