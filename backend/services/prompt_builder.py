"""All prompt templates for Gemini API calls."""

import json

from models.kit import Competency, Question


def _competency_payload(competencies: list[Competency]) -> str:
    return json.dumps(
        [{"id": c.key, "name": c.name, "description": c.description} for c in competencies],
        ensure_ascii=False,
    )


def build_competency_prompt(job_title: str, description_excerpt: str) -> str:
    """Call A: competency extraction from the job description."""
    return f"""You are an expert HR consultant. Analyze the following job description and extract 3-5 key competencies required for the role.

Job Title: {job_title}
Job Description:
---
{description_excerpt}
---

Return a JSON object with a "competencies" array of objects with "name" and "description" keys.
Example:
{{
  "competencies": [
    {{ "name": "Strategic Planning", "description": "Ability to set long-term goals..." }},
    {{ "name": "Python Proficiency", "description": "Strong experience with Python..." }}
  ]
}}"""


def build_competency_suggestion_prompt(
    job_title: str,
    description_excerpt: str,
    existing: list[Competency],
) -> str:
    """Call A2: additional competencies beyond the ones already listed."""
    existing_names = ", ".join(c.name for c in existing) or "(none)"

    return f"""You are an expert HR consultant. Suggest 2-3 additional competencies for the role below that are NOT already covered.

Job Title: {job_title}
Job Description:
---
{description_excerpt}
---

Competencies already listed (do not repeat these): {existing_names}

Return a JSON object with a "competencies" array of objects with "name" and "description" keys."""


def build_questions_prompt(job_title: str, competencies: list[Competency], count: int) -> str:
    """Call B: interview questions with rubrics, `count` per competency."""
    return f"""You are an expert HR consultant. Generate interview questions for the following competencies for the role of {job_title}.

Competencies:
{_competency_payload(competencies)}

For EACH competency, generate {count} questions.
Use a mix of these categories:
- "Behavioral": asks for past experience
- "Competency": tests knowledge or skill
- "Situational": a hypothetical scenario
- "Deceiving": a trick question with a false premise the candidate should spot

Return a JSON object with a "questions" array. Each item has this structure:
{{
  "competencyId": "<id of the competency from the list above>",
  "competencyName": "<name of the competency>",
  "text": "<the question text>",
  "category": "Behavioral" | "Competency" | "Situational" | "Deceiving",
  "explanation": "<why this question is good>",
  "rubric_good": "<indicators of a good answer>",
  "rubric_bad": "<red flags>"
}}"""


def build_kit_score_prompt(job_title: str, description_excerpt: str, questions: list[Question]) -> str:
    """Call C: quality score for the finished kit. Rubrics are not sent."""
    question_payload = json.dumps(
        [{"text": q.text, "category": q.category.value} for q in questions],
        ensure_ascii=False,
    )

    return f"""You are an expert HR consultant. Evaluate the quality of the following interview kit for the role of {job_title}.

Job Description:
{description_excerpt}...

Generated Questions:
{question_payload}

Rate the quality of this interview kit on a scale of 0 to 100 based on:
1. Relevance to the job description.
2. Variety of question types (Behavioral, Competency, etc.).
3. Depth and clarity of questions.

Return a JSON object with:
{{
  "score": <integer 0-100>,
  "explanation": "<a brief explanation of the score (max 2 sentences)>"
}}"""
