import os
from pydantic_settings import BaseSettings


def _parse_cors_origins() -> list[str] | None:
    """Parse CORS_ORIGINS env var as comma-separated string or JSON list."""
    raw = os.environ.get("CORS_ORIGINS")
    if not raw:
        return None
    if raw.startswith("["):
        import json
        return json.loads(raw)
    return [o.strip() for o in raw.split(",") if o.strip()]


class Settings(BaseSettings):
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"
    generation_temperature: float = 0.3
    max_output_tokens: int = 8192

    # Prompt size limits (characters of job description sent to the model)
    competency_prompt_chars: int = 3000
    score_prompt_chars: int = 1000

    questions_per_competency: int = 2
    more_questions_per_competency: int = 1

    max_upload_size_mb: int = 5
    database_path: str = "interview_kits.db"
    progress_tick_seconds: float = 0.5
    session_ttl_seconds: int = 3600

    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]
    log_level: str = "INFO"
    debug: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


_cors_override = _parse_cors_origins()
settings = Settings(**{"cors_origins": _cors_override} if _cors_override else {})
