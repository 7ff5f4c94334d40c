"""Google Gemini API wrapper with error handling."""

import json
import logging
from typing import Any

from google import genai
from google.genai import errors, types

from config import Settings, settings as default_settings
from services.errors import GenerationError, ParseError

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = "You are a helpful assistant that outputs JSON."

_client: genai.Client | None = None


def get_client() -> genai.Client | None:
    global _client
    if not default_settings.gemini_api_key:
        logger.warning("No GEMINI_API_KEY set - Gemini features disabled")
        return None
    if _client is None:
        _client = genai.Client(api_key=default_settings.gemini_api_key)
    return _client


def parse_json(text: str | None) -> Any:
    """Parse model output as JSON, tolerating markdown code fences."""
    if not text:
        raise ParseError("Empty response from model")
    text = text.strip()
    # Strip markdown code fences if present
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else text[3:]
        if text.endswith("```"):
            text = text[:-3]
        text = text.strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"Model response is not valid JSON: {e}") from e


async def generate_json(
    prompt: str,
    client: genai.Client | None = None,
    settings: Settings | None = None,
) -> Any | None:
    """Send a prompt to Gemini and parse the JSON response.

    Returns None when the response is not valid JSON. Raises GenerationError
    when no client is configured or the call itself fails.

    Model name, temperature and output limit come from `settings`, falling
    back to the process-wide configuration.
    """
    settings = settings or default_settings
    client = client or get_client()
    if client is None:
        raise GenerationError("Gemini API key is not configured")

    try:
        response = await client.aio.models.generate_content(
            model=settings.gemini_model,
            contents=prompt,
            config=types.GenerateContentConfig(
                system_instruction=SYSTEM_INSTRUCTION,
                response_mime_type="application/json",
                temperature=settings.generation_temperature,
                max_output_tokens=settings.max_output_tokens,
            ),
        )
    except errors.APIError as e:
        logger.error("Gemini API error %s: %s", e.code, e.message)
        raise GenerationError(e.message or str(e), upstream_status=e.code) from e
    except Exception as e:
        logger.error("Gemini request failed: %s", e)
        raise GenerationError(f"Gemini request failed: {e}") from e

    try:
        return parse_json(response.text)
    except ParseError as e:
        logger.warning("Failed to parse Gemini response as JSON: %s", e)
        return None
