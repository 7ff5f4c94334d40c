"""Shared dependencies for API routes."""

from functools import lru_cache

from fastapi import Depends, Header, HTTPException

from config import settings
from services import gemini_client, session_store
from services.kit_generator import KitGenerator
from services.kit_repository import KitRepository, SqliteKitRepository
from services.wizard import KitWizard, WizardContext


@lru_cache
def get_repository() -> KitRepository:
    return SqliteKitRepository(settings.database_path)


def get_kit_generator() -> KitGenerator:
    return KitGenerator(client=gemini_client.get_client(), settings=settings)


def get_current_user(x_user_id: str | None = Header(None)) -> str:
    """Authentication happens upstream; the gateway forwards the user id."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Not authenticated")
    return x_user_id.strip()


def get_wizard_context(
    user_id: str = Depends(get_current_user),
    generator: KitGenerator = Depends(get_kit_generator),
    repository: KitRepository = Depends(get_repository),
) -> WizardContext:
    return WizardContext(user_id=user_id, generator=generator, repository=repository, settings=settings)


def get_wizard(session_id: str, user_id: str = Depends(get_current_user)) -> KitWizard:
    return session_store.get(session_id, user_id)
