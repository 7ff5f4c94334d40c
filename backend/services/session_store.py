"""In-memory registry of wizard sessions.

One KitWizard per session id, owned by the user who created it. A session
idle for longer than its `session_ttl_seconds` is dropped the next time the
registry is touched; a session with a generation call in flight is never
dropped. Nothing is shared between sessions.
"""

import logging
import time

from services.errors import SessionNotFoundError
from services.wizard import KitWizard, WizardContext

logger = logging.getLogger(__name__)

_clock = time.monotonic

_sessions: dict[str, KitWizard] = {}
_last_seen: dict[str, float] = {}


def _is_idle(wizard: KitWizard, now: float) -> bool:
    ttl = wizard.context.settings.session_ttl_seconds
    return not wizard.loading and now - _last_seen[wizard.session_id] > ttl


def _evict_idle(now: float) -> None:
    for session_id in [sid for sid, w in _sessions.items() if _is_idle(w, now)]:
        del _sessions[session_id]
        del _last_seen[session_id]
        logger.info("Dropped idle wizard session %s", session_id)


def create(context: WizardContext) -> KitWizard:
    now = _clock()
    _evict_idle(now)
    wizard = KitWizard(context)
    _sessions[wizard.session_id] = wizard
    _last_seen[wizard.session_id] = now
    logger.info("Opened wizard session %s for %s", wizard.session_id, context.user_id)
    return wizard


def get(session_id: str, user_id: str) -> KitWizard:
    """Look up a session; other users' sessions are reported as missing."""
    now = _clock()
    _evict_idle(now)
    wizard = _sessions.get(session_id)
    if wizard is None or wizard.context.user_id != user_id:
        raise SessionNotFoundError(f"Wizard session {session_id} not found")
    _last_seen[session_id] = now
    return wizard


def discard(session_id: str, user_id: str) -> None:
    get(session_id, user_id)
    del _sessions[session_id]
    del _last_seen[session_id]


def clear() -> None:
    """Drop all sessions. Useful for testing."""
    _sessions.clear()
    _last_seen.clear()
