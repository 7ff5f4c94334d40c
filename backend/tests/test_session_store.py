from unittest.mock import patch

import pytest

from config import Settings
from conftest import OTHER_USER_ID, USER_ID
from services import session_store
from services.errors import SessionNotFoundError
from services.wizard import WizardContext


class _Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    fake = _Clock()
    with patch("services.session_store._clock", new=fake):
        yield fake


@pytest.fixture
def short_lived(repository, generator):
    return WizardContext(
        user_id=USER_ID,
        generator=generator,
        repository=repository,
        settings=Settings(session_ttl_seconds=60),
    )


def test_get_returns_own_session(context):
    wizard = session_store.create(context)
    assert session_store.get(wizard.session_id, USER_ID) is wizard


def test_other_users_session_is_missing(context):
    wizard = session_store.create(context)
    with pytest.raises(SessionNotFoundError):
        session_store.get(wizard.session_id, OTHER_USER_ID)


def test_discard(context):
    wizard = session_store.create(context)
    session_store.discard(wizard.session_id, USER_ID)
    with pytest.raises(SessionNotFoundError):
        session_store.get(wizard.session_id, USER_ID)


def test_idle_session_expires(clock, short_lived):
    wizard = session_store.create(short_lived)
    clock.now += 61
    with pytest.raises(SessionNotFoundError):
        session_store.get(wizard.session_id, USER_ID)


def test_access_keeps_session_alive(clock, short_lived):
    wizard = session_store.create(short_lived)
    for _ in range(3):
        clock.now += 45
        assert session_store.get(wizard.session_id, USER_ID) is wizard


def test_creating_a_session_drops_idle_ones(clock, short_lived):
    stale = session_store.create(short_lived)
    clock.now += 120
    session_store.create(short_lived)
    assert stale.session_id not in session_store._sessions


def test_busy_session_is_never_dropped(clock, short_lived):
    wizard = session_store.create(short_lived)
    wizard.loading = True
    clock.now += 600
    assert session_store.get(wizard.session_id, USER_ID) is wizard
