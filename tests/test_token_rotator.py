import pytest

from nsems.config import Config
from nsems.services.token_rotator import TokenRotator
from nsems.services.token_service import TokenService
from nsems.utils.exceptions import TokenCoreError
from nsems.utils.validators import TokenValidator

from conftest import FakeClock, HOLDER_ID, HOLDER_SECRET, ROTATION_MS, START_WINDOW


@pytest.fixture
def rotator():
    clock = FakeClock()
    tokens = TokenService(Config(ROTATION_INTERVAL_MS=ROTATION_MS))
    r = TokenRotator(HOLDER_ID, HOLDER_SECRET, tokens, clock=clock)
    yield r
    r.close()


def test_current_issues_token_for_current_window(rotator):
    token = rotator.current()
    assert token.window == START_WINDOW
    assert TokenValidator.parse(token.payload).ok
    assert rotator.is_valid()
    assert rotator.time_remaining_seconds() == 50


def test_lapsed_token_is_regenerated(rotator):
    first = rotator.current()
    rotator.clock.advance(ROTATION_MS)
    assert not rotator.is_valid()
    second = rotator.current()
    assert second.window == first.window + 1
    assert second.payload != first.payload


def test_subscribers_get_current_token_then_updates(rotator):
    rotator.refresh()
    seen = []
    unsubscribe = rotator.subscribe(seen.append)
    assert len(seen) == 1
    rotator.clock.advance(ROTATION_MS)
    rotator.refresh()
    unsubscribe()
    rotator.refresh()
    assert [t.window for t in seen] == [START_WINDOW, START_WINDOW + 1]


def test_missing_secret_is_an_error(rotator):
    rotator.secret = None
    with pytest.raises(TokenCoreError) as exc:
        rotator.refresh()
    assert exc.value.reason == "secret key not available"


def test_start_generates_immediately_and_stop_cancels(rotator):
    seen = []
    rotator.subscribe(seen.append)
    rotator.start()
    try:
        assert len(seen) == 1
        assert rotator.running
    finally:
        rotator.stop()
    assert not rotator.running
    assert rotator._timer is None


def test_close_clears_state(rotator):
    rotator.refresh()
    rotator.close()
    assert rotator.time_remaining_seconds() == 0
    assert not rotator.is_valid()
