import pytest

from models.login_attempt import LoginAttempt
from security.rate_limit import DatabaseRateLimiter, rate_limit_key


@pytest.fixture
def limiter(app_ctx, clock):
    return DatabaseRateLimiter(max_attempts=3, window_seconds=60, clock=clock)


def test_key_combines_ip_and_email():
    assert rate_limit_key("10.0.0.1", "a@x.com") == "10.0.0.1|a@x.com"
    assert rate_limit_key("", "a@x.com") == "unknown|a@x.com"


def test_keys_do_not_collide_across_ip_boundary(limiter):
    assert rate_limit_key("1.2.3.4", "5a@x.com") != rate_limit_key("1.2.3.45", "a@x.com")

    for _ in range(3):
        limiter.record_failure(rate_limit_key("1.2.3.4", "5a@x.com"))
    assert limiter.check(rate_limit_key("1.2.3.45", "a@x.com")) is True


def test_fresh_key_allowed(limiter):
    assert limiter.check("k") is True


def test_blocks_at_threshold(limiter):
    for _ in range(2):
        limiter.record_failure("k")
    assert limiter.check("k") is True

    limiter.record_failure("k")
    assert limiter.check("k") is False
    assert limiter.check("other") is True


def test_window_expiry_restarts_count(limiter, clock):
    for _ in range(3):
        limiter.record_failure("k")
    clock.advance(60)
    assert limiter.check("k") is True

    limiter.record_failure("k")
    row = LoginAttempt.query.filter_by(key="k").one()
    assert row.attempt_count == 1
    assert row.window_start == clock.now


def test_window_is_fixed_not_sliding(limiter, clock):
    limiter.record_failure("k")
    clock.advance(50)
    limiter.record_failure("k")
    limiter.record_failure("k")
    assert limiter.check("k") is False

    clock.advance(10)
    assert limiter.check("k") is True


def test_reset_clears_counter(limiter):
    for _ in range(3):
        limiter.record_failure("k")
    limiter.reset("k")
    assert limiter.check("k") is True
    assert LoginAttempt.query.count() == 0
    # resetting an unknown key is a no-op
    limiter.reset("missing")
