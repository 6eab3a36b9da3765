import re

import pytest

from conftest import FakeClock
from models import db
from models.session import Session
from security.session import InvalidSessionToken, SessionManager, SessionTokenCodec

TOKEN_RE = re.compile(r"^[0-9a-f]{32}:[0-9a-f]{32}:[0-9a-f]+$")


@pytest.fixture(scope="module")
def codec():
    return SessionTokenCodec("unit-test-secret", salt="unit-test-salt")


def _flip(hex_part):
    first = "0" if hex_part[0] != "0" else "1"
    return first + hex_part[1:]


def test_token_format(codec):
    assert TOKEN_RE.match(codec.generate())


def test_tokens_are_unique(codec):
    tokens = {codec.generate() for _ in range(200)}
    assert len(tokens) == 200


def test_roundtrip_yields_uuid(codec):
    value = codec.decrypt(codec.generate())
    assert re.match(r"^[0-9a-f-]{36}$", value)


@pytest.mark.parametrize("part", [0, 1, 2])
def test_tampering_any_part_fails(codec, part):
    pieces = codec.generate().split(":")
    pieces[part] = _flip(pieces[part])
    tampered = ":".join(pieces)

    assert codec.is_authentic(tampered) is False
    with pytest.raises(InvalidSessionToken):
        codec.decrypt(tampered)


@pytest.mark.parametrize("token", [
    "",
    "abc",
    "a:b",
    "zz:zz:zz",
    "00:00:00",
    "a:b:c:d",
])
def test_malformed_tokens_rejected(codec, token):
    assert codec.is_authentic(token) is False


def test_other_secret_cannot_open_token(codec):
    other = SessionTokenCodec("another-secret", salt="unit-test-salt")
    assert other.is_authentic(codec.generate()) is False


def test_empty_secret_refused():
    with pytest.raises(ValueError):
        SessionTokenCodec("")


def test_lifetimes(codec):
    manager = SessionManager(codec, remember_days=90, default_days=1)
    assert manager.lifetime_seconds(True) == 90 * 24 * 60 * 60
    assert manager.lifetime_seconds(False) == 24 * 60 * 60


@pytest.fixture
def manager(app_ctx, clock):
    return app_ctx.extensions["login_context"].sessions


def test_create_then_validate(manager, clock):
    token, max_age = manager.create("a@x.com")
    assert max_age == 86400

    sess = manager.validate(token)
    assert sess is not None
    assert sess.user_email == "a@x.com"
    assert sess.created_at == clock.now
    assert (sess.expires_at - sess.created_at).total_seconds() == 86400


def test_explicit_max_age(manager):
    token, max_age = manager.create("a@x.com", max_age=7 * 86400)
    assert max_age == 7 * 86400
    sess = manager.validate(token)
    assert (sess.expires_at - sess.created_at).total_seconds() == 7 * 86400


def test_expired_session_is_deleted(manager, clock):
    token, max_age = manager.create("a@x.com")
    clock.advance(max_age)

    assert manager.validate(token) is None
    assert Session.query.filter_by(session_token=token).count() == 0


def test_unknown_but_authentic_token(manager):
    assert manager.validate(manager.codec.generate()) is None


def test_tampered_token_not_looked_up(manager):
    token, _ = manager.create("a@x.com")
    iv, tag, ct = token.split(":")
    assert manager.validate(f"{iv}:{_flip(tag)}:{ct}") is None
    # the genuine row is untouched
    assert manager.validate(token) is not None


def test_unverified_row_rejected(manager):
    token, _ = manager.create("a@x.com")
    row = Session.query.filter_by(session_token=token).one()
    row.verified = False
    db.session.commit()
    assert manager.validate(token) is None


def test_revoke(manager):
    token, _ = manager.create("a@x.com")
    assert manager.revoke(token) is True
    assert manager.validate(token) is None
    assert manager.revoke(token) is False
    assert manager.revoke(None) is False


def test_revoke_all_and_purge(manager, clock):
    manager.create("a@x.com")
    manager.create("a@x.com", remember_me=True)
    manager.create("b@x.com")

    assert manager.revoke_all("a@x.com") == 2

    clock.advance(86400)
    manager.create("c@x.com")
    assert manager.purge_expired() == 1
    assert Session.query.count() == 1


def test_manager_clock_is_injected(codec, app_ctx):
    clock = FakeClock()
    manager = SessionManager(codec, clock=clock)
    token, _ = manager.create("a@x.com")
    clock.advance(86399)
    assert manager.validate(token) is not None
    clock.advance(1)
    assert manager.validate(token) is None
