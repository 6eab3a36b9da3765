from datetime import datetime, timedelta

import pytest

from app import create_app
from config import TestConfig
from models import db
from models.user import User
from security.password import hash_password
from utils.emailer import EmailDeliveryError

PASSWORD = "correct horse 42"
GOOD_CAPTCHA = "good-captcha"


class FakeClock:
    def __init__(self, start=None):
        self.now = start or datetime(2026, 3, 1, 12, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


class FakeCaptcha:
    def __init__(self):
        self.calls = []

    def verify(self, token, remote_ip=None):
        self.calls.append((token, remote_ip))
        return token == GOOD_CAPTCHA


class RecordingMailer:
    def __init__(self):
        self.sent = []
        self.fail = False

    def send_verification_code(self, to_email, code, ttl_seconds):
        if self.fail:
            raise EmailDeliveryError("smtp unreachable")
        self.sent.append((to_email, code))

    @property
    def last_code(self):
        return self.sent[-1][1]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def captcha():
    return FakeCaptcha()


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def app(tmp_path, clock, captcha, mailer):
    class _Config(TestConfig):
        UPLOAD_FOLDER = str(tmp_path / "media")

    app = create_app(_Config, captcha=captcha, mailer=mailer, clock=clock)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def app_ctx(app):
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def login_ctx(app):
    return app.extensions["login_context"]


def make_user(app, email="a@x.com", password=PASSWORD, **fields):
    fields.setdefault("verified", True)
    with app.app_context():
        user = User(
            email=email,
            password_hash=hash_password(password, rounds=app.config["BCRYPT_ROUNDS"]),
            **fields,
        )
        db.session.add(user)
        db.session.commit()
        return user.id


def session_token_for(app, email, remember_me=False):
    with app.app_context():
        token, _ = app.extensions["login_context"].sessions.create(email, remember_me)
        return token


def cookie_header(app, token):
    return {"Cookie": f"{app.config['AUTH_COOKIE_NAME']}={token}"}


@pytest.fixture
def user(app):
    make_user(app, "a@x.com", username="alice")
    return "a@x.com"


@pytest.fixture
def auth(app, user):
    """Cookie header for a signed-in alice."""
    return cookie_header(app, session_token_for(app, user))


@pytest.fixture
def anon_client(app):
    # cookies are sent through explicit headers in these tests
    return app.test_client(use_cookies=False)
