"""Password + email-code login.

One HTTP request walks as far along the state chain as its inputs allow:

    START -> RATE_CHECKED -> CAPTCHA_CHECKED -> PASSWORD_VERIFIED -> CODE_ISSUED
    START -> RATE_CHECKED -> PASSWORD_VERIFIED -> CODE_VERIFIED -> SESSION_ESTABLISHED

The first request (no ``verification_code``) must carry a CAPTCHA token, which is
checked before the account is looked up, and ends with a code emailed to the
user. The second request repeats the credentials with the code and the same
device fingerprint, skips the CAPTCHA and ends with a session.

All collaborators come in through ``LoginContext`` so the flow runs against any
store, captcha service or mailer.
"""
import enum
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from security.credentials import CredentialStore, normalize_email
from security.fingerprint import derive_fingerprint
from security.password import DEFAULT_ROUNDS, verify_password_or_dummy
from security.rate_limit import RateLimiter, rate_limit_key

logger = logging.getLogger(__name__)

MISSING_FIELDS = "Email and password required"
RATE_LIMITED = "Too many login attempts"
INVALID_CREDENTIALS = "Invalid email or password"
CAPTCHA_FAILED = "CAPTCHA failed"
INVALID_CODE = "Invalid or expired verification code"
CODE_SENT = "Verification code sent to your email"
LOGIN_OK = "Login successful!"

_sysrand = random.SystemRandom()


class LoginState(enum.Enum):
    START = "start"
    RATE_CHECKED = "rate_checked"
    CAPTCHA_CHECKED = "captcha_checked"
    PASSWORD_VERIFIED = "password_verified"
    CODE_ISSUED = "code_issued"
    CODE_VERIFIED = "code_verified"
    SESSION_ESTABLISHED = "session_established"


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return value is True or value == 1


def _as_text(value) -> str | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return str(value)
    return value if isinstance(value, str) and value else None


def _as_code(value) -> str | None:
    if value is None or value == "":
        return None
    # a JSON number loses the leading zeros of the emailed code
    if isinstance(value, int) and not isinstance(value, bool) and 0 <= value < 1_000_000:
        return f"{value:06d}"
    # anything else is compared as text and cannot match
    return value if isinstance(value, str) else str(value)


@dataclass
class LoginRequest:
    email: str
    password: str
    remember_me: bool = False
    captcha_token: str | None = None
    verification_code: str | None = None
    fingerprint: str | None = None
    client_ip: str = "unknown"
    user_agent: str | None = None
    accept_language: str | None = None

    @classmethod
    def from_payload(cls, payload: dict, client_ip: str = "unknown", user_agent: str | None = None,
                     accept_language: str | None = None) -> "LoginRequest":
        password = payload.get("password")
        return cls(
            email=normalize_email(payload.get("email")),
            password=password if isinstance(password, str) else "",
            remember_me=_as_bool(payload.get("remember_me")),
            captcha_token=_as_text(payload.get("captcha_token")),
            verification_code=_as_code(payload.get("verification_code")),
            fingerprint=_as_text(payload.get("fingerprint")),
            client_ip=client_ip or "unknown",
            user_agent=user_agent,
            accept_language=accept_language,
        )


@dataclass
class LoginOutcome:
    status_code: int
    payload: dict[str, Any]
    state: LoginState
    event: str | None = None
    user_id: int | None = None
    session_token: str | None = None
    max_age: int | None = None

    @property
    def success(self) -> bool:
        return bool(self.payload.get("success"))


@dataclass
class LoginContext:
    rate_limiter: RateLimiter
    captcha: Any
    codes: Any
    sessions: Any
    credentials: CredentialStore = field(default_factory=CredentialStore)
    bcrypt_rounds: int = DEFAULT_ROUNDS
    failure_delay: tuple[float, float] = (0.2, 0.6)
    sleep: Callable[[float], None] = time.sleep


def _failure(status_code: int, error: str, state: LoginState, event: str | None = None,
             user_id: int | None = None) -> LoginOutcome:
    return LoginOutcome(status_code, {"success": False, "error": error}, state, event, user_id)


class LoginOrchestrator:
    def __init__(self, ctx: LoginContext):
        self.ctx = ctx

    def login(self, req: LoginRequest) -> LoginOutcome:
        if not req.email or not req.password:
            return _failure(400, MISSING_FIELDS, LoginState.START)

        key = rate_limit_key(req.client_ip, req.email)
        if not self._under_limit(key):
            return _failure(429, RATE_LIMITED, LoginState.START, "LOGIN_RATE_LIMIT")
        state = LoginState.RATE_CHECKED

        if not req.verification_code:
            if not self.ctx.captcha.verify(req.captcha_token, req.client_ip):
                self._record_failure(key)
                return _failure(403, CAPTCHA_FAILED, state, "LOGIN_CAPTCHA_FAIL")
            state = LoginState.CAPTCHA_CHECKED

        user = self.ctx.credentials.find_by_email(req.email)
        password_ok = verify_password_or_dummy(
            req.password, user.password_hash if user else None, self.ctx.bcrypt_rounds
        )
        if not password_ok or not self._can_sign_in(user):
            event = "LOGIN_FAIL"
            if user is not None and user.is_honeytoken:
                logger.warning("login attempt against honeytoken account %s from %s",
                               user.email, req.client_ip)
                event = "LOGIN_HONEYTOKEN"
            self._record_failure(key)
            self._delay()
            return _failure(401, INVALID_CREDENTIALS, state, event, user.id if user else None)
        state = LoginState.PASSWORD_VERIFIED

        fingerprint = derive_fingerprint(
            req.fingerprint, req.user_agent, req.accept_language, req.client_ip
        )

        if not req.verification_code:
            self.ctx.codes.issue(user.email, fingerprint)
            return LoginOutcome(
                200,
                {"success": True, "verification_required": True, "message": CODE_SENT},
                LoginState.CODE_ISSUED,
                "LOGIN_CODE_SENT",
                user.id,
            )

        if not self.ctx.codes.verify(user.email, fingerprint, req.verification_code):
            self._record_failure(key)
            return _failure(401, INVALID_CODE, state, "LOGIN_CODE_FAIL", user.id)
        state = LoginState.CODE_VERIFIED

        self.ctx.rate_limiter.reset(key)
        self.ctx.credentials.update_fingerprint(user, fingerprint)
        token, max_age = self.ctx.sessions.create(user.email, req.remember_me)

        return LoginOutcome(
            200,
            {"success": True, "message": LOGIN_OK},
            LoginState.SESSION_ESTABLISHED,
            "LOGIN_SUCCESS",
            user.id,
            session_token=token,
            max_age=max_age,
        )

    @staticmethod
    def _can_sign_in(user) -> bool:
        return user.verified and not user.suspended and not user.is_honeytoken

    def _under_limit(self, key: str) -> bool:
        try:
            return bool(self.ctx.rate_limiter.check(key))
        except Exception:
            # fail closed: an unreachable limiter must not switch off brute-force protection
            logger.exception("rate limiter check failed, denying login")
            return False

    def _record_failure(self, key: str) -> None:
        try:
            self.ctx.rate_limiter.record_failure(key)
        except Exception:
            logger.exception("could not record failed login attempt")

    def _delay(self) -> None:
        low, high = self.ctx.failure_delay
        if high > 0:
            self.ctx.sleep(_sysrand.uniform(low, high))
