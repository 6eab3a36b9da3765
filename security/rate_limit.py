"""Failed-attempt counters for the login flow.

The orchestrator only sees the ``RateLimiter`` protocol; the database-backed
implementation keeps one fixed-window counter per key in ``login_attempts``.
"""
from datetime import datetime, timedelta
from typing import Callable, Protocol

from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.login_attempt import LoginAttempt


def rate_limit_key(client_ip: str, email: str) -> str:
    return f"{client_ip or 'unknown'}|{email}"


class RateLimiter(Protocol):
    def check(self, key: str) -> bool:
        """True while the key is under its failure threshold."""
        ...

    def record_failure(self, key: str) -> None:
        ...

    def reset(self, key: str) -> None:
        ...


class DatabaseRateLimiter:
    def __init__(self, max_attempts: int = 5, window_seconds: int = 900,
                 clock: Callable[[], datetime] = datetime.utcnow):
        self.max_attempts = max_attempts
        self.window = timedelta(seconds=window_seconds)
        self.clock = clock

    def _window_open(self, row: LoginAttempt, now: datetime) -> bool:
        return now < row.window_start + self.window

    def check(self, key: str) -> bool:
        try:
            row = LoginAttempt.query.filter_by(key=key).first()
        except SQLAlchemyError:
            db.session.rollback()
            raise
        if not row:
            return True
        if not self._window_open(row, self.clock()):
            return True
        return row.attempt_count < self.max_attempts

    def record_failure(self, key: str) -> None:
        now = self.clock()
        row = LoginAttempt.query.filter_by(key=key).first()
        if not row:
            row = LoginAttempt(key=key, attempt_count=0, window_start=now)
            db.session.add(row)
        elif not self._window_open(row, now):
            row.attempt_count = 0
            row.window_start = now

        row.attempt_count += 1
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise

    def reset(self, key: str) -> None:
        row = LoginAttempt.query.filter_by(key=key).first()
        if not row:
            return
        db.session.delete(row)
        db.session.commit()
