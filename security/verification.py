import hmac
import secrets
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.dialects import postgresql, sqlite

from models import db
from models.pending_verification import PendingVerification

_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def generate_code() -> str:
    return f"{secrets.randbelow(1_000_000):06d}"


class VerificationCodeService:
    """One-time login codes keyed by (email, device fingerprint)."""

    def __init__(self, mailer, ttl_seconds: int = 60,
                 clock: Callable[[], datetime] = datetime.utcnow):
        self.mailer = mailer
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    def _upsert(self, email: str, fingerprint: str, code: str, expires_at: datetime) -> None:
        values = {
            "email": email,
            "device_fingerprint": fingerprint,
            "code": code,
            "created_at": self.clock(),
            "expires_at": expires_at,
        }
        insert = _UPSERT_INSERTS.get(db.engine.dialect.name)
        if insert is not None:
            stmt = insert(PendingVerification).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=["email", "device_fingerprint"],
                set_={k: stmt.excluded[k] for k in ("code", "created_at", "expires_at")},
            )
            db.session.execute(stmt)
        else:
            row = PendingVerification.query.filter_by(
                email=email, device_fingerprint=fingerprint
            ).first()
            if row is None:
                db.session.add(PendingVerification(**values))
            else:
                row.code = code
                row.created_at = values["created_at"]
                row.expires_at = expires_at
        db.session.commit()

    def issue(self, email: str, fingerprint: str) -> str:
        """Store a fresh code for the pair, replacing any pending one, and email it."""
        code = generate_code()
        expires_at = self.clock() + timedelta(seconds=self.ttl_seconds)
        self._upsert(email, fingerprint, code, expires_at)
        self.mailer.send_verification_code(email, code, self.ttl_seconds)
        return code

    def verify(self, email: str, fingerprint: str, submitted_code: str | None) -> bool:
        if not submitted_code or not isinstance(submitted_code, str):
            return False

        row = PendingVerification.query.filter_by(
            email=email, device_fingerprint=fingerprint
        ).first()
        if row is None:
            return False
        if not hmac.compare_digest(row.code.encode("utf-8"), submitted_code.encode("utf-8")):
            return False
        if self.clock() >= row.expires_at:
            return False

        # one-time use
        db.session.delete(row)
        db.session.commit()
        return True

    def purge_expired(self) -> int:
        count = (
            PendingVerification.query
            .filter(PendingVerification.expires_at <= self.clock())
            .delete(synchronize_session=False)
        )
        db.session.commit()
        return count
