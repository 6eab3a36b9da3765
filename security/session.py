import logging
import uuid
import secrets
from datetime import datetime, timedelta
from typing import Callable

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from models import db
from models.session import Session

logger = logging.getLogger(__name__)

IV_BYTES = 16
TAG_BYTES = 16
DAY_SECONDS = 24 * 60 * 60


class InvalidSessionToken(Exception):
    pass


class SessionTokenCodec:
    """Opaque session tokens: a random uuid sealed with AES-256-GCM.

    Tokens are ``hex(iv):hex(tag):hex(ciphertext)``, so decryption needs nothing
    but the server secret. The key is stretched from the secret with scrypt once
    per codec instance.
    """

    def __init__(self, secret: str, salt: str = "clipshare-session"):
        if not secret:
            raise ValueError("SESSION_SECRET must be set")
        kdf = Scrypt(salt=salt.encode("utf-8"), length=32, n=2 ** 14, r=8, p=1)
        self._aead = AESGCM(kdf.derive(secret.encode("utf-8")))

    def generate(self) -> str:
        iv = secrets.token_bytes(IV_BYTES)
        sealed = self._aead.encrypt(iv, str(uuid.uuid4()).encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_BYTES], sealed[-TAG_BYTES:]
        return f"{iv.hex()}:{tag.hex()}:{ciphertext.hex()}"

    def decrypt(self, token: str) -> str:
        try:
            iv_hex, tag_hex, ct_hex = token.split(":")
            iv, tag, ciphertext = bytes.fromhex(iv_hex), bytes.fromhex(tag_hex), bytes.fromhex(ct_hex)
        except (AttributeError, ValueError) as exc:
            raise InvalidSessionToken("malformed session token") from exc

        if len(iv) != IV_BYTES or len(tag) != TAG_BYTES or not ciphertext:
            raise InvalidSessionToken("malformed session token")

        try:
            return self._aead.decrypt(iv, ciphertext + tag, None).decode("utf-8")
        except (InvalidTag, UnicodeDecodeError) as exc:
            raise InvalidSessionToken("session token failed authentication") from exc

    def is_authentic(self, token: str) -> bool:
        try:
            self.decrypt(token)
        except InvalidSessionToken:
            return False
        return True


class SessionManager:
    def __init__(self, codec: SessionTokenCodec, remember_days: int = 90, default_days: int = 1,
                 clock: Callable[[], datetime] = datetime.utcnow):
        self.codec = codec
        self.remember_days = remember_days
        self.default_days = default_days
        self.clock = clock

    def lifetime_seconds(self, remember_me: bool) -> int:
        days = self.remember_days if remember_me else self.default_days
        return days * DAY_SECONDS

    def create(self, email: str, remember_me: bool = False, max_age: int | None = None) -> tuple[str, int]:
        """Insert a verified session row and return ``(token, max_age_seconds)``."""
        if max_age is None:
            max_age = self.lifetime_seconds(remember_me)

        token = self.codec.generate()
        row = Session(
            user_email=email,
            session_token=token,
            verified=True,
            created_at=self.clock(),
            expires_at=self.clock() + timedelta(seconds=max_age),
        )
        db.session.add(row)
        db.session.commit()
        return token, max_age

    def validate(self, token: str | None) -> Session | None:
        if not token or not self.codec.is_authentic(token):
            return None

        sess = Session.query.filter_by(session_token=token).first()
        if not sess:
            return None

        if sess.expires_at <= self.clock():
            # lazy cleanup
            email = sess.user_email
            db.session.delete(sess)
            db.session.commit()
            logger.info("removed expired session for %s", email)
            return None

        if not sess.verified:
            return None
        return sess

    def revoke(self, token: str | None) -> bool:
        if not token:
            return False
        deleted = Session.query.filter_by(session_token=token).delete(synchronize_session=False)
        db.session.commit()
        return deleted > 0

    def revoke_all(self, email: str) -> int:
        deleted = Session.query.filter_by(user_email=email).delete(synchronize_session=False)
        db.session.commit()
        return deleted

    def purge_expired(self) -> int:
        deleted = (
            Session.query
            .filter(Session.expires_at <= self.clock())
            .delete(synchronize_session=False)
        )
        db.session.commit()
        return deleted
