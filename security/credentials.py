from models import db
from models.user import User


def normalize_email(value) -> str:
    return (value or "").strip().lower() if isinstance(value, str) else ""


class CredentialStore:
    def find_by_email(self, email: str) -> User | None:
        return User.query.filter_by(email=normalize_email(email)).first()

    def update_fingerprint(self, user: User, fingerprint: str) -> None:
        user.last_fingerprint = fingerprint
        db.session.commit()
