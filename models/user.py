from datetime import datetime
from models.db import db


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    username = db.Column(db.String(50), unique=True, nullable=True)
    bio = db.Column(db.Text, nullable=True)
    avatar_path = db.Column(db.String(255), nullable=True)  # object name in the "avatars" bucket

    verified = db.Column(db.Boolean, default=False, nullable=False)
    suspended = db.Column(db.Boolean, default=False, nullable=False)
    # decoy account: a matching login is always treated as a failure
    is_honeytoken = db.Column(db.Boolean, default=False, nullable=False)
    last_fingerprint = db.Column(db.String(64), nullable=True)

    google_id = db.Column(db.String(64), unique=True, nullable=True)
    google_email = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def display_name(self) -> str:
        return self.username or self.email.split("@")[0]

