from datetime import datetime
from models.db import db


class LoginAttempt(db.Model):
    __tablename__ = "login_attempts"

    id = db.Column(db.Integer, primary_key=True)

    # client ip + email, so both targeted and broad attacks are counted
    key = db.Column(db.String(320), unique=True, nullable=False, index=True)
    attempt_count = db.Column(db.Integer, default=0, nullable=False)
    window_start = db.Column(db.DateTime, nullable=False)

    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
