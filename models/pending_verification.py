from datetime import datetime
from models.db import db


class PendingVerification(db.Model):
    __tablename__ = "pending_verifications"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False)
    device_fingerprint = db.Column(db.String(64), nullable=False)
    code = db.Column(db.String(6), nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("email", "device_fingerprint", name="uq_pending_verifications_email_fp"),
    )
