from datetime import datetime
from models.db import db


class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)
    action = db.Column(db.String(80), nullable=False, index=True)  # e.g. LOGIN_FAIL, VIDEO_UPLOAD

    # who: either may be empty for anonymous or unknown-account events
    user_id = db.Column(db.Integer, nullable=True)
    email = db.Column(db.String(255), nullable=True)

    entity = db.Column(db.String(40), nullable=True)   # e.g. video, comment
    entity_id = db.Column(db.String(80), nullable=True)

    ip = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    metadata_json = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
