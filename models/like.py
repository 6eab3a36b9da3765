from datetime import datetime
from models.db import db

TARGET_VIDEO = "video"
TARGET_COMMENT = "comment"


class Like(db.Model):
    __tablename__ = "likes"

    id = db.Column(db.Integer, primary_key=True)
    user_email = db.Column(db.String(255), nullable=False, index=True)
    target_type = db.Column(db.String(16), nullable=False)  # video | comment
    target_id = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("user_email", "target_type", "target_id", name="uq_likes_user_target"),
        db.Index("ix_likes_target", "target_type", "target_id"),
    )
