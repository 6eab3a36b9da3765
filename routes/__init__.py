from flask import Blueprint, jsonify

from .auth import auth_bp
from .likes import likes_bp
from .profile import profile_bp
from .uploads import uploads_bp
from .videos import videos_bp

health_bp = Blueprint("health", __name__)


@health_bp.get("/health")
def health():
    return jsonify(status="ok"), 200


__all__ = ["health_bp", "auth_bp", "likes_bp", "profile_bp", "uploads_bp", "videos_bp"]
