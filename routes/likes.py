import json

from flask import Blueprint, g, jsonify, request
from sqlalchemy.exc import IntegrityError

from models import db
from models.comment import Comment
from models.like import Like, TARGET_COMMENT, TARGET_VIDEO
from models.notification import Notification
from models.video import Video
from utils.audit import log_event
from utils.auth_context import login_required

likes_bp = Blueprint("likes", __name__, url_prefix="/api")

_TARGETS = {
    TARGET_VIDEO: Video,
    TARGET_COMMENT: Comment,
}


def _like_count(target_type: str, target_id: int) -> int:
    return Like.query.filter_by(target_type=target_type, target_id=target_id).count()


def _notify_owner(target_type: str, target) -> None:
    owner_id = target.user_id
    if owner_id == g.user.id:
        return
    payload = {
        "from_user_id": g.user.id,
        "from_username": g.user.display_name(),
        f"{target_type}_id": target.id,
    }
    if target_type == TARGET_VIDEO:
        payload["video_title"] = target.title
    else:
        payload["video_id"] = target.video_id
    db.session.add(Notification(
        user_id=owner_id,
        type=f"{target_type}_like",
        payload_json=json.dumps(payload),
    ))


@likes_bp.post("/like")
@login_required
def like():
    data = request.get_json(silent=True) or {}
    target_type = data.get("target_type") or TARGET_VIDEO
    target_id = data.get("target_id", data.get("videoId"))
    action = data.get("action")

    if not target_id or not action:
        return jsonify(success=False, error="Missing target_id or action"), 400
    if target_type not in _TARGETS:
        return jsonify(success=False, error="Invalid target_type. Use \"video\" or \"comment\""), 400
    if action not in ("like", "unlike"):
        return jsonify(success=False, error="Invalid action. Use \"like\" or \"unlike\""), 400
    try:
        target_id = int(target_id)
    except (TypeError, ValueError):
        return jsonify(success=False, error="Invalid target_id"), 400

    target = db.session.get(_TARGETS[target_type], target_id)
    if not target:
        return jsonify(success=False, error=f"{target_type.capitalize()} not found"), 404

    existing = Like.query.filter_by(
        user_email=g.user.email, target_type=target_type, target_id=target_id
    ).first()

    if action == "like":
        if existing:
            return jsonify(
                success=False,
                error=f"Already liked this {target_type}",
                likes=_like_count(target_type, target_id),
                liked=True,
            ), 400
        db.session.add(Like(user_email=g.user.email, target_type=target_type, target_id=target_id))
        _notify_owner(target_type, target)
        try:
            db.session.commit()
        except IntegrityError:
            # concurrent double-click
            db.session.rollback()
            return jsonify(
                success=False,
                error=f"Already liked this {target_type}",
                likes=_like_count(target_type, target_id),
                liked=True,
            ), 400
    else:
        if not existing:
            return jsonify(
                success=False,
                error=f"You have not liked this {target_type}",
                likes=_like_count(target_type, target_id),
                liked=False,
            ), 400
        db.session.delete(existing)
        db.session.commit()

    log_event(
        "LIKE" if action == "like" else "UNLIKE",
        user_id=g.user.id,
        entity=target_type,
        entity_id=target_id,
    )
    return jsonify(
        success=True,
        message=f"{target_type.capitalize()} {action}d successfully",
        likes=_like_count(target_type, target_id),
        liked=action == "like",
        target_type=target_type,
        target_id=target_id,
    ), 200
