import json

from flask import Blueprint, g, jsonify, request
from sqlalchemy import func, or_

from models import db
from models.comment import Comment
from models.like import Like, TARGET_VIDEO
from models.notification import Notification
from models.user import User
from models.video import Video
from utils.audit import log_event
from utils.auth_context import login_required
from utils.payloads import comment_payload, get_storage, user_summary

videos_bp = Blueprint("videos", __name__, url_prefix="/api")

DEFAULT_LIMIT = 12
MAX_LIMIT = 50
MAX_COMMENTS = 50
MAX_COMMENT_LEN = 2000


def _int_arg(name: str, default: int, low: int, high: int | None = None) -> int:
    try:
        value = int(request.args.get(name, default))
    except (TypeError, ValueError):
        value = default
    value = max(low, value)
    return min(value, high) if high is not None else value


def _contains_pattern(term: str) -> str:
    # LIKE wildcards in user input match literally
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _parse_ids(raw: str) -> list[int]:
    ids = []
    for part in (raw or "").split(","):
        part = part.strip()
        if part.isdigit():
            ids.append(int(part))
    return ids


def _like_counts(video_ids) -> dict[int, int]:
    if not video_ids:
        return {}
    rows = (
        db.session.query(Like.target_id, func.count(Like.id))
        .filter(Like.target_type == TARGET_VIDEO, Like.target_id.in_(video_ids))
        .group_by(Like.target_id)
        .all()
    )
    return dict(rows)


def _comment_counts(video_ids) -> dict[int, int]:
    if not video_ids:
        return {}
    rows = (
        db.session.query(Comment.video_id, func.count(Comment.id))
        .filter(Comment.video_id.in_(video_ids))
        .group_by(Comment.video_id)
        .all()
    )
    return dict(rows)


def _liked_by_viewer(video_ids) -> set[int]:
    user = getattr(g, "user", None)
    if user is None or not video_ids:
        return set()
    rows = (
        db.session.query(Like.target_id)
        .filter(
            Like.target_type == TARGET_VIDEO,
            Like.target_id.in_(video_ids),
            Like.user_email == user.email,
        )
        .all()
    )
    return {r[0] for r in rows}


def _video_payload(video: Video, likes: int, has_liked: bool) -> dict:
    storage = get_storage()
    comments = (
        Comment.query
        .filter_by(video_id=video.id)
        .order_by(Comment.created_at.asc(), Comment.id.asc())
        .limit(MAX_COMMENTS)
        .all()
    )
    return {
        "id": video.id,
        "title": video.title or "Untitled Video",
        "description": video.description or "",
        "likes": likes,
        "hasLiked": has_liked,
        "views": video.views or 0,
        "video_url": storage.public_url("videos", video.video_path),
        "cover_url": storage.public_url("covers", video.cover_path),
        "created_at": video.created_at.isoformat(),
        "uploaded_at": video.created_at.isoformat(),
        "user": user_summary(video.user),
        "comments": [comment_payload(c) for c in comments],
        "mime_type": video.mime_type,
        "size": video.size,
        "original_filename": video.original_filename,
    }


def _payloads(videos) -> list[dict]:
    ids = [v.id for v in videos]
    likes = _like_counts(ids)
    liked = _liked_by_viewer(ids)
    return [_video_payload(v, likes.get(v.id, 0), v.id in liked) for v in videos]


def _stats(ids: list[int]):
    videos = Video.query.filter(Video.id.in_(ids)).all() if ids else []
    found = [v.id for v in videos]
    likes = _like_counts(found)
    comments = _comment_counts(found)
    liked = _liked_by_viewer(found)
    return jsonify([
        {
            "id": v.id,
            "views": v.views or 0,
            "likes": likes.get(v.id, 0),
            "hasLiked": v.id in liked,
            "commentCount": comments.get(v.id, 0),
        }
        for v in videos
    ]), 200


def _single(video_id: int, increment_views: bool):
    if increment_views:
        updated = (
            Video.query
            .filter_by(id=video_id)
            .update({Video.views: Video.views + 1}, synchronize_session=False)
        )
        db.session.commit()
        if not updated:
            return jsonify(success=False, error="Video not found"), 404

    video = db.session.get(Video, video_id)
    if not video:
        return jsonify(success=False, error="Video not found"), 404
    return jsonify(_payloads([video])[0]), 200


@videos_bp.get("/videos")
def list_videos():
    if request.args.get("statsOnly") == "true":
        return _stats(_parse_ids(request.args.get("ids")))

    single_id = request.args.get("videoId")
    if single_id:
        if not single_id.isdigit():
            return jsonify(success=False, error="Video not found"), 404
        return _single(int(single_id), request.args.get("incrementViews") == "true")

    sort = (request.args.get("sort") or "newest").strip().lower()
    limit = _int_arg("limit", DEFAULT_LIMIT, 1, MAX_LIMIT)
    offset = _int_arg("offset", 0, 0)
    search = (request.args.get("search") or "").strip()

    q = Video.query.join(User, Video.user_id == User.id)
    if search:
        like = _contains_pattern(search)
        q = q.filter(or_(
            Video.title.ilike(like, escape="\\"),
            Video.description.ilike(like, escape="\\"),
            User.username.ilike(like, escape="\\"),
        ))

    if sort == "popular":
        q = q.order_by(Video.views.desc(), Video.created_at.desc())
    elif sort == "oldest":
        q = q.order_by(Video.created_at.asc(), Video.id.asc())
    else:
        q = q.order_by(Video.created_at.desc(), Video.id.desc())

    videos = q.offset(offset).limit(limit).all()
    return jsonify(_payloads(videos)), 200


@videos_bp.post("/videos/<int:video_id>/comments")
@login_required
def post_comment(video_id: int):
    data = request.get_json(silent=True) or {}
    text = data.get("text")
    text = text.strip() if isinstance(text, str) else ""

    if not text:
        return jsonify(success=False, error="Comment text required"), 400
    if len(text) > MAX_COMMENT_LEN:
        return jsonify(success=False, error=f"Comment must be at most {MAX_COMMENT_LEN} characters"), 400

    video = db.session.get(Video, video_id)
    if not video:
        return jsonify(success=False, error="Video not found"), 404

    comment = Comment(user_id=g.user.id, video_id=video.id, comment_text=text)
    db.session.add(comment)

    if video.user_id != g.user.id:
        db.session.add(Notification(
            user_id=video.user_id,
            type="video_comment",
            payload_json=json.dumps({
                "from_user_id": g.user.id,
                "from_username": g.user.display_name(),
                "video_id": video.id,
                "video_title": video.title,
            }),
        ))
    db.session.commit()

    log_event("COMMENT_CREATE", user_id=g.user.id, entity="comment", entity_id=comment.id)
    return jsonify(comment_payload(comment)), 201
