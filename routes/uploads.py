from flask import Blueprint, abort, current_app, g, jsonify, request, send_from_directory
from sqlalchemy import or_

from models import db
from models.video import Video
from utils.audit import log_event
from utils.auth_context import login_required
from utils.payloads import get_storage, user_summary
from utils.storage import BUCKETS, FileTooLarge, owner_prefix, unique_object_name

uploads_bp = Blueprint("uploads", __name__)

MAX_TITLE_LEN = 200


def _created(video: Video):
    storage = get_storage()
    log_event("VIDEO_UPLOAD", user_id=g.user.id, entity="video", entity_id=video.id)
    return jsonify(
        success=True,
        message="Upload successful!",
        video={
            "id": video.id,
            "title": video.title,
            "video_url": storage.public_url("videos", video.video_path),
            "cover_url": storage.public_url("covers", video.cover_path),
            "user": user_summary(g.user),
        },
    ), 201


@uploads_bp.post("/api/videos/upload")
@login_required
def upload_video():
    video_file = request.files.get("video")
    cover_file = request.files.get("cover")
    title = (request.form.get("title") or "").strip()
    description = (request.form.get("description") or "").strip() or None

    if not video_file or not video_file.filename:
        return jsonify(success=False, error="No video uploaded."), 400
    if not cover_file or not cover_file.filename:
        return jsonify(success=False, error="Cover art is required."), 400
    if not title:
        return jsonify(success=False, error="Video title is required."), 400
    if len(title) > MAX_TITLE_LEN:
        return jsonify(success=False, error=f"Title must be at most {MAX_TITLE_LEN} characters"), 400
    if not (video_file.mimetype or "").startswith("video/"):
        return jsonify(success=False, error="Unsupported video type"), 400
    if not (cover_file.mimetype or "").startswith("image/"):
        return jsonify(success=False, error="Cover must be an image"), 400

    storage = get_storage()
    max_bytes = current_app.config.get("MAX_VIDEO_BYTES")
    video_name = unique_object_name(video_file.filename, prefix=owner_prefix(g.user))
    cover_name = unique_object_name(cover_file.filename, prefix=owner_prefix(g.user))

    try:
        size = storage.save("videos", video_name, video_file.stream, max_bytes=max_bytes)
    except FileTooLarge:
        return jsonify(success=False, error="File too large"), 413
    try:
        storage.save("covers", cover_name, cover_file.stream, max_bytes=max_bytes)
    except FileTooLarge:
        storage.remove("videos", video_name)
        return jsonify(success=False, error="File too large"), 413

    video = Video(
        user_id=g.user.id,
        title=title,
        description=description,
        video_path=video_name,
        cover_path=cover_name,
        original_filename=video_file.filename,
        mime_type=video_file.mimetype,
        size=size,
    )
    db.session.add(video)
    db.session.commit()
    return _created(video)


@uploads_bp.post("/api/videos")
@login_required
def register_uploaded_video():
    """Record a video whose files the client already put into storage.

    Object names must carry the caller's owner prefix and must not belong to
    another video row.
    """
    data = request.get_json(silent=True) or {}
    title = (data.get("title") or "").strip()
    video_path = data.get("video_path")
    cover_path = data.get("cover_path")

    if not title or not isinstance(video_path, str) or not isinstance(cover_path, str) \
            or not video_path or not cover_path:
        return jsonify(success=False, error="title, video_path and cover_path are required"), 400
    if len(title) > MAX_TITLE_LEN:
        return jsonify(success=False, error=f"Title must be at most {MAX_TITLE_LEN} characters"), 400

    prefix = owner_prefix(g.user)
    if not video_path.startswith(prefix) or not cover_path.startswith(prefix):
        return jsonify(success=False, error="Uploaded file does not belong to you"), 403

    storage = get_storage()
    if not storage.exists("videos", video_path) or not storage.exists("covers", cover_path):
        return jsonify(success=False, error="Uploaded file not found"), 400

    claimed = Video.query.filter(
        or_(Video.video_path == video_path, Video.cover_path == cover_path)
    ).first()
    if claimed:
        return jsonify(success=False, error="Uploaded file is already registered"), 409

    size = data.get("size")
    video = Video(
        user_id=g.user.id,
        title=title,
        description=(data.get("description") or "").strip() or None,
        video_path=video_path,
        cover_path=cover_path,
        original_filename=data.get("original_filename"),
        mime_type=data.get("mime_type") or "video/mp4",
        size=size if isinstance(size, int) and size >= 0 else None,
    )
    db.session.add(video)
    db.session.commit()
    return _created(video)


@uploads_bp.get("/media/<bucket>/<path:name>")
def media(bucket: str, name: str):
    if bucket not in BUCKETS:
        abort(404)
    return send_from_directory(get_storage().bucket_dir(bucket), name)
