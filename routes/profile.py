import re

from flask import Blueprint, current_app, g, jsonify, request

from models import db
from models.user import User
from utils.audit import log_event
from utils.auth_context import login_required
from utils.payloads import get_storage, user_profile
from utils.storage import FileTooLarge, owner_prefix, unique_object_name

profile_bp = Blueprint("profile", __name__, url_prefix="/api")

_USERNAME = re.compile(r"^[A-Za-z0-9_.]{3,30}$")
MAX_BIO_LEN = 500


def _fields():
    if request.mimetype == "application/json":
        data = request.get_json(silent=True) or {}
        return data.get("username"), data.get("bio")
    return request.form.get("username"), request.form.get("bio")


@profile_bp.post("/profile")
@login_required
def update_profile():
    user = g.user
    username, bio = _fields()
    changed = []

    if username is not None:
        if not isinstance(username, str) or not _USERNAME.match(username.strip()):
            return jsonify(success=False, error="Username must be 3-30 letters, digits, '.' or '_'"), 400
        username = username.strip()
        taken = (
            User.query
            .filter(User.username == username, User.id != user.id)
            .first()
        )
        if taken:
            return jsonify(success=False, error="Username already taken"), 409
        user.username = username
        changed.append("username")

    if bio is not None:
        if not isinstance(bio, str) or len(bio.strip()) > MAX_BIO_LEN:
            return jsonify(success=False, error=f"Bio must be at most {MAX_BIO_LEN} characters"), 400
        user.bio = bio.strip()
        changed.append("bio")

    avatar = request.files.get("avatar")
    if avatar and avatar.filename:
        if not (avatar.mimetype or "").startswith("image/"):
            return jsonify(success=False, error="Avatar must be an image"), 400

        storage = get_storage()
        name = unique_object_name(avatar.filename, prefix=owner_prefix(user))
        try:
            storage.save("avatars", name, avatar.stream,
                         max_bytes=current_app.config.get("MAX_AVATAR_BYTES"))
        except FileTooLarge:
            db.session.rollback()
            return jsonify(success=False, error="Avatar too large"), 413

        previous = user.avatar_path
        user.avatar_path = name
        if previous:
            storage.remove("avatars", previous)
        changed.append("avatar")

    db.session.commit()
    log_event("PROFILE_UPDATE", user_id=user.id, metadata={"fields": changed})
    return jsonify(
        success=True,
        message="Profile updated successfully",
        user=user_profile(user),
    ), 200
