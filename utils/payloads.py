from flask import current_app

from models.user import User


def get_storage():
    return current_app.extensions["storage"]


def avatar_url(user: User) -> str | None:
    return get_storage().public_url("avatars", user.avatar_path)


def user_summary(user: User | None) -> dict:
    if user is None:
        return {"id": None, "username": "Anonymous", "avatar_url": None}
    return {
        "id": user.id,
        "username": user.display_name(),
        "avatar_url": avatar_url(user),
    }


def user_profile(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "username": user.username,
        "bio": user.bio or "",
        "avatar_url": avatar_url(user),
        "google_linked": user.google_id is not None,
        "created_at": user.created_at.isoformat(),
    }


def comment_payload(comment) -> dict:
    return {
        "id": comment.id,
        "text": comment.comment_text,
        "created_at": comment.created_at.isoformat(),
        "edited_at": comment.edited_at.isoformat() if comment.edited_at else None,
        "user": user_summary(comment.user),
    }
