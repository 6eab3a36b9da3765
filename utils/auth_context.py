from functools import wraps
from flask import current_app, g, jsonify, request

from models.user import User


def get_login_context():
    return current_app.extensions["login_context"]


def session_cookie_name() -> str:
    return current_app.config.get("AUTH_COOKIE_NAME", "__Host-session_secure")


def set_session_cookie(resp, token: str, max_age: int):
    resp.set_cookie(
        session_cookie_name(),
        token,
        max_age=max_age,
        path="/",
        secure=True,
        httponly=True,
        samesite="Strict",
    )
    return resp


def clear_session_cookie(resp):
    resp.set_cookie(
        session_cookie_name(),
        "",
        max_age=0,
        expires=0,
        path="/",
        secure=True,
        httponly=True,
        samesite="Strict",
    )
    return resp


def load_current_user():
    g.user = None
    g.session = None

    token = request.cookies.get(session_cookie_name())
    if not token:
        return

    sess = get_login_context().sessions.validate(token)
    if not sess:
        return

    user = User.query.filter_by(email=sess.user_email).first()
    if user is None or user.suspended:
        return
    g.session = sess
    g.user = user


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "user", None) is None:
            return jsonify(success=False, error="Not authenticated"), 401
        return fn(*args, **kwargs)
    return wrapper
