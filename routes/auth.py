import hmac
import re
import secrets

from flask import Blueprint, current_app, g, jsonify, redirect, request
from sqlalchemy import func

from models import db
from models.comment import Comment
from models.like import Like, TARGET_VIDEO
from models.user import User
from models.video import Video
from security.credentials import normalize_email
from security.google_oauth import GoogleAuthError
from security.login_flow import LoginOrchestrator, LoginRequest
from security.password import hash_password
from security.password_policy import validate_password
from security.session import DAY_SECONDS
from utils.audit import client_ip, log_event
from utils.auth_context import (
    clear_session_cookie,
    get_login_context,
    login_required,
    session_cookie_name,
    set_session_cookie,
)
from utils.payloads import user_profile

auth_bp = Blueprint("auth", __name__, url_prefix="/api")

OAUTH_STATE_COOKIE = "__Host-oauth_state"
_USERNAME = re.compile(r"^[A-Za-z0-9_.]{3,30}$")


def _is_valid_email(email: str) -> bool:
    return isinstance(email, str) and "@" in email and len(email) <= 255


@auth_bp.post("/register")
def register():
    data = request.get_json(silent=True) or {}
    email = normalize_email(data.get("email"))
    password = data.get("password") or ""
    username = (data.get("username") or "").strip() or None

    if not _is_valid_email(email):
        return jsonify(success=False, error="Invalid email"), 400
    if username is not None and not _USERNAME.match(username):
        return jsonify(success=False, error="Username must be 3-30 letters, digits, '.' or '_'"), 400
    valid, errors = validate_password(password)
    if not valid:
        return jsonify(success=False, error="Password does not meet policy", details=errors), 400

    if User.query.filter_by(email=email).first():
        log_event("REGISTER_FAIL_EMAIL_EXISTS", email=email)
        return jsonify(success=False, error="Email already registered"), 409
    if username and User.query.filter_by(username=username).first():
        return jsonify(success=False, error="Username already taken"), 409

    user = User(
        email=email,
        username=username,
        password_hash=hash_password(password, rounds=current_app.config.get("BCRYPT_ROUNDS", 12)),
    )
    db.session.add(user)
    db.session.commit()
    log_event("REGISTER_SUCCESS", user_id=user.id, email=email)

    return jsonify(success=True, message="Registered successfully. Your account is pending verification."), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}

    login_request = LoginRequest.from_payload(
        data,
        client_ip=client_ip(),
        user_agent=request.headers.get("User-Agent"),
        accept_language=request.headers.get("Accept-Language"),
    )

    try:
        outcome = LoginOrchestrator(get_login_context()).login(login_request)
        if outcome.event:
            log_event(
                outcome.event,
                user_id=outcome.user_id,
                email=login_request.email,
                metadata={"state": outcome.state.value, "status": outcome.status_code},
            )
    except Exception:
        db.session.rollback()
        current_app.logger.exception("login failed for %s", login_request.email)
        return jsonify(success=False, error="Internal server error"), 500

    resp = jsonify(outcome.payload)
    if outcome.session_token:
        set_session_cookie(resp, outcome.session_token, outcome.max_age)
    return resp, outcome.status_code


@auth_bp.post("/logout")
def logout():
    token = request.cookies.get(session_cookie_name())
    if not token:
        return jsonify(success=True, message="Already logged out"), 200

    get_login_context().sessions.revoke(token)
    user = getattr(g, "user", None)
    log_event("LOGOUT", user_id=user.id if user else None, email=user.email if user else None)

    resp = jsonify(success=True, message="Logged out successfully")
    clear_session_cookie(resp)
    return resp, 200


@auth_bp.get("/me")
@login_required
def me():
    user = g.user
    video_count = Video.query.filter_by(user_id=user.id).count()
    comment_count = Comment.query.filter_by(user_id=user.id).count()
    likes_received = (
        db.session.query(func.count(Like.id))
        .join(Video, Like.target_id == Video.id)
        .filter(Like.target_type == TARGET_VIDEO, Video.user_id == user.id)
        .scalar()
    )

    payload = user_profile(user)
    payload["stats"] = {
        "videos": video_count,
        "comments": comment_count,
        "likes": likes_received or 0,
    }
    return jsonify(payload), 200


@auth_bp.get("/auth/google")
def google_redirect():
    google = current_app.extensions["google_oauth"]
    if not google.configured:
        current_app.logger.error("Google sign-in requested but GOOGLE_CLIENT_ID/SECRET or SITE_URL missing")
        return jsonify(success=False, error="Failed to initiate Google login"), 500

    state = secrets.token_urlsafe(24)
    resp = redirect(google.authorization_url(state))
    # Lax: the cookie has to survive the top-level redirect back from Google
    resp.set_cookie(OAUTH_STATE_COOKIE, state, max_age=600, path="/",
                    secure=True, httponly=True, samesite="Lax")
    return resp


@auth_bp.get("/auth/google/callback")
def google_callback():
    code = request.args.get("code")
    state = request.args.get("state") or ""
    expected_state = request.cookies.get(OAUTH_STATE_COOKIE) or ""

    if not code:
        return jsonify(success=False, error="Missing code"), 400
    if not state or not expected_state or not hmac.compare_digest(state, expected_state):
        return jsonify(success=False, error="Invalid OAuth state"), 400

    try:
        profile = current_app.extensions["google_oauth"].fetch_profile(code)
    except GoogleAuthError as exc:
        current_app.logger.warning("Google sign-in failed: %s", exc)
        return jsonify(success=False, error="Google auth failed"), 401

    google_id = str(profile["id"])
    google_email = normalize_email(profile["email"])

    user = User.query.filter_by(google_id=google_id).first()
    if user is None:
        # link by email, but only onto an approved account
        user = User.query.filter_by(email=google_email).first()
        if user is None or not user.verified:
            return jsonify(success=False, error="Account not verified or not approved"), 403
        user.google_id = google_id
        user.google_email = google_email
        db.session.commit()

    if user.suspended or user.is_honeytoken or not user.verified:
        log_event("LOGIN_GOOGLE_DENIED", user_id=user.id, email=user.email)
        return jsonify(success=False, error="Account not verified or not approved"), 403

    max_age = current_app.config.get("GOOGLE_SESSION_DAYS", 7) * DAY_SECONDS
    token, max_age = get_login_context().sessions.create(user.email, max_age=max_age)
    log_event("LOGIN_GOOGLE", user_id=user.id, email=user.email)

    resp = redirect("/")
    set_session_cookie(resp, token, max_age)
    resp.delete_cookie(OAUTH_STATE_COOKIE, path="/", secure=True, httponly=True, samesite="Lax")
    return resp
