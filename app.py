from datetime import datetime

import click
from flask import Flask, jsonify
from flask_migrate import Migrate

from config import Config
from models import db
from models.user import User
from routes import auth_bp, health_bp, likes_bp, profile_bp, uploads_bp, videos_bp
from security.captcha import HCaptchaVerifier
from security.credentials import CredentialStore, normalize_email
from security.google_oauth import GoogleOAuthClient
from security.login_flow import LoginContext
from security.password import hash_password
from security.rate_limit import DatabaseRateLimiter
from security.session import SessionManager, SessionTokenCodec
from security.verification import VerificationCodeService
from utils.auth_context import load_current_user
from utils.emailer import SmtpMailer
from utils.storage import LocalObjectStorage


def build_login_context(config, captcha=None, mailer=None, clock=None, sleep=None) -> LoginContext:
    clock = clock or datetime.utcnow
    codec = SessionTokenCodec(config["SESSION_SECRET"], config.get("SESSION_KEY_SALT", "clipshare-session"))

    ctx = LoginContext(
        credentials=CredentialStore(),
        rate_limiter=DatabaseRateLimiter(
            max_attempts=config.get("LOGIN_MAX_FAILED_ATTEMPTS", 5),
            window_seconds=config.get("LOGIN_RATE_WINDOW_SECONDS", 900),
            clock=clock,
        ),
        captcha=captcha or HCaptchaVerifier(
            config.get("CAPTCHA_SECRET_KEY"),
            verify_url=config.get("CAPTCHA_VERIFY_URL", "https://hcaptcha.com/siteverify"),
            timeout=config.get("OUTBOUND_TIMEOUT_SECONDS", 10),
        ),
        codes=VerificationCodeService(
            mailer or SmtpMailer.from_config(config),
            ttl_seconds=config.get("VERIFICATION_CODE_TTL_SECONDS", 60),
            clock=clock,
        ),
        sessions=SessionManager(
            codec,
            remember_days=config.get("SESSION_REMEMBER_DAYS", 90),
            default_days=config.get("SESSION_DEFAULT_DAYS", 1),
            clock=clock,
        ),
        bcrypt_rounds=config.get("BCRYPT_ROUNDS", 12),
        failure_delay=tuple(config.get("LOGIN_FAILURE_DELAY_RANGE", (0.2, 0.6))),
    )
    if sleep is not None:
        ctx.sleep = sleep
    return ctx


def create_app(config_object=Config, login_context=None, **overrides):
    """Application factory.

    ``overrides`` (captcha, mailer, clock, sleep) are passed to
    ``build_login_context``; ``login_context`` replaces it entirely.
    """
    app = Flask(__name__)
    app.config.from_object(config_object)

    db.init_app(app)
    Migrate(app, db)

    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(videos_bp)
    app.register_blueprint(likes_bp)
    app.register_blueprint(profile_bp)
    app.register_blueprint(uploads_bp)

    app.extensions["login_context"] = login_context or build_login_context(app.config, **overrides)
    app.extensions["google_oauth"] = GoogleOAuthClient.from_config(app.config)
    app.extensions["storage"] = LocalObjectStorage(
        app.config["UPLOAD_FOLDER"], app.config.get("PUBLIC_MEDIA_URL", "/media")
    )

    @app.before_request
    def _load_user():
        load_current_user()

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Cache-Control"] = "no-store"
        return resp

    @app.errorhandler(404)
    def _not_found(_err):
        return jsonify(success=False, error="Not found"), 404

    @app.errorhandler(405)
    def _method_not_allowed(_err):
        return jsonify(success=False, error="Method not allowed"), 405

    @app.errorhandler(413)
    def _too_large(_err):
        return jsonify(success=False, error="File too large"), 413

    @app.errorhandler(500)
    def _internal_error(_err):
        db.session.rollback()
        return jsonify(success=False, error="Internal server error"), 500

    register_cli(app)

    return app

#-------------------------

ACCOUNT_FLAGS = {
    "verified": "verified",
    "suspended": "suspended",
    "honeytoken": "is_honeytoken",
}


def register_cli(app):
    @app.cli.command("create-user")
    @click.argument("email")
    @click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
    @click.option("--username", default=None)
    @click.option("--verified/--unverified", default=False)
    def create_user(email, password, username, verified):
        """Create an account (operators use this for seed and decoy accounts)."""
        email = normalize_email(email)
        if User.query.filter_by(email=email).first():
            raise click.ClickException(f"{email} already exists")

        user = User(
            email=email,
            username=username,
            password_hash=hash_password(password, rounds=app.config.get("BCRYPT_ROUNDS", 12)),
            verified=verified,
        )
        db.session.add(user)
        db.session.commit()
        click.echo(f"created {email} (verified={verified})")

    @app.cli.command("set-account-flag")
    @click.argument("email")
    @click.argument("flag", type=click.Choice(sorted(ACCOUNT_FLAGS)))
    @click.argument("value", type=click.Choice(["on", "off"]))
    def set_account_flag(email, flag, value):
        """Turn verified/suspended/honeytoken on or off for an account."""
        user = User.query.filter_by(email=normalize_email(email)).first()
        if not user:
            raise click.ClickException("User not found")

        setattr(user, ACCOUNT_FLAGS[flag], value == "on")
        if flag == "suspended" and value == "on":
            app.extensions["login_context"].sessions.revoke_all(user.email)
        db.session.commit()
        click.echo(f"{user.email}: {flag}={value}")

    @app.cli.command("purge-expired")
    def purge_expired():
        """Delete expired sessions and verification codes."""
        ctx = app.extensions["login_context"]
        sessions = ctx.sessions.purge_expired()
        codes = ctx.codes.purge_expired()
        click.echo(f"removed {sessions} sessions, {codes} verification codes")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
