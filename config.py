import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


def _float_pair(value: str, default: tuple[float, float]) -> tuple[float, float]:
    try:
        low, high = (float(part) for part in value.split(","))
    except (AttributeError, ValueError):
        return default
    return (low, high) if low <= high else (high, low)


class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")
    SESSION_SECRET = os.getenv("SESSION_SECRET", "dev-only-session-secret")
    SESSION_KEY_SALT = os.getenv("SESSION_KEY_SALT", "clipshare-session")

    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "clipshare.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session cookie. The __Host- prefix requires Secure, Path=/ and no Domain.
    AUTH_COOKIE_NAME = "__Host-session_secure"
    SESSION_REMEMBER_DAYS = 90
    SESSION_DEFAULT_DAYS = 1
    GOOGLE_SESSION_DAYS = 7

    BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

    # Brute-force protection, keyed by client ip + email
    LOGIN_MAX_FAILED_ATTEMPTS = int(os.getenv("LOGIN_MAX_FAILED_ATTEMPTS", "5"))
    LOGIN_RATE_WINDOW_SECONDS = int(os.getenv("LOGIN_RATE_WINDOW_SECONDS", "900"))
    LOGIN_FAILURE_DELAY_RANGE = _float_pair(os.getenv("LOGIN_FAILURE_DELAY_RANGE"), (0.2, 0.6))

    # Email verification step
    VERIFICATION_CODE_TTL_SECONDS = 60

    # hCaptcha
    CAPTCHA_SECRET_KEY = os.getenv("CAPTCHA_SECRET_KEY")
    CAPTCHA_VERIFY_URL = os.getenv("CAPTCHA_VERIFY_URL", "https://hcaptcha.com/siteverify")

    # Applied to every outbound call (captcha, oauth, smtp)
    OUTBOUND_TIMEOUT_SECONDS = float(os.getenv("OUTBOUND_TIMEOUT_SECONDS", "10"))

    # Email (SMTP)
    SMTP_HOST = os.getenv("SMTP_HOST")
    SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USERNAME = os.getenv("SMTP_USERNAME")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
    SMTP_FROM_EMAIL = os.getenv("SMTP_FROM_EMAIL")
    SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"

    # Google sign-in
    SITE_URL = os.getenv("SITE_URL", "http://localhost:5002")
    GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
    GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET")
    GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
    GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

    # Media storage
    UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", os.path.join(BASE_DIR, "media"))
    PUBLIC_MEDIA_URL = os.getenv("PUBLIC_MEDIA_URL", "/media")
    MAX_VIDEO_BYTES = 50 * 1024 * 1024
    MAX_AVATAR_BYTES = 5 * 1024 * 1024
    MAX_CONTENT_LENGTH = MAX_VIDEO_BYTES + 10 * 1024 * 1024

    # Password policy (registration)
    PASSWORD_MIN_LEN = 10
    PASSWORD_MAX_LEN = 72  # bcrypt only reads the first 72 bytes
    PASSWORD_REQUIRE_DIGIT = True
    PASSWORD_REQUIRE_LETTER = True

    DEBUG = False


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SESSION_SECRET = "test-session-secret"
    BCRYPT_ROUNDS = 4
    LOGIN_FAILURE_DELAY_RANGE = (0.0, 0.0)
    CAPTCHA_SECRET_KEY = "test-captcha-secret"
    GOOGLE_CLIENT_ID = "test-client-id"
    GOOGLE_CLIENT_SECRET = "test-client-secret"
    SITE_URL = "https://clips.example.com"
