import requests
from authlib.integrations.requests_client import OAuth2Session, OAuthError

SCOPE = "openid email profile"


class GoogleAuthError(Exception):
    pass


class GoogleOAuthClient:
    def __init__(self, client_id, client_secret, redirect_uri,
                 auth_url="https://accounts.google.com/o/oauth2/v2/auth",
                 token_url="https://oauth2.googleapis.com/token",
                 userinfo_url="https://www.googleapis.com/oauth2/v2/userinfo",
                 timeout=10, session_factory=OAuth2Session):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.auth_url = auth_url
        self.token_url = token_url
        self.userinfo_url = userinfo_url
        self.timeout = timeout
        self.session_factory = session_factory

    @classmethod
    def from_config(cls, config) -> "GoogleOAuthClient":
        site_url = (config.get("SITE_URL") or "").rstrip("/")
        return cls(
            client_id=config.get("GOOGLE_CLIENT_ID"),
            client_secret=config.get("GOOGLE_CLIENT_SECRET"),
            redirect_uri=f"{site_url}/api/auth/google/callback" if site_url else None,
            auth_url=config.get("GOOGLE_AUTH_URL"),
            token_url=config.get("GOOGLE_TOKEN_URL"),
            userinfo_url=config.get("GOOGLE_USERINFO_URL"),
            timeout=config.get("OUTBOUND_TIMEOUT_SECONDS", 10),
        )

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self.redirect_uri)

    def _session(self):
        return self.session_factory(
            client_id=self.client_id,
            client_secret=self.client_secret,
            redirect_uri=self.redirect_uri,
            scope=SCOPE,
        )

    def authorization_url(self, state: str) -> str:
        url, _ = self._session().create_authorization_url(
            self.auth_url,
            state=state,
            prompt="select_account",
        )
        return url

    def fetch_profile(self, code: str) -> dict:
        """Exchange an authorization code and return ``{"id", "email", ...}``."""
        client = self._session()
        try:
            token = client.fetch_token(self.token_url, code=code, timeout=self.timeout)
            if not isinstance(token, dict) or not token.get("access_token"):
                raise GoogleAuthError("no access token in response")

            profile = client.get(self.userinfo_url, timeout=self.timeout).json()
        except (OAuthError, requests.RequestException, ValueError) as exc:
            raise GoogleAuthError(str(exc)) from exc

        if not isinstance(profile, dict) or not profile.get("id") or not profile.get("email"):
            raise GoogleAuthError("incomplete Google profile")
        if profile.get("verified_email") is False:
            raise GoogleAuthError("Google email not verified")
        return profile
