import logging

import requests

logger = logging.getLogger(__name__)


class HCaptchaVerifier:
    """Checks a client's hCaptcha response token against the siteverify endpoint."""

    def __init__(self, secret: str | None, verify_url: str = "https://hcaptcha.com/siteverify",
                 timeout: float = 10, http=None):
        self.secret = secret
        self.verify_url = verify_url
        self.timeout = timeout
        self.http = http or requests.Session()

    def verify(self, token: str | None, remote_ip: str | None = None) -> bool:
        if not token or not isinstance(token, str):
            return False
        if not self.secret:
            logger.warning("captcha secret not configured, rejecting token")
            return False

        form = {"secret": self.secret, "response": token}
        if remote_ip:
            form["remoteip"] = remote_ip

        try:
            resp = self.http.post(self.verify_url, data=form, timeout=self.timeout)
            data = resp.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("captcha verification failed: %s", exc)
            return False

        return isinstance(data, dict) and data.get("success") is True
