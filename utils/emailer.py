import smtplib
from email.message import EmailMessage


class EmailDeliveryError(Exception):
    pass


class SmtpMailer:
    def __init__(self, host, port=587, username=None, password=None, from_email=None,
                 use_tls=True, timeout=10):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_email = from_email or username
        self.use_tls = use_tls
        self.timeout = timeout

    @classmethod
    def from_config(cls, config) -> "SmtpMailer":
        return cls(
            host=config.get("SMTP_HOST"),
            port=config.get("SMTP_PORT", 587),
            username=config.get("SMTP_USERNAME"),
            password=config.get("SMTP_PASSWORD"),
            from_email=config.get("SMTP_FROM_EMAIL"),
            use_tls=config.get("SMTP_USE_TLS", True),
            timeout=config.get("OUTBOUND_TIMEOUT_SECONDS", 10),
        )

    def send(self, to_email: str, subject: str, body: str) -> None:
        if not self.host or not self.from_email:
            raise EmailDeliveryError("Email not configured")

        msg = EmailMessage()
        msg["From"] = self.from_email
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.set_content(body)

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise EmailDeliveryError(str(exc)) from exc

    def send_verification_code(self, to_email: str, code: str, ttl_seconds: int) -> None:
        body = (
            f"Your ClipShare verification code is {code}.\n\n"
            f"It expires in {ttl_seconds} seconds. If you did not try to sign in, "
            "you can ignore this email."
        )
        self.send(to_email, "Your ClipShare verification code", body)
