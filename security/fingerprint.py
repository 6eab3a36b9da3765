import hashlib
import secrets


def derive_fingerprint(client_fingerprint: str | None, user_agent: str | None = None,
                       accept_language: str | None = None, forwarded_ip: str | None = None) -> str:
    """Return a 64-char hex device fingerprint.

    A client-supplied fingerprint is stable, so the code issued on the first login
    request can be matched on the second. Without one, the request headers are
    mixed with fresh random bytes: the result is never reproducible and only
    guarantees that some fingerprint is present.
    """
    if isinstance(client_fingerprint, str) and client_fingerprint.strip():
        material = client_fingerprint.strip()
    else:
        material = "|".join([
            user_agent or "",
            accept_language or "",
            forwarded_ip or "",
            secrets.token_hex(16),
        ])
    return hashlib.sha256(material.encode("utf-8")).hexdigest()
