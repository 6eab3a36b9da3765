from functools import lru_cache

import bcrypt

DEFAULT_ROUNDS = 12


def hash_password(plain_password: str, rounds: int = DEFAULT_ROUNDS) -> str:
    if not isinstance(plain_password, str) or len(plain_password) == 0:
        raise ValueError("Password must be a non-empty string")

    # bcrypt expects bytes
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(plain_password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    if not plain_password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            password_hash.encode("utf-8")
        )
    except ValueError:
        # malformed stored hash
        return False


@lru_cache(maxsize=None)
def dummy_hash(rounds: int = DEFAULT_ROUNDS) -> str:
    """Fixed hash used when the account does not exist.

    Generated once per cost factor so the comparison takes as long as a real one.
    """
    return hash_password("clipshare-dummy-password", rounds=rounds)


def verify_password_or_dummy(plain_password: str, password_hash: str | None,
                             rounds: int = DEFAULT_ROUNDS) -> bool:
    """Check a password, always paying the bcrypt cost.

    Without a stored hash the password is compared against ``dummy_hash`` and the
    result is discarded, so an unknown email answers as slowly as a wrong password.
    """
    if not password_hash:
        verify_password(plain_password or "x", dummy_hash(rounds))
        return False
    return verify_password(plain_password, password_hash)
