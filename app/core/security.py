"""Password hashing (bcrypt) and signed bearer tokens (itsdangerous)."""

import hashlib
import hmac
from typing import Any

import bcrypt
from itsdangerous import BadData, URLSafeTimedSerializer

# bcrypt only looks at the first 72 bytes and bcrypt>=5 refuses longer input
BCRYPT_MAX_PASSWORD_BYTES = 72


def get_token_serializer(secret_key: str) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(
        secret_key,
        salt="cagnotte-bearer",
        signer_kwargs={"key_derivation": "hmac", "digest_method": hashlib.sha256},
    )


def create_token(secret_key: str, payload: dict[str, Any]) -> str:
    """Sign payload; the issue timestamp is embedded and checked on load."""
    return get_token_serializer(secret_key).dumps(payload)


def load_token(secret_key: str, token: str, max_age_seconds: int) -> dict[str, Any] | None:
    """Return the payload, or None when the token is malformed, forged or expired."""
    try:
        payload = get_token_serializer(secret_key).loads(token, max_age=max_age_seconds)
    except BadData:
        return None
    return payload if isinstance(payload, dict) else None


def hash_password(password: str, rounds: int = 12) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def secrets_match(provided: str | None, expected: str) -> bool:
    """Constant-time comparison of a shared secret."""
    if provided is None:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))
