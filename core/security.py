import hashlib
import hmac
import time
from typing import Optional

from core.config import settings
from core.logger import logger


def hash_share_password(password: Optional[str]) -> str:
    return hashlib.sha256((password or "").encode()).hexdigest()


def share_password_matches(password: Optional[str], password_hash: str) -> bool:
    # Constant-time to avoid leaking how much of the hash matched
    return hmac.compare_digest(hash_share_password(password), password_hash)


def _sign(data: str, secret: str) -> str:
    return hmac.new(secret.encode(), data.encode(), hashlib.sha256).hexdigest()


def issue_token(user_id: str, issued_at: Optional[int] = None, secret: Optional[str] = None) -> str:
    """
    Issue a signed identity token.
    Format: {user_id}:{timestamp}:{signature}
    """
    timestamp = int(issued_at if issued_at is not None else time.time())
    data = f"{user_id}:{timestamp}"
    return f"{data}:{_sign(data, secret or settings.AUTH_SECRET)}"


def verify_token(token: str, secret: Optional[str] = None, ttl_seconds: Optional[int] = None) -> Optional[str]:
    """Return the user id carried by a valid token, or None."""
    if not token:
        return None

    # user ids are opaque and may themselves contain ':'
    parts = token.rsplit(":", 2)
    if len(parts) != 3:
        return None

    user_id, timestamp_str, signature = parts
    if not user_id:
        return None

    try:
        issued_at = int(timestamp_str)
    except ValueError:
        return None

    ttl = ttl_seconds if ttl_seconds is not None else settings.TOKEN_TTL_SECONDS
    if int(time.time()) - issued_at > ttl:
        logger.warning("Token expired", user_id=user_id)
        return None

    expected = _sign(f"{user_id}:{timestamp_str}", secret or settings.AUTH_SECRET)
    if hmac.compare_digest(expected, signature):
        return user_id

    logger.warning("Token signature mismatch", user_id=user_id)
    return None
