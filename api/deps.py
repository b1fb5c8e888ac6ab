from typing import Optional

from fastapi import Header, Request

from core.errors import AuthError
from core.logger import logger
from core.security import verify_token
from services.game_events import GameEvents
from utils.clock import now_ms


def _resolve_user(x_auth_token: Optional[str], authorization: Optional[str]) -> Optional[str]:
    # 1. Header token
    if x_auth_token:
        user_id = verify_token(x_auth_token)
        if user_id:
            return user_id

    # 2. Authorization: Bearer <token>
    if authorization and authorization.lower().startswith("bearer "):
        user_id = verify_token(authorization.split(" ", 1)[1].strip())
        if user_id:
            return user_id

    return None


def get_current_user(
    request: Request,
    x_auth_token: Optional[str] = Header(None),
    authorization: Optional[str] = Header(None),
) -> str:
    user_id = _resolve_user(x_auth_token, authorization)
    if user_id:
        return user_id

    logger.warning("Auth failed: Missing or invalid credentials", path=request.url.path)
    raise AuthError()


def get_clock():
    return now_ms


def get_events(request: Request) -> Optional[GameEvents]:
    """Event feed on the application's shared redis client, if one is configured."""
    redis = getattr(request.app.state, "redis", None)
    return GameEvents(redis) if redis is not None else None
