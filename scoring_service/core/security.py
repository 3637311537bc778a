"""
Security: JWT verification for the identity context

Tokens are issued by the user service; this service only verifies them.
create_access_token exists for service-to-service callers and tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from scoring_service.core.config import get_settings


def create_access_token(user_id: str, email: Optional[str] = None) -> str:
    """
    Create a signed JWT for ``user_id``.

    The token carries the user id in ``sub`` and expires after
    ``jwt_expire_minutes``.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)

    payload = {
        "sub": user_id,
        "exp": now + timedelta(minutes=settings.jwt_expire_minutes),
        "iat": now,
    }
    if email:
        payload["email"] = email

    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Optional[dict]:
    """
    Decode and validate a JWT

    Returns the payload if valid, None if expired or corrupt
    """
    settings = get_settings()
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm]
        )
    except JWTError:
        return None
